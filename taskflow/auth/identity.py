"""Identity lookups used by the collaboration core.

Users live in the ``users`` table; a magic-link login creates the row. An id
that does not parse as a UUID or has no row is simply unknown.
"""
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskflow.models.user import User

def normalize_email(email: str) -> str:
    return email.strip().lower()

def resolve_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == normalize_email(email)))

def resolve_user_by_id(db: Session, user_id: Any) -> User | None:
    if isinstance(user_id, uuid.UUID):
        uid = user_id
    else:
        try:
            uid = uuid.UUID(str(user_id))
        except (TypeError, ValueError):
            return None
    return db.get(User, uid)
