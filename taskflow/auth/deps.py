import uuid

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from taskflow.auth.tokens import decode_access_token
from taskflow.db import get_db
from taskflow.errors import Unauthenticated
from taskflow.models.user import User

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None or creds.scheme.lower() != "bearer":
        raise Unauthenticated("missing bearer token")

    try:
        payload = decode_access_token(creds.credentials)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError):
        raise Unauthenticated("invalid token")

    user = db.get(User, user_id)
    if user is None:
        raise Unauthenticated("user not found")

    return user
