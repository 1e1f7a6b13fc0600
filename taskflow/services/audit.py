import uuid
from typing import Any

from sqlalchemy.orm import Session

from taskflow.auth.tokens import now_utc
from taskflow.models.audit_log import AuditLogEntry
from taskflow.models.enums import AuditAction

def _role_name(role: Any) -> str | None:
    if role is None:
        return None
    return getattr(role, "value", str(role))

def record(
    db: Session,
    action: AuditAction,
    project_id: uuid.UUID,
    actor_user_id: uuid.UUID | None,
    target_user_id: Any = None,
    old_role: Any = None,
    new_role: Any = None,
    removed_role: Any = None,
    details: dict | None = None,
) -> AuditLogEntry:
    """Stage an audit entry on the caller's transaction; the caller commits."""
    entry = AuditLogEntry(
        action=action,
        project_id=project_id,
        actor_user_id=actor_user_id,
        target_user_id=str(target_user_id) if target_user_id is not None else None,
        old_role=_role_name(old_role),
        new_role=_role_name(new_role),
        removed_role=_role_name(removed_role),
        details=details,
        timestamp=now_utc(),
    )
    db.add(entry)
    return entry
