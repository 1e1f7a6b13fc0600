import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskflow.errors import InvalidArgument, NotFound
from taskflow.models.project import Project

def parse_uuid(value: Any, what: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if value is None or not str(value).strip():
        raise InvalidArgument(f"{what} is required")
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        raise InvalidArgument(f"{what} is malformed")

def require_id(value: Any, what: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgument(f"{what} is required")
    return str(value).strip()

# the project row is the unit of mutual exclusion for membership changes
def lock_project(db: Session, project_id: uuid.UUID, missing: str = "project not found") -> Project:
    project = db.scalar(select(Project).where(Project.id == project_id).with_for_update())
    if project is None:
        raise NotFound(missing)
    return project
