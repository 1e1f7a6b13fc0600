import uuid

from pydantic import BaseModel

from taskflow.models.enums import Role

class ProjectCreateIn(BaseModel):
    name: str
    description: str = ""

class ProjectUpdateIn(BaseModel):
    name: str | None = None
    description: str | None = None

class ProjectOut(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    owner: str
    members: list[str]
    member_roles: dict[str, str] | None
    boards: list[str]
    my_role: Role | None
    needs_migration: bool
