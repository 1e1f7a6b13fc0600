import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from taskflow.models.base import Base, JSONDoc

class Project(Base):
    """A collaboration space.

    ``members`` holds user id strings, owner included. ``member_roles`` maps
    non-owner member ids to role names; it is NULL on projects created before
    roles existed, which is how the migration engine recognises them.

    The mutators below always assign a fresh container so the unit of work
    sees the change without mutable-column tracking.
    """

    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), index=True, nullable=False)

    members: Mapped[list[str]] = mapped_column(JSONDoc, nullable=False, default=list)
    member_roles: Mapped[dict[str, str] | None] = mapped_column(JSONDoc, nullable=True)
    boards: Mapped[list[str]] = mapped_column(JSONDoc, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    migrated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def owner(self) -> str:
        return str(self.owner_id) if self.owner_id is not None else ""

    def is_listed(self, user_id: Any) -> bool:
        uid = str(user_id)
        return uid == self.owner or uid in (self.members or [])

    # add to set
    def add_member(self, user_id: Any) -> None:
        uid = str(user_id)
        current = list(self.members or [])
        if uid not in current:
            current.append(uid)
        self.members = current

    # remove from set
    def remove_member(self, user_id: Any) -> None:
        uid = str(user_id)
        self.members = [m for m in (self.members or []) if m != uid]

    def set_member_role(self, user_id: Any, role: str) -> None:
        roles = dict(self.member_roles or {})
        roles[str(user_id)] = str(role)
        self.member_roles = roles

    # delete map key; a legacy NULL map stays NULL
    def drop_member_role(self, user_id: Any) -> str | None:
        if self.member_roles is None:
            return None
        roles = dict(self.member_roles)
        removed = roles.pop(str(user_id), None)
        self.member_roles = roles
        return removed
