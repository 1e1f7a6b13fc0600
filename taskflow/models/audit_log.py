import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from taskflow.auth.tokens import now_utc
from taskflow.models.base import Base, JSONDoc
from taskflow.models.enums import AuditAction

# append-only; nothing updates or deletes these rows
class AuditLogEntry(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[AuditAction] = mapped_column(Enum(AuditAction, name="audit_action"), nullable=False)

    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    target_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    old_role: Mapped[str | None] = mapped_column(String(16), nullable=True)
    new_role: Mapped[str | None] = mapped_column(String(16), nullable=True)
    removed_role: Mapped[str | None] = mapped_column(String(16), nullable=True)

    details: Mapped[dict | None] = mapped_column(JSONDoc, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
