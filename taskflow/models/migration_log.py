import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from taskflow.auth.tokens import now_utc
from taskflow.models.base import Base, JSONDoc
from taskflow.models.enums import MigrationStatus

class MigrationLog(Base):
    __tablename__ = "migration_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), index=True, nullable=False)
    user_email: Mapped[str] = mapped_column(String(320), nullable=False)

    status: Mapped[MigrationStatus] = mapped_column(
        Enum(MigrationStatus, name="migration_status"), nullable=False, default=MigrationStatus.in_progress
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    total_projects: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress: Mapped[dict] = mapped_column(JSONDoc, nullable=False, default=dict)
    results: Mapped[dict] = mapped_column(JSONDoc, nullable=False, default=dict)
