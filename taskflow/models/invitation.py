import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from taskflow.models.base import Base
from taskflow.models.enums import InvitationStatus, Role

class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = (
        # at most one pending invitation per (project, email)
        Index(
            "uq_invitations_pending_project_email",
            "project_id",
            "invitee_email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(160), primary_key=True)

    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("projects.id"), index=True, nullable=False)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False)

    inviter_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    inviter_email: Mapped[str] = mapped_column(String(320), nullable=False)

    invitee_email: Mapped[str] = mapped_column(String(320), index=True, nullable=False)
    invitee_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), index=True, nullable=True)

    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), nullable=False, default=Role.editor)
    status: Mapped[InvitationStatus] = mapped_column(
        Enum(InvitationStatus, name="invitation_status"), nullable=False, default=InvitationStatus.pending
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
