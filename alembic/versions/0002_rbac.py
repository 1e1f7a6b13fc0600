"""rbac: member roles, invitations, audit and migration logs

Revision ID: 0002_rbac
Revises: 0001_init
Create Date: 2026-02-14
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0002_rbac"
down_revision = "0001_init"
branch_labels = None
depends_on = None

def upgrade() -> None:
    role_create = postgresql.ENUM("owner", "admin", "editor", "viewer", name="role")
    invitation_status_create = postgresql.ENUM("pending", "accepted", "declined", name="invitation_status")
    audit_action_create = postgresql.ENUM("role_changed", "member_removed", "rbac_migration", name="audit_action")
    migration_status_create = postgresql.ENUM(
        "in_progress", "completed", "completed_with_errors", name="migration_status"
    )

    role_create.create(op.get_bind(), checkfirst=True)
    invitation_status_create.create(op.get_bind(), checkfirst=True)
    audit_action_create.create(op.get_bind(), checkfirst=True)
    migration_status_create.create(op.get_bind(), checkfirst=True)

    role = postgresql.ENUM("owner", "admin", "editor", "viewer", name="role", create_type=False)
    invitation_status = postgresql.ENUM(
        "pending", "accepted", "declined", name="invitation_status", create_type=False
    )
    audit_action = postgresql.ENUM(
        "role_changed", "member_removed", "rbac_migration", name="audit_action", create_type=False
    )
    migration_status = postgresql.ENUM(
        "in_progress", "completed", "completed_with_errors", name="migration_status", create_type=False
    )

    # existing rows keep NULL member_roles until their owner migrates them
    op.add_column("projects", sa.Column("member_roles", postgresql.JSONB(), nullable=True))
    op.add_column("projects", sa.Column("migrated_at", sa.DateTime(timezone=True), nullable=True))

    op.create_table(
        "invitations",
        sa.Column("id", sa.String(length=160), primary_key=True, nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("project_name", sa.String(length=200), nullable=False),
        sa.Column("inviter_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("inviter_email", sa.String(length=320), nullable=False),
        sa.Column("invitee_email", sa.String(length=320), nullable=False),
        sa.Column("invitee_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("role", role, nullable=False, server_default="editor"),
        sa.Column("status", invitation_status, nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("declined_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_invitations_project_id", "invitations", ["project_id"])
    op.create_index("ix_invitations_invitee_email", "invitations", ["invitee_email"])
    op.create_index("ix_invitations_invitee_user_id", "invitations", ["invitee_user_id"])
    op.create_index(
        "uq_invitations_pending_project_email",
        "invitations",
        ["project_id", "invitee_email"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("action", audit_action, nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("actor_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("target_user_id", sa.String(length=64), nullable=True),
        sa.Column("old_role", sa.String(length=16), nullable=True),
        sa.Column("new_role", sa.String(length=16), nullable=True),
        sa.Column("removed_role", sa.String(length=16), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_audit_logs_project_id", "audit_logs", ["project_id"])

    op.create_table(
        "migration_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("status", migration_status, nullable=False, server_default="in_progress"),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_projects", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("results", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("ix_migration_logs_user_id", "migration_logs", ["user_id"])

def downgrade() -> None:
    op.drop_index("ix_migration_logs_user_id", table_name="migration_logs")
    op.drop_table("migration_logs")

    op.drop_index("ix_audit_logs_project_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("uq_invitations_pending_project_email", table_name="invitations")
    op.drop_index("ix_invitations_invitee_user_id", table_name="invitations")
    op.drop_index("ix_invitations_invitee_email", table_name="invitations")
    op.drop_index("ix_invitations_project_id", table_name="invitations")
    op.drop_table("invitations")

    op.drop_column("projects", "migrated_at")
    op.drop_column("projects", "member_roles")

    postgresql.ENUM(name="migration_status").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="audit_action").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="invitation_status").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="role").drop(op.get_bind(), checkfirst=True)
