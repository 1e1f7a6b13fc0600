"""Invitation lifecycle.

``pending`` moves to ``accepted`` or ``declined`` exactly once. Expiry is not
a state: an expired invitation stays ``pending`` and is refused when someone
tries to act on it.
"""
from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskflow.auth.identity import normalize_email, resolve_user_by_email
from taskflow.auth.tokens import as_utc, now_utc
from taskflow.config import settings
from taskflow.errors import (
    AlreadyExists,
    DeadlineExceeded,
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ServiceError,
)
from taskflow.models.enums import InvitationStatus, Permission, Role
from taskflow.models.invitation import Invitation
from taskflow.models.user import User
from taskflow.rbac.access import ensure_permission, parse_role
from taskflow.rbac.perms import ASSIGNABLE_ROLES
from taskflow.services.common import lock_project, parse_uuid, require_id

logger = logging.getLogger(__name__)

def invitation_id_for(project_id: uuid.UUID, email: str, created_at: datetime) -> str:
    email_key = hashlib.sha256(normalize_email(email).encode("utf-8")).hexdigest()[:16]
    return f"{project_id}_{email_key}_{int(created_at.timestamp() * 1000)}"

def invitation_expiry(created_at: datetime) -> datetime:
    return created_at + timedelta(days=settings.invitation_ttl_days)

def is_expired(invitation: Invitation, now: datetime | None = None) -> bool:
    now = now or now_utc()
    return now > as_utc(invitation.expires_at)

def invite_user(
    db: Session,
    project_id: Any,
    actor: User,
    email: str | None,
    role: Any = Role.editor,
) -> Invitation:
    pid = parse_uuid(project_id, "project id")
    if not email or not email.strip():
        raise InvalidArgument("email is required")
    invitee_email = normalize_email(email)

    grant = parse_role(role)
    if grant is None:
        raise InvalidArgument(f"invalid role: {role}")
    if grant not in ASSIGNABLE_ROLES:
        raise InvalidArgument("owner role cannot be granted by invitation")

    try:
        project = lock_project(db, pid)
        actor_role = ensure_permission(project, actor.id, Permission.invite_members)
        # a single granted role would mark the project migrated and strand the rest
        if project.member_roles is None:
            raise FailedPrecondition("project requires RBAC migration by its owner")

        if grant == Role.admin and actor_role != Role.owner:
            raise PermissionDenied("only the project owner can invite admins")

        invitee = resolve_user_by_email(db, invitee_email)
        if invitee is not None and project.is_listed(invitee.id):
            raise AlreadyExists("user is already a member of this project")

        now = now_utc()
        existing = db.scalar(
            select(Invitation).where(
                Invitation.project_id == pid,
                Invitation.invitee_email == invitee_email,
                Invitation.status == InvitationStatus.pending,
            )
        )
        if existing is not None:
            if not is_expired(existing, now):
                raise AlreadyExists("invitation already sent to this email")
            # a lapsed invite gives way to the new one
            logger.info("replacing expired invitation %s", existing.id)
            db.delete(existing)
            db.flush()

        invitation = Invitation(
            id=invitation_id_for(pid, invitee_email, now),
            project_id=pid,
            project_name=project.name,
            inviter_user_id=actor.id,
            inviter_email=actor.email,
            invitee_email=invitee_email,
            invitee_user_id=invitee.id if invitee is not None else None,
            role=grant,
            status=InvitationStatus.pending,
            created_at=now,
            expires_at=invitation_expiry(now),
        )
        db.add(invitation)
        db.flush()
    except IntegrityError:
        db.rollback()
        raise AlreadyExists("invitation already sent to this email")
    except ServiceError:
        db.rollback()
        raise

    db.commit()
    logger.info("user %s invited %s to project %s as %s", actor.id, invitee_email, pid, grant.value)
    return invitation

def _load_for_transition(db: Session, invitation_id: Any, actor: User) -> Invitation:
    iid = require_id(invitation_id, "invitation id")
    invitation = db.scalar(select(Invitation).where(Invitation.id == iid).with_for_update())
    if invitation is None:
        raise NotFound("invitation not found")

    if invitation.status != InvitationStatus.pending:
        raise InvalidArgument("invitation already processed")

    if invitation.invitee_user_id is not None:
        if invitation.invitee_user_id != actor.id:
            raise PermissionDenied("invitation not for this user")
    elif invitation.invitee_email != normalize_email(actor.email or ""):
        raise PermissionDenied("invitation not for this email")

    if is_expired(invitation):
        raise DeadlineExceeded("invitation has expired")

    return invitation

def accept_invitation(db: Session, invitation_id: Any, actor: User) -> Invitation:
    try:
        invitation = _load_for_transition(db, invitation_id, actor)
        project = lock_project(db, invitation.project_id, missing="project no longer exists")
        if project.member_roles is None:
            raise FailedPrecondition("project requires RBAC migration by its owner")

        if project.is_listed(actor.id):
            raise AlreadyExists("user is already a member")

        project.add_member(actor.id)
        if str(actor.id) != project.owner:
            project.set_member_role(actor.id, invitation.role.value)

        now = now_utc()
        invitation.status = InvitationStatus.accepted
        invitation.accepted_at = now
        invitation.invitee_user_id = actor.id
    except ServiceError:
        db.rollback()
        raise

    db.commit()
    logger.info("user %s accepted invitation %s", actor.id, invitation.id)
    return invitation

def decline_invitation(db: Session, invitation_id: Any, actor: User) -> Invitation:
    try:
        invitation = _load_for_transition(db, invitation_id, actor)
        lock_project(db, invitation.project_id, missing="project no longer exists")

        invitation.status = InvitationStatus.declined
        invitation.declined_at = now_utc()
        invitation.invitee_user_id = actor.id
    except ServiceError:
        db.rollback()
        raise

    db.commit()
    logger.info("user %s declined invitation %s", actor.id, invitation.id)
    return invitation

def list_my_invitations(db: Session, actor: User) -> list[Invitation]:
    """Pending invitations addressed to the actor by id or by email, newest first."""
    q = (
        select(Invitation)
        .where(
            Invitation.status == InvitationStatus.pending,
            or_(
                Invitation.invitee_user_id == actor.id,
                Invitation.invitee_email == normalize_email(actor.email or ""),
            ),
        )
        .order_by(Invitation.created_at.desc())
    )
    seen: dict[str, Invitation] = {}
    for invitation in db.scalars(q).all():
        seen.setdefault(invitation.id, invitation)
    return list(seen.values())
