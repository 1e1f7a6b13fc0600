import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from taskflow.auth.identity import resolve_user_by_id
from taskflow.auth.tokens import now_utc
from taskflow.config import settings
from taskflow.errors import (
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ServiceError,
)
from taskflow.models.enums import AuditAction, Permission, Role
from taskflow.models.project import Project
from taskflow.models.user import User
from taskflow.rbac.access import can_modify_role, ensure_permission, parse_role, role_of
from taskflow.rbac.perms import ROLE_RANK
from taskflow.services import audit
from taskflow.services.common import lock_project, parse_uuid, require_id

logger = logging.getLogger(__name__)

@dataclass
class MemberInfo:
    uid: str
    email: str
    display_name: str | None

@dataclass
class RoleChange:
    old_role: Role
    new_role: Role
    changed: bool

def _check_target(project: Project, target: str) -> None:
    if target == project.owner:
        raise PermissionDenied("the project owner cannot be modified")
    if target not in (project.members or []):
        raise NotFound("user is not a member of this project")

def change_user_role(
    db: Session,
    project_id: Any,
    actor: User,
    target_user_id: Any,
    new_role: Any,
) -> RoleChange:
    pid = parse_uuid(project_id, "project id")
    target = require_id(target_user_id, "target user id")
    role = parse_role(new_role)
    if role is None:
        raise InvalidArgument(f"invalid role: {new_role}")
    if target == str(actor.id):
        raise InvalidArgument("cannot change your own role")

    try:
        project = lock_project(db, pid)
        actor_role = ensure_permission(project, actor.id, Permission.remove_members)
        _check_target(project, target)

        if project.member_roles is None:
            raise FailedPrecondition("project requires RBAC migration by its owner")
        target_role = role_of(project, target)
        if target_role is None:
            raise NotFound("user has no role on this project")

        if not can_modify_role(actor_role, target_role, role, settings.rbac_allow_peer_role_assignment):
            raise PermissionDenied(
                f"{actor_role.value} cannot change a {target_role.value} to {role.value}"
            )

        if target_role == role:
            db.rollback()
            return RoleChange(old_role=target_role, new_role=role, changed=False)

        project.set_member_role(target, role.value)
        project.updated_at = now_utc()
        audit.record(
            db,
            AuditAction.role_changed,
            project_id=project.id,
            actor_user_id=actor.id,
            target_user_id=target,
            old_role=target_role,
            new_role=role,
        )
    except ServiceError:
        db.rollback()
        raise

    db.commit()
    logger.info(
        "user %s changed role of %s on project %s: %s -> %s",
        actor.id, target, pid, target_role.value, role.value,
    )
    return RoleChange(old_role=target_role, new_role=role, changed=True)

def remove_member(db: Session, project_id: Any, actor: User, target_user_id: Any) -> Role | None:
    """Drop ``target_user_id`` from the project; returns the role it held."""
    pid = parse_uuid(project_id, "project id")
    target = require_id(target_user_id, "member user id")
    if target == str(actor.id):
        raise InvalidArgument("cannot remove yourself from project")

    try:
        project = lock_project(db, pid)
        actor_role = ensure_permission(project, actor.id, Permission.remove_members)
        _check_target(project, target)

        target_role = role_of(project, target)
        # admins cannot evict peers; a role-less legacy member ranks lowest
        if target_role is not None and ROLE_RANK[target_role] >= ROLE_RANK[actor_role]:
            raise PermissionDenied(f"{actor_role.value} cannot remove a {target_role.value}")

        project.remove_member(target)
        removed = project.drop_member_role(target)
        project.updated_at = now_utc()
        audit.record(
            db,
            AuditAction.member_removed,
            project_id=project.id,
            actor_user_id=actor.id,
            target_user_id=target,
            removed_role=removed,
        )
    except ServiceError:
        db.rollback()
        raise

    db.commit()
    logger.info("user %s removed %s from project %s", actor.id, target, pid)
    return target_role

def get_project_members(db: Session, project_id: Any, actor: User, member_ids: list[Any] | None) -> list[MemberInfo]:
    pid = parse_uuid(project_id, "project id")
    if member_ids is None or not isinstance(member_ids, list):
        raise InvalidArgument("member ids array is required")

    project = db.get(Project, pid)
    if project is None:
        raise NotFound("project not found")
    if not project.is_listed(actor.id):
        raise PermissionDenied("not a member of this project")

    out: list[MemberInfo] = []
    for member_id in member_ids:
        user = resolve_user_by_id(db, member_id)
        if user is None:
            out.append(MemberInfo(uid=str(member_id), email="Unknown user", display_name=None))
            continue
        out.append(MemberInfo(uid=str(user.id), email=user.email, display_name=user.name))
    return out
