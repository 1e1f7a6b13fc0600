"""Access evaluator.

Pure functions over a project-like object (anything with ``owner`` and
``member_roles``). Every mutating operation goes through these; sibling
handlers (boards, tasks) call ``has_permission`` directly.
"""
from __future__ import annotations

from typing import Any

from taskflow.errors import FailedPrecondition, PermissionDenied
from taskflow.models.enums import Permission, Role
from taskflow.rbac.perms import ASSIGNABLE_ROLES, PERMS, ROLE_RANK

def parse_role(value: Any) -> Role | None:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        return None

def role_of(project: Any, user_id: Any) -> Role | None:
    """Role held by ``user_id`` on ``project``, or None for non-members.

    The owner is implicit. For everyone else ``member_roles`` is the only
    source; a listed member without an entry (legacy project) gets None.
    """
    if user_id is None:
        return None
    uid = str(user_id)
    if uid and uid == str(project.owner):
        return Role.owner

    roles = project.member_roles or {}
    role = parse_role(roles.get(uid)) if uid in roles else None
    # a stored "owner" is never honoured
    if role not in ASSIGNABLE_ROLES:
        return None
    return role

def has_permission(project: Any, user_id: Any, permission: Permission) -> bool:
    role = role_of(project, user_id)
    if role is None:
        return False
    return role in PERMS.get(permission, set())

def needs_migration(project: Any, user_id: Any) -> bool:
    uid = str(user_id)
    if project.member_roles is not None or uid == str(project.owner):
        return False
    return uid in (project.members or [])

def ensure_permission(project: Any, user_id: Any, permission: Permission) -> Role:
    if has_permission(project, user_id, permission):
        return role_of(project, user_id)  # type: ignore[return-value]
    if needs_migration(project, user_id):
        raise FailedPrecondition("project requires RBAC migration by its owner")
    raise PermissionDenied("forbidden")

def can_modify_role(
    actor_role: Role | None,
    target_role: Role | None,
    new_role: Role | None,
    allow_peer: bool = False,
) -> bool:
    """Whether ``actor_role`` may move a ``target_role`` member to ``new_role``.

    The target must rank strictly below the actor. The new role must rank
    strictly below the actor too, or equal to it when ``allow_peer`` is set.
    Owner is never granted or taken away here.
    """
    if actor_role is None or target_role is None or new_role is None:
        return False
    if target_role == Role.owner or new_role == Role.owner:
        return False
    if new_role not in ASSIGNABLE_ROLES:
        return False

    actor_rank = ROLE_RANK[actor_role]
    if ROLE_RANK[target_role] >= actor_rank:
        return False

    if allow_peer:
        return ROLE_RANK[new_role] <= actor_rank
    return ROLE_RANK[new_role] < actor_rank
