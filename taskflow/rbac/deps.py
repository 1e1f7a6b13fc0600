import uuid

from fastapi import Depends
from sqlalchemy.orm import Session

from taskflow.auth.deps import get_current_user
from taskflow.db import get_db
from taskflow.errors import NotFound, PermissionDenied
from taskflow.models.enums import Permission, Role
from taskflow.models.project import Project
from taskflow.models.user import User
from taskflow.rbac.access import ensure_permission, role_of
from taskflow.rbac.perms import PERMS

class ProjectContext:
    def __init__(self, project: Project, user: User, role: Role | None):
        self.project = project
        self.user = user
        self.role = role

def get_project_context(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProjectContext:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFound("project not found")

    # read access: owner or anyone listed, migrated or not
    if not project.is_listed(user.id):
        raise PermissionDenied("not a member of this project")

    return ProjectContext(project=project, user=user, role=role_of(project, user.id))

def require_perm(permission: Permission):
    if permission not in PERMS:
        raise RuntimeError(f"unknown permission: {permission}")

    def _checker(ctx: ProjectContext = Depends(get_project_context)) -> ProjectContext:
        ensure_permission(ctx.project, ctx.user.id, permission)
        return ctx

    return _checker
