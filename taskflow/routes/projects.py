import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import String, cast, or_, select
from sqlalchemy.orm import Session

from taskflow.auth.deps import get_current_user
from taskflow.auth.tokens import now_utc
from taskflow.db import get_db
from taskflow.errors import InvalidArgument
from taskflow.models.enums import Permission
from taskflow.models.project import Project
from taskflow.models.user import User
from taskflow.rbac.access import needs_migration, role_of
from taskflow.rbac.deps import ProjectContext, get_project_context, require_perm
from taskflow.schemas.projects import ProjectCreateIn, ProjectOut, ProjectUpdateIn

router = APIRouter(prefix="/projects", tags=["projects"])

def project_out(p: Project, user_id: uuid.UUID) -> ProjectOut:
    return ProjectOut(
        id=p.id,
        name=p.name,
        description=p.description or "",
        owner=p.owner,
        members=list(p.members or []),
        member_roles=dict(p.member_roles) if p.member_roles is not None else None,
        boards=list(p.boards or []),
        my_role=role_of(p, user_id),
        needs_migration=needs_migration(p, user_id),
    )

@router.post("", response_model=ProjectOut)
def create_project(
    payload: ProjectCreateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProjectOut:
    name = payload.name.strip()
    if not name:
        raise InvalidArgument("project name is required")

    p = Project(
        name=name,
        description=payload.description,
        owner_id=user.id,
        members=[str(user.id)],
        member_roles={},
        boards=[],
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return project_out(p, user.id)

@router.get("", response_model=list[ProjectOut])
def list_projects(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ProjectOut]:
    uid = str(user.id)
    # coarse text match narrows the scan, membership is confirmed below
    q = (
        select(Project)
        .where(or_(Project.owner_id == user.id, cast(Project.members, String).like(f'%"{uid}"%')))
        .order_by(Project.created_at.desc())
    )
    rows = [p for p in db.scalars(q).all() if p.is_listed(uid)]
    return [project_out(p, user.id) for p in rows]

@router.get("/{project_id}", response_model=ProjectOut)
def get_project(ctx: ProjectContext = Depends(get_project_context)) -> ProjectOut:
    return project_out(ctx.project, ctx.user.id)

@router.patch("/{project_id}", response_model=ProjectOut)
def update_project(
    payload: ProjectUpdateIn,
    ctx: ProjectContext = Depends(require_perm(Permission.edit_project)),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = ctx.project
    if payload.name is not None:
        if not payload.name.strip():
            raise InvalidArgument("project name cannot be empty")
        p.name = payload.name.strip()
    if payload.description is not None:
        p.description = payload.description
    p.updated_at = now_utc()

    db.add(p)
    db.commit()
    db.refresh(p)
    return project_out(p, ctx.user.id)
