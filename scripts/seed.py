import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskflow.auth.identity import normalize_email
from taskflow.db import SessionLocal
from taskflow.models.enums import Role
from taskflow.models.project import Project
from taskflow.models.user import User

@dataclass
class SeedResult:
    owner_email: str
    admin_email: str
    editor_email: str
    viewer_email: str
    project_id: uuid.UUID
    legacy_project_id: uuid.UUID

def get_or_create_user(db: Session, email: str, name: str | None = None) -> User:
    email = normalize_email(email)
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(email=email, name=name)
        db.add(u)
        db.flush()
    return u

def get_or_create_project(db: Session, owner: User, name: str, legacy: bool = False) -> Project:
    p = db.scalar(select(Project).where(Project.owner_id == owner.id, Project.name == name))
    if p is None:
        p = Project(
            name=name,
            owner_id=owner.id,
            members=[str(owner.id)],
            # pre-RBAC rows carry no role map at all
            member_roles=None if legacy else {},
            boards=[],
        )
        db.add(p)
        db.flush()
    return p

def grant(db: Session, project: Project, user: User, role: Role) -> None:
    project.add_member(user.id)
    if project.member_roles is not None:
        project.set_member_role(user.id, role.value)
    db.add(project)
    db.flush()

def seed() -> SeedResult:
    db = SessionLocal()
    try:
        owner = get_or_create_user(db, "owner@example.com", "owner")
        admin = get_or_create_user(db, "admin@example.com", "admin")
        editor = get_or_create_user(db, "editor@example.com", "editor")
        viewer = get_or_create_user(db, "viewer@example.com", "viewer")

        project = get_or_create_project(db, owner, "seeded project")
        grant(db, project, admin, Role.admin)
        grant(db, project, editor, Role.editor)
        grant(db, project, viewer, Role.viewer)

        # left for the owner to migrate
        legacy = get_or_create_project(db, owner, "seeded legacy project", legacy=True)
        grant(db, legacy, editor, Role.editor)
        grant(db, legacy, viewer, Role.viewer)

        db.commit()

        return SeedResult(
            owner_email=owner.email,
            admin_email=admin.email,
            editor_email=editor.email,
            viewer_email=viewer.email,
            project_id=project.id,
            legacy_project_id=legacy.id,
        )
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"project_id={r.project_id}")
    print(f"legacy_project_id={r.legacy_project_id}")
    print("users:")
    print(f"  owner:  {r.owner_email}")
    print(f"  admin:  {r.admin_email}")
    print(f"  editor: {r.editor_email}")
    print(f"  viewer: {r.viewer_email}")
