import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskflow.auth.deps import get_current_user
from taskflow.db import get_db
from taskflow.models.user import User
from taskflow.schemas.migration import (
    DryRunOut,
    MigrateIn,
    MigrationLogListOut,
    MigrationLogOut,
    MigrationNeededOut,
    MigrationOut,
)
from taskflow.services import migration as service

router = APIRouter(prefix="/migrations", tags=["migrations"])

@router.post("", response_model=DryRunOut | MigrationOut)
def migrate_my_projects(
    payload: MigrateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DryRunOut | MigrationOut:
    return service.migrate_my_projects(db, user, dry_run=payload.dry_run, role_mapping=payload.role_mapping)

@router.get("", response_model=MigrationLogListOut)
def list_migrations(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MigrationLogListOut:
    return service.get_migration_status(db, user)

@router.get("/needed", response_model=MigrationNeededOut)
def migration_needed(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MigrationNeededOut:
    return service.check_migration_needed(db, user)

@router.get("/{migration_id}", response_model=MigrationLogOut)
def get_migration(
    migration_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MigrationLogOut:
    return service.get_migration_status(db, user, migration_id)
