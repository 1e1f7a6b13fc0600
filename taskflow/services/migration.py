"""Per-user RBAC migration.

Upgrades the caller's legacy projects (``member_roles`` is NULL) to the
structured role model in three phases:

1. validation, which is also the whole of a dry run;
2. live migration, one project per transaction, failures recorded and
   skipped;
3. verification of every project that reported success.

Already-migrated projects are skipped during validation, so running the
migration again is a no-op and an interrupted run can simply be restarted.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskflow.auth.identity import resolve_user_by_id
from taskflow.auth.tokens import as_utc, now_utc
from taskflow.config import settings
from taskflow.errors import (
    FailedPrecondition,
    Internal,
    InvalidArgument,
    NotFound,
    PermissionDenied,
)
from taskflow.models.enums import AuditAction, MigrationStatus, Role
from taskflow.models.migration_log import MigrationLog
from taskflow.models.project import Project
from taskflow.models.user import User
from taskflow.rbac.access import parse_role
from taskflow.rbac.perms import ASSIGNABLE_ROLES
from taskflow.schemas.migration import (
    DryRunOut,
    FailedProject,
    Inconsistency,
    InvalidProject,
    MigratedProject,
    MigrationLogListOut,
    MigrationLogOut,
    MigrationNeededOut,
    MigrationOut,
    MigrationPlan,
    ProjectRef,
    ProjectWarnings,
    ValidationReport,
    ValidProject,
    VerificationReport,
)
from taskflow.services import audit
from taskflow.services.common import lock_project

logger = logging.getLogger(__name__)

UNNAMED = "Unnamed Project"

@dataclass
class ProjectValidation:
    is_valid: bool = True
    already_migrated: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggested_roles: dict[str, Role] = field(default_factory=dict)

def default_grant() -> Role:
    role = parse_role(settings.migration_default_role)
    if role not in ASSIGNABLE_ROLES:
        raise Internal(f"invalid migration_default_role: {settings.migration_default_role}")
    return role

def validate_project_for_migration(
    project: Any,
    user_exists: Callable[[str], bool],
    grant: Role = Role.editor,
) -> ProjectValidation:
    result = ProjectValidation()

    if project.member_roles is not None:
        result.already_migrated = True
        return result

    owner = project.owner
    if not owner:
        result.is_valid = False
        result.errors.append("Missing owner field")

    members = project.members
    if members is None or not isinstance(members, list):
        result.is_valid = False
        result.errors.append("Missing or invalid members array")
        return result

    if owner and owner not in members:
        result.warnings.append("Owner is not in members array - will be added")

    unique_members = list(dict.fromkeys(members))
    if len(unique_members) != len(members):
        result.warnings.append("Duplicate members found - will be deduplicated")

    for member_id in unique_members:
        if member_id == owner:
            continue
        if user_exists(member_id):
            result.suggested_roles[member_id] = grant
        else:
            result.warnings.append(f"Member {member_id} not found - will be removed")

    return result

def verify_project(project: Any) -> list[str]:
    """Names of the consistency checks ``project`` fails; empty when sound."""
    roles = project.member_roles
    role_map = roles if isinstance(roles, dict) else {}
    members = project.members if isinstance(project.members, list) else []
    owner = project.owner

    checks = {
        "has_member_roles": isinstance(roles, dict),
        "has_valid_owner": bool(owner),
        "owner_not_in_member_roles": owner not in role_map,
        "all_members_have_roles": all(m in role_map for m in members if m != owner),
        "no_orphaned_roles": all(uid in members for uid in role_map),
    }
    return [name for name, passed in checks.items() if not passed]

def _owned_projects(db: Session, actor: User) -> list[Project]:
    try:
        return list(
            db.scalars(
                select(Project).where(Project.owner_id == actor.id).order_by(Project.created_at)
            ).all()
        )
    except SQLAlchemyError as exc:
        logger.exception("migration discovery failed for user %s", actor.id)
        raise Internal(f"Migration failed: {exc}")

def validate_projects(db: Session, projects: list[Project]) -> ValidationReport:
    grant = default_grant()
    report = ValidationReport(total_projects=len(projects))

    def user_exists(uid: str) -> bool:
        return resolve_user_by_id(db, uid) is not None

    for project in projects:
        pid = str(project.id)
        name = project.name or UNNAMED
        validation = validate_project_for_migration(project, user_exists, grant)

        if validation.already_migrated:
            report.already_migrated.append(ProjectRef(project_id=pid, name=name))
        elif validation.is_valid:
            report.valid_projects.append(
                ValidProject(
                    project_id=pid,
                    name=name,
                    owner=project.owner,
                    member_count=len(project.members or []),
                    suggested_roles=validation.suggested_roles,
                )
            )
        else:
            report.invalid_projects.append(InvalidProject(project_id=pid, name=name, errors=validation.errors))

        if validation.warnings:
            report.warnings.append(ProjectWarnings(project_id=pid, name=name, warnings=validation.warnings))

    return report

def _final_roles(project_id: str, suggested: dict[str, Role], overrides: dict[str, Any]) -> dict[str, str]:
    final = {uid: role.value for uid, role in suggested.items()}
    for uid, raw in (overrides or {}).items():
        role = parse_role(raw)
        if role not in ASSIGNABLE_ROLES:
            raise InvalidArgument(f"invalid role override for {uid}: {raw}")
        if uid not in final:
            logger.warning("ignoring role override for %s on project %s: not a migrated member", uid, project_id)
            continue
        final[uid] = role.value
    return final

def _migrate_project(db: Session, actor: User, valid: ValidProject, overrides: dict[str, Any]) -> dict[str, str]:
    project = lock_project(db, uuid.UUID(valid.project_id))
    if project.member_roles is not None:
        raise FailedPrecondition("project was migrated by another run")

    final = _final_roles(valid.project_id, valid.suggested_roles, overrides)

    owner = project.owner
    kept = [m for m in (project.members or []) if m in final]
    project.members = list(dict.fromkeys([owner, *kept]))
    project.member_roles = final
    now = now_utc()
    project.updated_at = now
    project.migrated_at = now

    audit.record(
        db,
        AuditAction.rbac_migration,
        project_id=project.id,
        actor_user_id=actor.id,
        details={"roles_assigned": final, "member_count": len(final)},
    )
    db.commit()
    return final

def verify_migration(db: Session, project_ids: list[str]) -> VerificationReport:
    report = VerificationReport(total_checked=len(project_ids))
    for pid in project_ids:
        try:
            project = db.get(Project, uuid.UUID(pid), populate_existing=True)
            if project is None:
                report.inconsistencies.append(Inconsistency(project_id=pid, error="project not found"))
                continue
            failed = verify_project(project)
        except SQLAlchemyError as exc:
            report.inconsistencies.append(Inconsistency(project_id=pid, error=f"Verification failed: {exc}"))
            continue

        if failed:
            logger.warning("project %s failed verification: %s", pid, ", ".join(failed))
            report.inconsistencies.append(Inconsistency(project_id=pid, name=project.name, failed_checks=failed))
        else:
            report.verified.append(pid)
    return report

def _write_log(db: Session, log: MigrationLog, **changes: Any) -> None:
    try:
        for key, value in changes.items():
            setattr(log, key, value)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("could not write migration log %s", log.id)
        raise Internal(f"Migration failed: {exc}")

# closes a run that died mid-way so the next run is not locked out
def _abandon_log(db: Session, log: MigrationLog, reason: str) -> None:
    try:
        log.status = MigrationStatus.completed_with_errors
        log.completed_at = now_utc()
        log.results = {**(log.results or {}), "error": reason}
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("could not close migration log %s", log.id)

def _ensure_not_running(db: Session, actor: User) -> None:
    cutoff = now_utc() - timedelta(minutes=settings.migration_lock_minutes)
    running = db.scalar(
        select(MigrationLog).where(
            MigrationLog.user_id == actor.id,
            MigrationLog.status == MigrationStatus.in_progress,
            MigrationLog.started_at >= cutoff,
        )
    )
    if running is not None:
        raise FailedPrecondition(f"migration {running.id} is already in progress")

def migrate_my_projects(
    db: Session,
    actor: User,
    dry_run: bool = False,
    role_mapping: dict[str, dict[str, Any]] | None = None,
) -> DryRunOut | MigrationOut:
    role_mapping = role_mapping or {}
    logger.info("starting %s RBAC migration for user %s", "dry-run" if dry_run else "live", actor.id)

    report = validate_projects(db, _owned_projects(db, actor))

    if dry_run:
        return DryRunOut(
            **report.model_dump(),
            migration_plan=MigrationPlan(
                projects_to_migrate=len(report.valid_projects),
                estimated_time=len(report.valid_projects) * settings.migration_seconds_per_project,
                would_fail=len(report.invalid_projects),
            ),
        )

    _ensure_not_running(db, actor)

    started = now_utc()
    log = MigrationLog(
        user_id=actor.id,
        user_email=actor.email,
        status=MigrationStatus.in_progress,
        started_at=started,
        total_projects=len(report.valid_projects),
        progress={},
        results={},
    )
    try:
        db.add(log)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("could not create migration log for user %s", actor.id)
        raise Internal(f"Migration failed: {exc}")

    successful: list[MigratedProject] = []
    failed: list[FailedProject] = []
    total = len(report.valid_projects)

    try:
        for index, valid in enumerate(report.valid_projects):
            try:
                assigned = _migrate_project(db, actor, valid, role_mapping.get(valid.project_id, {}))
                successful.append(
                    MigratedProject(
                        project_id=valid.project_id,
                        name=valid.name,
                        roles_assigned=assigned,
                        timestamp=now_utc().isoformat(),
                    )
                )
            except Exception as exc:
                db.rollback()
                message = getattr(exc, "message", None) or str(exc)
                logger.warning("migration failed for project %s: %s", valid.project_id, message)
                failed.append(
                    FailedProject(
                        project_id=valid.project_id,
                        name=valid.name,
                        error=message,
                        timestamp=now_utc().isoformat(),
                    )
                )

            progress = dict(log.progress or {})
            progress[f"project_{index}"] = {
                "project_id": valid.project_id,
                "completed": index + 1,
                "total": total,
                "timestamp": now_utc().isoformat(),
            }
            _write_log(db, log, progress=progress)

        verification = verify_migration(db, [p.project_id for p in successful])

        status = MigrationStatus.completed if not failed else MigrationStatus.completed_with_errors
        finished = now_utc()
        _write_log(
            db,
            log,
            status=status,
            completed_at=finished,
            results={
                "successful": len(successful),
                "failed": len(failed),
                "verified": len(verification.verified),
                "inconsistent": len(verification.inconsistencies),
                "verification": verification.model_dump(mode="json"),
            },
        )
    except Internal as exc:
        _abandon_log(db, log, exc.message)
        raise

    logger.info(
        "RBAC migration %s for user %s finished: %d migrated, %d failed",
        log.id, actor.id, len(successful), len(failed),
    )

    return MigrationOut(
        **report.model_dump(),
        migration_id=log.id,
        migration_started=started.isoformat(),
        migration_completed=finished.isoformat(),
        successful=successful,
        failed=failed,
        verification=verification,
    )

def _log_out(log: MigrationLog) -> MigrationLogOut:
    return MigrationLogOut(
        id=log.id,
        user_id=log.user_id,
        user_email=log.user_email,
        status=log.status,
        started_at=as_utc(log.started_at).isoformat(),
        completed_at=as_utc(log.completed_at).isoformat() if log.completed_at else None,
        total_projects=log.total_projects,
        progress=log.progress or {},
        results=log.results or {},
    )

def get_migration_status(db: Session, actor: User, migration_id: Any = None) -> MigrationLogOut | MigrationLogListOut:
    if migration_id is not None:
        try:
            mid = migration_id if isinstance(migration_id, uuid.UUID) else uuid.UUID(str(migration_id))
        except ValueError:
            raise InvalidArgument("migration id is malformed")
        log = db.get(MigrationLog, mid)
        if log is None:
            raise NotFound("migration log not found")
        if log.user_id != actor.id:
            raise PermissionDenied("access denied to migration log")
        return _log_out(log)

    q = (
        select(MigrationLog)
        .where(MigrationLog.user_id == actor.id)
        .order_by(MigrationLog.started_at.desc())
        .limit(settings.migration_status_limit)
    )
    return MigrationLogListOut(migrations=[_log_out(log) for log in db.scalars(q).all()])

def check_migration_needed(db: Session, actor: User) -> MigrationNeededOut:
    projects = _owned_projects(db, actor)
    to_migrate = sum(1 for p in projects if p.member_roles is None)
    return MigrationNeededOut(
        needs_migration=to_migrate > 0,
        total_projects=len(projects),
        projects_to_migrate=to_migrate,
        projects_already_migrated=len(projects) - to_migrate,
    )
