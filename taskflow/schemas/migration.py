import uuid

from pydantic import BaseModel, Field

from taskflow.models.enums import MigrationStatus, Role

class MigrateIn(BaseModel):
    dry_run: bool = False
    # project id -> {user id -> role}
    role_mapping: dict[str, dict[str, str]] = Field(default_factory=dict)

class ProjectRef(BaseModel):
    project_id: str
    name: str

class ValidProject(ProjectRef):
    owner: str
    member_count: int
    suggested_roles: dict[str, Role]

class InvalidProject(ProjectRef):
    errors: list[str]

class ProjectWarnings(ProjectRef):
    warnings: list[str]

class ValidationReport(BaseModel):
    total_projects: int = 0
    valid_projects: list[ValidProject] = Field(default_factory=list)
    invalid_projects: list[InvalidProject] = Field(default_factory=list)
    already_migrated: list[ProjectRef] = Field(default_factory=list)
    warnings: list[ProjectWarnings] = Field(default_factory=list)

class MigrationPlan(BaseModel):
    projects_to_migrate: int
    estimated_time: int
    would_fail: int

class DryRunOut(ValidationReport):
    phase: str = "validation"
    dry_run: bool = True
    migration_plan: MigrationPlan

class MigratedProject(ProjectRef):
    roles_assigned: dict[str, Role]
    timestamp: str

class FailedProject(ProjectRef):
    error: str
    timestamp: str

class Inconsistency(BaseModel):
    project_id: str
    name: str | None = None
    failed_checks: list[str] = Field(default_factory=list)
    error: str | None = None

class VerificationReport(BaseModel):
    verified: list[str] = Field(default_factory=list)
    inconsistencies: list[Inconsistency] = Field(default_factory=list)
    total_checked: int = 0

class MigrationOut(ValidationReport):
    phase: str = "completed"
    dry_run: bool = False
    migration_id: uuid.UUID
    migration_started: str
    migration_completed: str
    successful: list[MigratedProject] = Field(default_factory=list)
    failed: list[FailedProject] = Field(default_factory=list)
    verification: VerificationReport

class MigrationLogOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    user_email: str
    status: MigrationStatus
    started_at: str
    completed_at: str | None
    total_projects: int
    progress: dict
    results: dict

class MigrationLogListOut(BaseModel):
    migrations: list[MigrationLogOut]

class MigrationNeededOut(BaseModel):
    needs_migration: bool
    total_projects: int
    projects_to_migrate: int
    projects_already_migrated: int
