from taskflow.models.audit_log import AuditLogEntry
from taskflow.models.auth_magic_link import AuthMagicLink
from taskflow.models.invitation import Invitation
from taskflow.models.migration_log import MigrationLog
from taskflow.models.project import Project
from taskflow.models.user import User

__all__ = ["User", "AuthMagicLink", "Project", "Invitation", "AuditLogEntry", "MigrationLog"]
