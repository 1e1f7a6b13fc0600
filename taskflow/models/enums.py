from enum import Enum

class Role(str, Enum):
    owner = "owner"
    admin = "admin"
    editor = "editor"
    viewer = "viewer"

class Permission(str, Enum):
    edit_project = "project:edit"
    invite_members = "members:invite"
    remove_members = "members:remove"
    edit_tasks = "tasks:edit"
    manage_boards = "boards:manage"

class InvitationStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"

class AuditAction(str, Enum):
    role_changed = "role_changed"
    member_removed = "member_removed"
    rbac_migration = "rbac_migration"

class MigrationStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"
    completed_with_errors = "completed_with_errors"
