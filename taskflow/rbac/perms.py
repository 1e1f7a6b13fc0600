from taskflow.models.enums import Permission, Role

PERMS: dict[Permission, set[Role]] = {
    Permission.edit_project: {Role.owner, Role.admin},
    Permission.invite_members: {Role.owner, Role.admin},
    Permission.remove_members: {Role.owner, Role.admin},

    Permission.edit_tasks: {Role.owner, Role.admin, Role.editor},
    Permission.manage_boards: {Role.owner, Role.admin, Role.editor},
}

# privilege order, higher wins
ROLE_RANK: dict[Role, int] = {
    Role.owner: 4,
    Role.admin: 3,
    Role.editor: 2,
    Role.viewer: 1,
}

# roles that can be stored in member_roles / granted by invitation
ASSIGNABLE_ROLES: frozenset[Role] = frozenset({Role.admin, Role.editor, Role.viewer})

def permissions_for(role: Role | None) -> set[Permission]:
    if role is None:
        return set()
    return {perm for perm, roles in PERMS.items() if role in roles}
