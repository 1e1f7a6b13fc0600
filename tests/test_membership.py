import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from taskflow.config import settings
from taskflow.models.audit_log import AuditLogEntry
from taskflow.models.enums import AuditAction

def change_role(client, account, project_id, target_id: str, new_role: str):
    return client.patch(
        f"/projects/{project_id}/members/{target_id}",
        json={"new_role": new_role},
        headers=account.headers,
    )

def remove(client, account, project_id, target_id: str):
    return client.delete(f"/projects/{project_id}/members/{target_id}", headers=account.headers)

def audit_rows(db: Session, project_id, action: AuditAction) -> list[AuditLogEntry]:
    q = select(AuditLogEntry).where(AuditLogEntry.project_id == project_id, AuditLogEntry.action == action)
    return list(db.scalars(q).all())

@pytest.fixture()
def team(project, signup, grant):
    accounts = {
        "admin": signup("admin"),
        "editor": signup("editor"),
        "viewer": signup("viewer"),
    }
    for role, account in accounts.items():
        grant(project, account, role)
    return accounts

def test_editor_cannot_remove_but_admin_can(client, db_session: Session, project, team, signup, grant):
    u3 = signup("u3")
    grant(project, u3, "viewer")

    r = remove(client, team["editor"], project.id, u3.uid)
    assert r.status_code == 403

    r = remove(client, team["admin"], project.id, u3.uid)
    assert r.status_code == 200, r.text
    assert r.json()["success"] is True

    db_session.refresh(project)
    assert u3.uid not in project.members
    assert u3.uid not in project.member_roles

    rows = audit_rows(db_session, project.id, AuditAction.member_removed)
    assert len(rows) == 1
    assert rows[0].actor_user_id == team["admin"].id
    assert rows[0].target_user_id == u3.uid
    assert rows[0].removed_role == "viewer"

@pytest.mark.parametrize("role", ["editor", "viewer"])
def test_low_roles_cannot_manage_members(client, project, team, role):
    actor = team[role]
    other = team["viewer"] if role == "editor" else team["editor"]

    assert change_role(client, actor, project.id, other.uid, "viewer").status_code == 403
    assert remove(client, actor, project.id, other.uid).status_code == 403

def test_self_targeting_rejected(client, owner, project, team):
    admin = team["admin"]
    r = change_role(client, admin, project.id, admin.uid, "editor")
    assert r.status_code == 400
    r = remove(client, admin, project.id, admin.uid)
    assert r.status_code == 400
    assert r.json()["detail"] == "cannot remove yourself from project"

    assert remove(client, owner, project.id, owner.uid).status_code == 400

def test_owner_cannot_be_targeted(client, owner, project, team):
    admin = team["admin"]
    r = change_role(client, admin, project.id, owner.uid, "viewer")
    assert r.status_code == 403
    r = remove(client, admin, project.id, owner.uid)
    assert r.status_code == 403

def test_change_role_records_audit(client, db_session: Session, owner, project, team):
    editor = team["editor"]
    r = change_role(client, owner, project.id, editor.uid, "admin")
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Role changed from editor to admin"

    db_session.refresh(project)
    assert project.member_roles[editor.uid] == "admin"

    rows = audit_rows(db_session, project.id, AuditAction.role_changed)
    assert len(rows) == 1
    assert (rows[0].old_role, rows[0].new_role) == ("editor", "admin")
    assert rows[0].actor_user_id == owner.id

def test_same_role_is_a_noop(client, db_session: Session, owner, project, team):
    r = change_role(client, owner, project.id, team["viewer"].uid, "viewer")
    assert r.status_code == 200
    assert audit_rows(db_session, project.id, AuditAction.role_changed) == []

def test_admin_role_changes_are_strict(client, db_session: Session, project, team):
    admin = team["admin"]

    assert change_role(client, admin, project.id, team["editor"].uid, "viewer").status_code == 200
    assert change_role(client, admin, project.id, team["viewer"].uid, "editor").status_code == 200

    # cannot mint a peer, cannot touch a peer
    assert change_role(client, admin, project.id, team["editor"].uid, "admin").status_code == 403
    assert change_role(client, admin, project.id, team["editor"].uid, "owner").status_code == 403

def test_admin_peer_grant_when_enabled(client, db_session: Session, project, team, monkeypatch):
    monkeypatch.setattr(settings, "rbac_allow_peer_role_assignment", True)
    admin = team["admin"]

    r = change_role(client, admin, project.id, team["editor"].uid, "admin")
    assert r.status_code == 200, r.text
    db_session.refresh(project)
    assert project.member_roles[team["editor"].uid] == "admin"

    # now a peer: off limits
    assert change_role(client, admin, project.id, team["editor"].uid, "viewer").status_code == 403

def test_admin_cannot_remove_admin(client, project, team, signup, grant):
    other_admin = signup("admin2")
    grant(project, other_admin, "admin")
    assert remove(client, team["admin"], project.id, other_admin.uid).status_code == 403

def test_unknown_target(client, owner, project, team):
    stranger = str(uuid.uuid4())
    assert change_role(client, owner, project.id, stranger, "viewer").status_code == 404
    assert remove(client, owner, project.id, stranger).status_code == 404
    assert remove(client, owner, uuid.uuid4(), team["viewer"].uid).status_code == 404

def test_invalid_role_value(client, owner, project, team):
    assert change_role(client, owner, project.id, team["viewer"].uid, "root").status_code == 400

def test_owner_removes_then_role_invariant_holds(client, db_session: Session, owner, project, team):
    for account in team.values():
        r = remove(client, owner, project.id, account.uid)
        assert r.status_code == 200, r.text

    db_session.refresh(project)
    assert project.members == [owner.uid]
    assert project.member_roles == {}

def test_member_lookup(client, owner, project, team, signup):
    outsider = signup("outsider")
    ghost = str(uuid.uuid4())
    body = {"member_ids": [owner.uid, team["editor"].uid, ghost]}

    r = client.post(f"/projects/{project.id}/members/lookup", json=body, headers=team["viewer"].headers)
    assert r.status_code == 200, r.text
    rows = r.json()
    assert [m["uid"] for m in rows] == [owner.uid, team["editor"].uid, ghost]
    assert rows[1]["email"] == team["editor"].email
    assert rows[2] == {"uid": ghost, "email": "Unknown user", "display_name": None}

    r = client.post(f"/projects/{project.id}/members/lookup", json=body, headers=outsider.headers)
    assert r.status_code == 403
