import uuid
from types import SimpleNamespace

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskflow.errors import Internal
from taskflow.models.audit_log import AuditLogEntry
from taskflow.models.enums import AuditAction, MigrationStatus, Role
from taskflow.models.migration_log import MigrationLog
from taskflow.models.project import Project
from taskflow.services import migration as migration_service
from taskflow.services.migration import validate_project_for_migration, verify_project

def legacy_project(db: Session, owner_id: uuid.UUID, members: list[str], name: str = "legacy") -> Project:
    p = Project(name=name, owner_id=owner_id, members=members, member_roles=None, boards=[])
    db.add(p)
    db.commit()
    return p

def migrate(client, account, **body):
    return client.post("/migrations", json=body, headers=account.headers)

def migration_audits(db: Session) -> int:
    q = select(func.count()).select_from(AuditLogEntry).where(AuditLogEntry.action == AuditAction.rbac_migration)
    return db.scalar(q)

def test_validate_flags_structural_problems():
    always = lambda uid: True  # noqa: E731

    missing_owner = SimpleNamespace(owner="", members=["a"], member_roles=None)
    result = validate_project_for_migration(missing_owner, always)
    assert not result.is_valid
    assert "Missing owner field" in result.errors

    bad_members = SimpleNamespace(owner="o", members="o,a", member_roles=None)
    result = validate_project_for_migration(bad_members, always)
    assert not result.is_valid
    assert result.errors == ["Missing or invalid members array"]

    messy = SimpleNamespace(owner="o", members=["a", "b", "a"], member_roles=None)
    result = validate_project_for_migration(messy, always, Role.viewer)
    assert result.is_valid
    assert result.suggested_roles == {"a": Role.viewer, "b": Role.viewer}
    assert "Owner is not in members array - will be added" in result.warnings
    assert "Duplicate members found - will be deduplicated" in result.warnings

def test_validate_skips_migrated_even_when_empty():
    result = validate_project_for_migration(
        SimpleNamespace(owner="o", members=["o"], member_roles={}), lambda uid: True
    )
    assert result.already_migrated

def test_verify_project_reports_failed_checks():
    sound = SimpleNamespace(owner="o", members=["o", "a"], member_roles={"a": "editor"})
    assert verify_project(sound) == []

    broken = SimpleNamespace(owner="o", members=["o", "a", "b"], member_roles={"o": "admin", "a": "editor", "z": "viewer"})
    assert verify_project(broken) == ["owner_not_in_member_roles", "all_members_have_roles", "no_orphaned_roles"]

    legacy = SimpleNamespace(owner="o", members=["o"], member_roles=None)
    assert verify_project(legacy) == ["has_member_roles"]

def test_dry_run_then_live_migration(client, db_session: Session, owner, signup):
    u2 = signup("u2")
    p = legacy_project(db_session, owner.id, [owner.uid, u2.uid, "ghost-user"])
    pid = str(p.id)

    r = migrate(client, owner, dry_run=True)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["phase"] == "validation"
    assert body["dry_run"] is True
    assert [v["project_id"] for v in body["valid_projects"]] == [pid]
    assert body["valid_projects"][0]["suggested_roles"] == {u2.uid: "editor"}
    assert body["warnings"][0]["warnings"] == ["Member ghost-user not found - will be removed"]
    assert body["migration_plan"] == {"projects_to_migrate": 1, "estimated_time": 2, "would_fail": 0}

    # dry run writes nothing
    db_session.refresh(p)
    assert p.member_roles is None
    assert db_session.scalar(select(func.count()).select_from(MigrationLog)) == 0

    r = migrate(client, owner)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["phase"] == "completed"
    assert [s["project_id"] for s in body["successful"]] == [pid]
    assert body["failed"] == []
    assert body["verification"]["verified"] == [pid]
    assert body["verification"]["inconsistencies"] == []

    db_session.refresh(p)
    assert p.members == [owner.uid, u2.uid]
    assert p.member_roles == {u2.uid: "editor"}
    assert p.migrated_at is not None
    assert migration_audits(db_session) == 1

    log = db_session.get(MigrationLog, uuid.UUID(body["migration_id"]))
    assert log.status == MigrationStatus.completed
    assert log.total_projects == 1
    assert log.results["successful"] == 1
    assert log.results["verified"] == 1
    assert log.progress["project_0"]["project_id"] == pid
    assert log.completed_at is not None

def test_migration_is_idempotent(client, db_session: Session, owner, signup):
    u2 = signup("u2")
    p = legacy_project(db_session, owner.id, [owner.uid, u2.uid])

    assert migrate(client, owner).status_code == 200
    db_session.refresh(p)
    before = dict(p.member_roles)

    r = migrate(client, owner)
    assert r.status_code == 200
    body = r.json()
    assert body["valid_projects"] == []
    assert body["successful"] == []
    assert [a["project_id"] for a in body["already_migrated"]] == [str(p.id)]

    db_session.refresh(p)
    assert p.member_roles == before
    assert migration_audits(db_session) == 1

def test_role_overrides_apply_to_members_only(client, db_session: Session, owner, signup):
    u2 = signup("u2")
    p = legacy_project(db_session, owner.id, [owner.uid, u2.uid])

    mapping = {str(p.id): {u2.uid: "viewer", "someone-else": "admin"}}
    r = migrate(client, owner, role_mapping=mapping)
    assert r.status_code == 200, r.text

    db_session.refresh(p)
    assert p.member_roles == {u2.uid: "viewer"}
    assert r.json()["verification"]["verified"] == [str(p.id)]

def test_bad_project_does_not_abort_batch(client, db_session: Session, owner, signup):
    u2 = signup("u2")
    bad = legacy_project(db_session, owner.id, [owner.uid, u2.uid], name="bad")
    good = legacy_project(db_session, owner.id, [owner.uid, u2.uid], name="good")

    r = migrate(client, owner, role_mapping={str(bad.id): {u2.uid: "owner"}})
    assert r.status_code == 200, r.text
    body = r.json()
    assert [f["project_id"] for f in body["failed"]] == [str(bad.id)]
    assert "invalid role override" in body["failed"][0]["error"]
    assert [s["project_id"] for s in body["successful"]] == [str(good.id)]

    db_session.refresh(bad)
    db_session.refresh(good)
    assert bad.member_roles is None
    assert good.member_roles == {u2.uid: "editor"}

    log = db_session.get(MigrationLog, uuid.UUID(body["migration_id"]))
    assert log.status == MigrationStatus.completed_with_errors
    assert log.results["failed"] == 1
    assert len(log.progress) == 2

    # the failed project is picked up again on the next run
    r = migrate(client, owner)
    assert [s["project_id"] for s in r.json()["successful"]] == [str(bad.id)]

def test_invalid_projects_are_reported(client, db_session: Session, owner):
    p = legacy_project(db_session, owner.id, [owner.uid])
    p.members = {"not": "a list"}
    db_session.commit()

    body = migrate(client, owner, dry_run=True).json()
    assert body["invalid_projects"][0]["errors"] == ["Missing or invalid members array"]
    assert body["migration_plan"]["would_fail"] == 1

def test_only_owned_projects_are_migrated(client, db_session: Session, owner, signup):
    other = signup("other")
    theirs = legacy_project(db_session, other.id, [other.uid, owner.uid])

    body = migrate(client, owner).json()
    assert body["total_projects"] == 0

    db_session.refresh(theirs)
    assert theirs.member_roles is None

def test_concurrent_run_is_refused(client, db_session: Session, owner):
    legacy_project(db_session, owner.id, [owner.uid])
    db_session.add(MigrationLog(user_id=owner.id, user_email=owner.email, status=MigrationStatus.in_progress))
    db_session.commit()

    r = migrate(client, owner)
    assert r.status_code == 412
    assert migrate(client, owner, dry_run=True).status_code == 200

def test_status_endpoints(client, db_session: Session, owner, signup):
    legacy_project(db_session, owner.id, [owner.uid])
    client.post("/projects", json={"name": "fresh"}, headers=owner.headers)

    r = client.get("/migrations/needed", headers=owner.headers)
    assert r.json() == {
        "needs_migration": True,
        "total_projects": 2,
        "projects_to_migrate": 1,
        "projects_already_migrated": 1,
    }

    migration_id = migrate(client, owner).json()["migration_id"]

    r = client.get("/migrations/needed", headers=owner.headers)
    assert r.json()["needs_migration"] is False

    r = client.get(f"/migrations/{migration_id}", headers=owner.headers)
    assert r.status_code == 200
    assert r.json()["status"] == "completed"

    r = client.get("/migrations", headers=owner.headers)
    assert [m["id"] for m in r.json()["migrations"]] == [migration_id]

    other = signup("other")
    assert client.get(f"/migrations/{migration_id}", headers=other.headers).status_code == 403
    assert client.get("/migrations", headers=other.headers).json() == {"migrations": []}
    assert client.get(f"/migrations/{uuid.uuid4()}", headers=owner.headers).status_code == 404

def test_live_migration_adds_missing_owner(client, db_session: Session, owner, signup):
    u2 = signup("u2")
    p = legacy_project(db_session, owner.id, [u2.uid, u2.uid])
    pid = str(p.id)

    r = migrate(client, owner)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["warnings"][0]["warnings"] == [
        "Owner is not in members array - will be added",
        "Duplicate members found - will be deduplicated",
    ]
    assert body["verification"]["verified"] == [pid]

    db_session.refresh(p)
    assert p.members[0] == owner.uid
    assert p.members == [owner.uid, u2.uid]
    assert p.member_roles == {u2.uid: "editor"}

def test_failed_log_write_does_not_lock_out_reruns(client, db_session: Session, owner, signup, monkeypatch):
    u2 = signup("u2")
    p = legacy_project(db_session, owner.id, [owner.uid, u2.uid])

    def failing_write(db, log, **changes):
        raise Internal("Migration failed: log table unavailable")

    monkeypatch.setattr(migration_service, "_write_log", failing_write)
    r = migrate(client, owner)
    assert r.status_code == 500
    assert r.json()["code"] == "internal"

    log = db_session.scalar(select(MigrationLog).where(MigrationLog.user_id == owner.id))
    db_session.refresh(log)
    assert log.status == MigrationStatus.completed_with_errors
    assert log.completed_at is not None
    assert log.results["error"] == "Migration failed: log table unavailable"

    monkeypatch.undo()
    r = migrate(client, owner)
    assert r.status_code == 200, r.text
    db_session.refresh(p)
    assert p.member_roles == {u2.uid: "editor"}
