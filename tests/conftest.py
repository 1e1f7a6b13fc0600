import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import uuid
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import taskflow.models  # noqa: F401  registers every table on Base.metadata
from taskflow.db import Base, get_db
from taskflow.main import create_app
from taskflow.models.project import Project
from taskflow.models.user import User

@pytest.fixture()
def engine():
    database_url = os.environ["DATABASE_URL"]

    kwargs: dict = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # one shared in-memory db across the test client's worker threads
        kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}

    engine = create_engine(database_url, **kwargs)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture()
def db_session(engine) -> Session:
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def client(db_session: Session) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    return TestClient(app)

@dataclass
class Account:
    email: str
    jwt: str
    id: uuid.UUID

    @property
    def uid(self) -> str:
        return str(self.id)

    @property
    def headers(self) -> dict[str, str]:
        return {"authorization": f"bearer {self.jwt}"}

def _login(client, email: str) -> str:
    r = client.post("/auth/request-link", json={"email": email})
    assert r.status_code == 200, r.text
    token = r.json()["token"]

    r = client.post("/auth/redeem", json={"token": token})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]

@pytest.fixture()
def signup(client, db_session: Session):
    def _signup(prefix: str) -> Account:
        email = f"{prefix}+{uuid.uuid4().hex[:8]}@example.com"
        jwt = _login(client, email)
        user = db_session.scalar(select(User).where(User.email == email))
        assert user is not None
        return Account(email=email, jwt=jwt, id=user.id)

    return _signup

@pytest.fixture()
def owner(signup) -> Account:
    return signup("owner")

@pytest.fixture()
def project(client, db_session: Session, owner: Account) -> Project:
    r = client.post("/projects", json={"name": f"seeded-{uuid.uuid4().hex[:6]}"}, headers=owner.headers)
    assert r.status_code == 200, r.text

    p = db_session.get(Project, uuid.UUID(r.json()["id"]))
    assert p is not None
    return p

@pytest.fixture()
def grant(db_session: Session):
    # direct db write for speed + clarity
    def _grant(project: Project, account: Account, role: str) -> None:
        project.add_member(account.id)
        project.set_member_role(account.id, role)
        db_session.add(project)
        db_session.commit()

    return _grant
