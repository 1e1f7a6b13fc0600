from datetime import timedelta

from taskflow.auth.tokens import hash_magic_token, now_utc
from taskflow.models.auth_magic_link import AuthMagicLink

def _request_magic_token(client, email: str = "magiclink@example.com") -> str:
    r = client.post("/auth/request-link", json={"email": email})
    assert r.status_code == 200, r.text
    token = r.json().get("token")
    assert token, "expected token to be returned in non-prod env"
    return token

def test_magic_link_cannot_be_reused(client):
    token = _request_magic_token(client)

    r1 = client.post("/auth/redeem", json={"token": token})
    assert r1.status_code == 200, r1.text
    assert "access_token" in r1.json()

    r2 = client.post("/auth/redeem", json={"token": token})
    assert r2.status_code == 400, r2.text
    assert r2.json()["code"] == "invalid_argument"
    assert "used" in r2.json()["detail"].lower()

def test_magic_link_expires(client, db_session):
    token = _request_magic_token(client)
    token_hash = hash_magic_token(token)

    row = db_session.get(AuthMagicLink, token_hash)
    assert row is not None
    row.expires_at = now_utc() - timedelta(seconds=1)
    db_session.add(row)
    db_session.commit()

    r = client.post("/auth/redeem", json={"token": token})
    assert r.status_code == 400, r.text
    assert "expired" in r.json()["detail"].lower()

def test_unknown_token_rejected(client):
    r = client.post("/auth/redeem", json={"token": "not-a-real-token"})
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid token"

def test_email_identity_is_case_insensitive(client):
    first = _request_magic_token(client, "Casey@Example.com")
    second = _request_magic_token(client, "casey@example.COM")

    a = client.post("/auth/redeem", json={"token": first}).json()["access_token"]
    b = client.post("/auth/redeem", json={"token": second}).json()["access_token"]

    me_a = client.post("/projects", json={"name": "a"}, headers={"authorization": f"bearer {a}"}).json()
    me_b = client.post("/projects", json={"name": "b"}, headers={"authorization": f"bearer {b}"}).json()
    assert me_a["owner"] == me_b["owner"]

def test_bad_bearer_token(client):
    r = client.get("/projects", headers={"authorization": "bearer garbage"})
    assert r.status_code == 401
    assert r.json()["code"] == "unauthenticated"
