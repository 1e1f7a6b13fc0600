from __future__ import annotations

import os
import time

import requests
from rich import print

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

def post(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    headers = {"content-type": "application/json"}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.post(f"{BASE}{path}", headers=headers, json=json, timeout=10)

def get(path: str, *, jwt: str | None = None) -> requests.Response:
    headers = {}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.get(f"{BASE}{path}", headers=headers, timeout=10)

def patch(path: str, *, jwt: str, json: dict) -> requests.Response:
    headers = {"content-type": "application/json", "authorization": f"bearer {jwt}"}
    return requests.patch(f"{BASE}{path}", headers=headers, json=json, timeout=10)

def login(email: str) -> str:
    r = post("/auth/request-link", json={"email": email})
    r.raise_for_status()
    token = r.json()["token"]

    r2 = post("/auth/redeem", json={"token": token})
    r2.raise_for_status()
    return r2.json()["access_token"]

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: Exception | None = None

    while time.time() < deadline:
        try:
            r = get("/ready")
            if r.status_code == 200:
                return
        except requests.RequestException as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def main() -> None:
    print("[bold]demo: create project -> invite -> accept -> change role -> remove -> migration check[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    member_email = "member@example.com"
    owner_jwt = login("owner@example.com")
    member_jwt = login(member_email)
    print("owner and member authed")

    r = post("/projects", jwt=owner_jwt, json={"name": f"demo project {int(time.time())}"})
    r.raise_for_status()
    project_id = r.json()["id"]
    print("created project:", project_id)

    r = post(f"/projects/{project_id}/invitations", jwt=owner_jwt, json={"email": member_email, "role": "viewer"})
    r.raise_for_status()
    invitation_id = r.json()["invitation_id"]
    print("invited:", member_email)

    r = get("/invitations", jwt=member_jwt)
    r.raise_for_status()
    print("member sees invitations:", len(r.json()))

    post(f"/invitations/{invitation_id}/accept", jwt=member_jwt).raise_for_status()
    print("invitation accepted")

    r = get(f"/projects/{project_id}", jwt=owner_jwt)
    r.raise_for_status()
    roles = r.json()["member_roles"]
    member_id = next(iter(roles))
    print("member roles:", roles)

    r = patch(f"/projects/{project_id}/members/{member_id}", jwt=owner_jwt, json={"new_role": "editor"})
    r.raise_for_status()
    print(r.json()["message"])

    r = requests.delete(
        f"{BASE}/projects/{project_id}/members/{member_id}",
        headers={"authorization": f"bearer {owner_jwt}"},
        timeout=10,
    )
    r.raise_for_status()
    print(r.json()["message"])

    r = get("/migrations/needed", jwt=owner_jwt)
    r.raise_for_status()
    needed = r.json()
    print("projects to migrate:", needed["projects_to_migrate"])

    if needed["needs_migration"]:
        r = post("/migrations", jwt=owner_jwt, json={"dry_run": True})
        r.raise_for_status()
        print("migration plan:", r.json()["migration_plan"])

        r = post("/migrations", jwt=owner_jwt, json={})
        r.raise_for_status()
        body = r.json()
        print(f"migrated {len(body['successful'])}, failed {len(body['failed'])}")

    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()
