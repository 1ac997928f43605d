from __future__ import annotations

import os
import time
import uuid

import requests
from rich import print

from taskmate.auth.tokens import issue_access_token

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")

def call(method: str, path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    headers = {"content-type": "application/json"}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.request(method, f"{BASE}{path}", headers=headers, json=json, timeout=10)

def get(path: str, *, jwt: str | None = None) -> requests.Response:
    return call("GET", path, jwt=jwt)

def signup(name: str) -> str:
    # the identity provider would mint this token in a real deployment
    jwt = issue_access_token(uuid.uuid4())
    email = f"{name.lower()}+{int(time.time())}@example.com"
    call("PUT", "/me", jwt=jwt, json={"name": name, "email": email}).raise_for_status()
    return jwt

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
    print("[bold]demo: create project -> request -> approve -> team full -> chat[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    owner = signup("Olena")
    joiner = signup("Marko")
    late = signup("Nadia")
    print("users signed up")

    r = call("POST", "/projects", jwt=owner, json={"title": "demo project", "description": "two seats", "team_size": 2})
    r.raise_for_status()
    project_id = r.json()["id"]
    print("created project:", project_id)

    r = call("POST", f"/projects/{project_id}/requests", jwt=joiner, json={"message": "I can do the backend"})
    r.raise_for_status()
    request_id = r.json()["id"]
    print("request sent:", request_id)

    r = call("PATCH", f"/requests/{request_id}", jwt=owner, json={"action": "approve"})
    r.raise_for_status()
    print("request", r.json()["status"])

    r = call("POST", f"/projects/{project_id}/requests", jwt=late, json={"message": "room for one more?"})
    print(f"late request -> {r.status_code} [yellow]{r.json()['detail']}[/yellow]")

    call("POST", f"/projects/{project_id}/messages", jwt=joiner, json={"content": "hi all"}).raise_for_status()
    call("POST", f"/projects/{project_id}/messages", jwt=owner, json={"content": "welcome aboard"}).raise_for_status()

    r = get(f"/projects/{project_id}/messages", jwt=owner)
    r.raise_for_status()
    for m in r.json():
        print(f"  [cyan]{m['user']['name']}[/cyan]: {m['content']}")

    r = get("/me/chats", jwt=joiner)
    r.raise_for_status()
    print("inbox:", [c["title"] for c in r.json()])
    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()
