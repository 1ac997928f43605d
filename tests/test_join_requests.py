import uuid

from taskmate.auth.tokens import issue_access_token

def signup(client, name: str) -> str:
    jwt = issue_access_token(uuid.uuid4())
    r = client.put("/me", json={"name": name, "email": f"{name.lower()}@example.com"}, headers=auth(jwt))
    assert r.status_code == 200, r.text
    return jwt

def auth(jwt: str) -> dict[str, str]:
    return {"authorization": f"bearer {jwt}"}

def create_project(client, jwt: str, team_size: int = 3) -> str:
    r = client.post(
        "/projects",
        json={"title": "robot arm", "description": "pick and place", "team_size": team_size},
        headers=auth(jwt),
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]

def request_to_join(client, jwt: str, project_id: str, message: str | None = None):
    return client.post(f"/projects/{project_id}/requests", json={"message": message}, headers=auth(jwt))

def test_team_of_two_is_full_after_one_approval(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    carol = signup(client, "Carol")
    project_id = create_project(client, alice, team_size=2)

    r = request_to_join(client, bob, project_id, "hi")
    assert r.status_code == 201
    assert r.json()["status"] == "pending"
    request_id = r.json()["id"]

    r = client.patch(f"/requests/{request_id}", json={"action": "approve"}, headers=auth(alice))
    assert r.status_code == 200
    assert r.json()["status"] == "approved"

    r = client.get(f"/projects/{project_id}", headers=auth(alice))
    assert r.json()["member_count"] == 2
    assert [m["name"] for m in r.json()["members"]] == ["Bob"]

    r = request_to_join(client, carol, project_id)
    assert r.status_code == 409
    assert r.json()["detail"] == "team full"

def test_request_message_limit(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    project_id = create_project(client, alice)

    r = request_to_join(client, bob, project_id, "x" * 101)
    assert r.status_code == 422
    assert r.json()["detail"] == "message too long (max 100 characters)"

    # nothing was written
    r = client.get("/me/requests/sent", headers=auth(bob))
    assert r.json() == []

    r = request_to_join(client, bob, project_id, "x" * 100)
    assert r.status_code == 201

def test_withdraw_then_resubmit(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    project_id = create_project(client, alice)

    first = request_to_join(client, bob, project_id).json()["id"]
    r = client.delete(f"/requests/{first}", headers=auth(bob))
    assert r.status_code == 200
    assert r.json()["status"] == "withdrawn"

    r = request_to_join(client, bob, project_id)
    assert r.status_code == 201
    second = r.json()["id"]
    assert second != first

    statuses = {row["id"]: row["status"] for row in client.get("/me/requests/sent", headers=auth(bob)).json()}
    assert statuses == {first: "withdrawn", second: "pending"}

def test_owner_cannot_request_own_project(client):
    alice = signup(client, "Alice")
    project_id = create_project(client, alice)

    r = request_to_join(client, alice, project_id)
    assert r.status_code == 403

def test_second_pending_request_conflicts(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    project_id = create_project(client, alice)

    assert request_to_join(client, bob, project_id).status_code == 201
    r = request_to_join(client, bob, project_id)
    assert r.status_code == 409
    assert r.json()["detail"] == "request already pending"

def test_member_cannot_request_again(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    project_id = create_project(client, alice)

    request_id = request_to_join(client, bob, project_id).json()["id"]
    client.patch(f"/requests/{request_id}", json={"action": "approve"}, headers=auth(alice))

    r = request_to_join(client, bob, project_id)
    assert r.status_code == 409
    assert r.json()["detail"] == "already a member"

def test_terminal_requests_are_final(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    project_id = create_project(client, alice)

    request_id = request_to_join(client, bob, project_id).json()["id"]
    r = client.patch(f"/requests/{request_id}", json={"action": "reject"}, headers=auth(alice))
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"

    r = client.patch(f"/requests/{request_id}", json={"action": "approve"}, headers=auth(alice))
    assert r.status_code == 409

    r = client.delete(f"/requests/{request_id}", headers=auth(bob))
    assert r.status_code == 409

    # still only the owner's seat
    r = client.get(f"/projects/{project_id}", headers=auth(alice))
    assert r.json()["member_count"] == 1

def test_only_owner_decides_and_only_requester_withdraws(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    carol = signup(client, "Carol")
    project_id = create_project(client, alice)

    request_id = request_to_join(client, bob, project_id).json()["id"]

    r = client.patch(f"/requests/{request_id}", json={"action": "approve"}, headers=auth(bob))
    assert r.status_code == 403

    r = client.delete(f"/requests/{request_id}", headers=auth(alice))
    assert r.status_code == 403

    r = client.get(f"/projects/{project_id}/requests", headers=auth(carol))
    assert r.status_code == 403

    r = client.get(f"/projects/{project_id}/requests", headers=auth(alice))
    assert r.status_code == 200
    assert [row["id"] for row in r.json()] == [request_id]

def test_unknown_targets(client):
    alice = signup(client, "Alice")

    r = request_to_join(client, alice, str(uuid.uuid4()))
    assert r.status_code == 404

    r = client.patch(f"/requests/{uuid.uuid4()}", json={"action": "approve"}, headers=auth(alice))
    assert r.status_code == 404

    r = client.patch(f"/requests/{uuid.uuid4()}", json={"action": "maybe"}, headers=auth(alice))
    assert r.status_code == 422

def test_requires_authentication(client):
    r = client.get("/me")
    assert r.status_code == 401
    assert r.json()["detail"] == "missing bearer token"

    r = client.get("/me", headers=auth("not-a-jwt"))
    assert r.status_code == 401

    # valid token but no profile yet
    r = client.get("/me", headers=auth(issue_access_token(uuid.uuid4())))
    assert r.status_code == 401
    assert r.json()["detail"] == "user not found"

def test_incoming_requests_grouped_by_project(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    carol = signup(client, "Carol")
    first = create_project(client, alice)
    second = create_project(client, alice)

    request_to_join(client, bob, first)
    request_to_join(client, carol, first)
    withdrawn = request_to_join(client, bob, second).json()["id"]
    client.delete(f"/requests/{withdrawn}", headers=auth(bob))

    r = client.get("/me/requests/incoming", headers=auth(alice))
    assert r.status_code == 200
    body = r.json()
    assert [g["project_id"] for g in body] == [first]
    assert [req["user"]["name"] for req in body[0]["requests"]] == ["Bob", "Carol"]

def test_team_full_approval_leaves_request_pending(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    carol = signup(client, "Carol")
    project_id = create_project(client, alice, team_size=2)

    bob_request = request_to_join(client, bob, project_id).json()["id"]
    carol_request = request_to_join(client, carol, project_id).json()["id"]
    client.patch(f"/requests/{bob_request}", json={"action": "approve"}, headers=auth(alice))

    r = client.patch(f"/requests/{carol_request}", json={"action": "approve"}, headers=auth(alice))
    assert r.status_code == 409
    assert r.json()["detail"] == "team full"

    pending = client.get(f"/projects/{project_id}/requests", headers=auth(alice)).json()
    assert [(row["id"], row["status"]) for row in pending] == [(carol_request, "pending")]

    r = client.patch(f"/requests/{carol_request}", json={"action": "reject"}, headers=auth(alice))
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"

def test_approved_and_withdrawn_requests_are_final(client):
    alice = signup(client, "Alice")
    bob = signup(client, "Bob")
    carol = signup(client, "Carol")
    project_id = create_project(client, alice)

    approved = request_to_join(client, bob, project_id).json()["id"]
    assert client.patch(f"/requests/{approved}", json={"action": "approve"}, headers=auth(alice)).status_code == 200

    for action in ("approve", "reject"):
        r = client.patch(f"/requests/{approved}", json={"action": action}, headers=auth(alice))
        assert r.status_code == 409
    assert client.delete(f"/requests/{approved}", headers=auth(bob)).status_code == 409

    withdrawn = request_to_join(client, carol, project_id).json()["id"]
    assert client.delete(f"/requests/{withdrawn}", headers=auth(carol)).status_code == 200

    for action in ("approve", "reject"):
        r = client.patch(f"/requests/{withdrawn}", json={"action": action}, headers=auth(alice))
        assert r.status_code == 409
    assert client.delete(f"/requests/{withdrawn}", headers=auth(carol)).status_code == 409

    r = client.get(f"/projects/{project_id}", headers=auth(alice))
    assert r.json()["member_count"] == 2
