import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from starlette.websockets import WebSocketDisconnect

from taskmate.auth.tokens import issue_access_token
from taskmate.db import build_engine, get_db, get_session_factory
from taskmate.main import create_app
from taskmate.models import Base, Membership, Project, User
from taskmate.realtime.hub import ChannelHub
from taskmate.routes.ws import _serve

def auth(jwt: str) -> dict[str, str]:
    return {"authorization": f"bearer {jwt}"}

def test_participant_sees_broadcast_then_append(client, make_user, make_project):
    alice = make_user("Alice")
    project = make_project(alice)
    jwt = issue_access_token(alice.id)

    with client.websocket_connect(f"/ws/projects/{project.id}?token={jwt}") as ws:
        assert ws.receive_json() == {"type": "subscribed", "topic": f"project:{project.id}"}

        r = client.post(f"/projects/{project.id}/messages", json={"content": "hello team"}, headers=auth(jwt))
        assert r.status_code == 201

        broadcast = ws.receive_json()
        assert broadcast["type"] == "message.broadcast"
        assert broadcast["message"]["content"] == "hello team"
        assert broadcast["message"]["user"]["name"] == "Alice"

        appended = ws.receive_json()
        assert appended["type"] == "message.appended"
        assert appended["message_id"] == r.json()["id"]

def test_member_can_subscribe_with_header(client, db_session, make_user, make_project):
    alice = make_user("Alice")
    bob = make_user("Bob")
    project = make_project(alice)
    db_session.add(Membership(user_id=bob.id, project_id=project.id))
    db_session.commit()

    with client.websocket_connect(f"/ws/projects/{project.id}", headers=auth(issue_access_token(bob.id))) as ws:
        assert ws.receive_json()["type"] == "subscribed"
        ws.send_text("ping")
        assert ws.receive_json() == {"type": "pong"}

@pytest.mark.parametrize("case,code", [("anonymous", 4401), ("outsider", 4403), ("missing", 4404)])
def test_subscription_refused(client, make_user, make_project, case, code):
    alice = make_user("Alice")
    mallory = make_user("Mallory")
    project = make_project(alice)

    url = f"/ws/projects/{project.id}?token={issue_access_token(mallory.id)}"
    if case == "anonymous":
        url = f"/ws/projects/{project.id}"
    elif case == "missing":
        url = f"/ws/projects/{uuid.uuid4()}?token={issue_access_token(alice.id)}"

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(url) as ws:
            ws.receive_json()
    assert exc.value.code == code

def test_inbox_stream_promotes_active_project(client, make_user, make_project):
    alice = make_user("Alice")
    older = make_project(alice, title="older")
    newer = make_project(alice, title="newer")
    jwt = issue_access_token(alice.id)

    with client.websocket_connect(f"/ws/inbox?token={jwt}") as ws:
        snapshot = ws.receive_json()
        assert snapshot["type"] == "inbox.snapshot"
        assert [i["title"] for i in snapshot["items"]] == ["newer", "older"]

        client.post(f"/projects/{older.id}/messages", json={"content": "ping older"}, headers=auth(jwt))

        update = ws.receive_json()
        assert update["type"] == "inbox.updated"
        assert update["item"]["project_id"] == str(older.id)
        assert update["item"]["last_message"]["content"] == "ping older"
        assert update["order"] == [str(older.id), str(newer.id)]

def test_open_sockets_do_not_hold_the_database(tmp_path):
    # file backed with a session per request, the way the app runs outside tests
    eng = build_engine(f"sqlite:///{tmp_path / 'ws.db'}")
    Base.metadata.create_all(eng)
    Sessions = sessionmaker(bind=eng, autoflush=False, autocommit=False)

    with Sessions() as db:
        alice = User(id=uuid.uuid4(), name="Alice", email="alice@example.com", skills=[])
        bob = User(id=uuid.uuid4(), name="Bob", email="bob@example.com", skills=[])
        db.add_all([alice, bob])
        db.commit()
        project = Project(owner_id=alice.id, title="busy", description="lots of writes", team_size=3)
        db.add(project)
        db.commit()
        alice_jwt, bob_jwt = issue_access_token(alice.id), issue_access_token(bob.id)
        project_id = project.id

    app = create_app()

    def _per_request_db():
        db = Sessions()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _per_request_db
    app.dependency_overrides[get_session_factory] = lambda: Sessions
    client = TestClient(app)

    with client.websocket_connect(f"/ws/projects/{project_id}?token={alice_jwt}") as chat, \
            client.websocket_connect(f"/ws/inbox?token={alice_jwt}") as inbox:
        assert chat.receive_json()["type"] == "subscribed"
        assert inbox.receive_json()["type"] == "inbox.snapshot"

        r = client.post(f"/projects/{project_id}/messages", json={"content": "still writable"}, headers=auth(alice_jwt))
        assert r.status_code == 201

        r = client.post(f"/projects/{project_id}/requests", json={}, headers=auth(bob_jwt))
        assert r.status_code == 201
        r = client.patch(f"/requests/{r.json()['id']}", json={"action": "approve"}, headers=auth(alice_jwt))
        assert r.status_code == 200

        assert chat.receive_json()["type"] == "message.broadcast"
        assert inbox.receive_json()["type"] == "inbox.updated"

    eng.dispose()

class ClosedSocket:
    def __init__(self):
        self.never = asyncio.Event()

    async def receive_text(self):
        await self.never.wait()

    async def send_json(self, data):
        raise RuntimeError("socket already closed")

def test_failed_send_ends_the_session():
    local = ChannelHub(maxsize=4)

    async def scenario():
        with local.subscription("project:x") as sub:
            local.publish("project:x", {"type": "message.appended"})
            await asyncio.wait_for(_serve(ClosedSocket(), sub), timeout=1)

    # returns instead of waiting on the client forever
    asyncio.run(scenario())
