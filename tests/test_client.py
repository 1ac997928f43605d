import asyncio
import json
import uuid

import httpx
import pytest

from taskmate.client import ChatView, DeferredReject, TaskMateClient

PROJECT = str(uuid.uuid4())

class FakeApi:
    """Just enough of the HTTP surface to drive the client."""

    def __init__(self, fail_posts: bool = False):
        self.calls: list[tuple[str, str, dict | None]] = []
        self.history: list[dict] = []
        self.fail_posts = fail_posts

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))

        if request.method == "PATCH" and request.url.path.startswith("/requests/"):
            return httpx.Response(200, json={"id": request.url.path.rsplit("/", 1)[-1], "status": body["action"] + "ed"})
        if request.url.path == f"/projects/{PROJECT}/messages":
            if request.method == "GET":
                return httpx.Response(200, json=self.history)
            if self.fail_posts:
                return httpx.Response(500, json={"detail": "message append failed"})
            stored = {"id": str(uuid.uuid4()), "project_id": PROJECT, "content": body["content"]}
            self.history.append(stored)
            return httpx.Response(201, json=stored)
        return httpx.Response(404, json={"detail": "not found"})

def make_client(api: FakeApi) -> TaskMateClient:
    return TaskMateClient("http://taskmate.test", token="t", transport=httpx.MockTransport(api))

def test_client_sends_bearer_and_raises_on_error():
    api = FakeApi()
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        return api(request)

    async def scenario():
        async with TaskMateClient("http://taskmate.test", token="abc", transport=httpx.MockTransport(handler)) as c:
            await c.history(PROJECT)
            with pytest.raises(httpx.HTTPStatusError):
                await c.get_project(uuid.uuid4())

    asyncio.run(scenario())
    assert seen["auth"] == "bearer abc"

def test_undone_reject_is_never_sent():
    api = FakeApi()

    async def scenario():
        async with make_client(api) as c:
            pending = DeferredReject(c, "r1", delay=0.05).start()
            await asyncio.sleep(0)
            assert pending.undo() is True
            assert await pending.wait() is None
            return pending

    pending = asyncio.run(scenario())
    assert pending.issued is False
    assert api.calls == []

def test_reject_goes_out_after_delay():
    api = FakeApi()

    async def scenario():
        async with make_client(api) as c:
            pending = DeferredReject(c, "r1", delay=0.01).start()
            result = await pending.wait()
            return pending, result

    pending, result = asyncio.run(scenario())
    assert pending.issued is True
    assert pending.undo() is False
    assert result["status"] == "rejected"
    assert api.calls == [("PATCH", "/requests/r1", {"action": "reject"})]

def test_chat_view_dedupes_broadcasts_and_refetches_on_append():
    api = FakeApi()
    api.history = [{"id": "m1", "project_id": PROJECT, "content": "from the log"}]

    async def scenario():
        async with make_client(api) as c:
            view = ChatView(c, PROJECT)
            broadcast = {"type": "message.broadcast", "message": {"id": "b1", "content": "fast"}}
            await view.apply(broadcast)
            await view.apply(broadcast)
            optimistic = [m["content"] for m in view.messages]
            await view.apply({"type": "message.appended", "project_id": PROJECT, "message_id": "m1"})
            return optimistic, view.messages

    optimistic, final = asyncio.run(scenario())
    assert optimistic == ["fast"]
    assert final == api.history

def test_chat_view_send_failure_reloads_history():
    api = FakeApi(fail_posts=True)
    api.history = [{"id": "m1", "project_id": PROJECT, "content": "earlier"}]

    async def scenario():
        async with make_client(api) as c:
            view = ChatView(c, PROJECT, author={"id": "u1", "name": "Alice"})
            with pytest.raises(httpx.HTTPStatusError):
                await view.send("will not stick")
            return view.messages

    assert asyncio.run(scenario()) == api.history
    method, path, body = api.calls[0]
    assert (method, path, body["content"]) == ("POST", f"/projects/{PROJECT}/messages", "will not stick")
    assert "client_id" in body
