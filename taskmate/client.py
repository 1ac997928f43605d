"""Async client for the TaskMate API, plus the client-side pieces of chat.

``DeferredReject`` holds a reject decision back for a few seconds so the
owner can take it back; the server never sees an undone reject.
``ChatView`` keeps a local copy of a project's chat consistent with the
durable log: broadcasts are shown straight away, and every append
notification (or failed post) replaces the local list with a fresh fetch.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)

class TaskMateClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"authorization": f"bearer {token}"},
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "TaskMateClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, url: str, **kwargs: Any) -> Any:
        r = await self._http.request(method, url, **kwargs)
        r.raise_for_status()
        return r.json()

    # profile

    async def me(self) -> dict[str, Any]:
        return await self._call("GET", "/me")

    async def save_profile(self, **profile: Any) -> dict[str, Any]:
        return await self._call("PUT", "/me", json=profile)

    async def my_projects(self) -> dict[str, Any]:
        return await self._call("GET", "/me/projects")

    async def sent_requests(self) -> list[dict[str, Any]]:
        return await self._call("GET", "/me/requests/sent")

    async def incoming_requests(self) -> list[dict[str, Any]]:
        return await self._call("GET", "/me/requests/incoming")

    async def chats(self) -> list[dict[str, Any]]:
        return await self._call("GET", "/me/chats")

    # projects

    async def create_project(self, title: str, team_size: int, **fields: Any) -> dict[str, Any]:
        return await self._call("POST", "/projects", json={"title": title, "team_size": team_size, **fields})

    async def list_projects(self) -> list[dict[str, Any]]:
        return await self._call("GET", "/projects")

    async def get_project(self, project_id: uuid.UUID | str) -> dict[str, Any]:
        return await self._call("GET", f"/projects/{project_id}")

    async def update_project(self, project_id: uuid.UUID | str, **fields: Any) -> dict[str, Any]:
        return await self._call("PUT", f"/projects/{project_id}", json=fields)

    async def delete_project(self, project_id: uuid.UUID | str) -> dict[str, Any]:
        return await self._call("DELETE", f"/projects/{project_id}")

    # join requests

    async def submit_request(self, project_id: uuid.UUID | str, message: str | None = None) -> dict[str, Any]:
        return await self._call("POST", f"/projects/{project_id}/requests", json={"message": message})

    async def pending_requests(self, project_id: uuid.UUID | str) -> list[dict[str, Any]]:
        return await self._call("GET", f"/projects/{project_id}/requests")

    async def decide_request(self, request_id: uuid.UUID | str, action: str) -> dict[str, Any]:
        return await self._call("PATCH", f"/requests/{request_id}", json={"action": action})

    async def approve(self, request_id: uuid.UUID | str) -> dict[str, Any]:
        return await self.decide_request(request_id, "approve")

    async def reject(self, request_id: uuid.UUID | str) -> dict[str, Any]:
        return await self.decide_request(request_id, "reject")

    async def withdraw_request(self, request_id: uuid.UUID | str) -> dict[str, Any]:
        return await self._call("DELETE", f"/requests/{request_id}")

    # chat

    async def history(self, project_id: uuid.UUID | str) -> list[dict[str, Any]]:
        return await self._call("GET", f"/projects/{project_id}/messages")

    async def post_message(
        self,
        project_id: uuid.UUID | str,
        content: str,
        client_id: uuid.UUID | None = None,
        client_created_at: datetime | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"content": content}
        if client_id is not None:
            body["client_id"] = str(client_id)
        if client_created_at is not None:
            body["client_created_at"] = client_created_at.isoformat()
        return await self._call("POST", f"/projects/{project_id}/messages", json=body)

class DeferredReject:
    """A reject that is only sent once ``delay`` seconds pass without ``undo``."""

    def __init__(self, client: TaskMateClient, request_id: uuid.UUID | str, delay: float = 5.0):
        self._client = client
        self.request_id = request_id
        self.delay = delay
        self.issued = False
        self.result: dict[str, Any] | None = None
        self._task: asyncio.Task | None = None

    def start(self) -> "DeferredReject":
        if self._task is None:
            self._task = asyncio.create_task(self._run())
        return self

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self.issued = True
        self.result = await self._client.reject(self.request_id)
        logger.info("reject for request %s issued", self.request_id)

    def undo(self) -> bool:
        """Cancel the pending reject. Returns False once it has been issued."""
        if self.issued or self._task is None or self._task.done():
            return False
        self._task.cancel()
        logger.info("reject for request %s undone", self.request_id)
        return True

    async def wait(self) -> dict[str, Any] | None:
        if self._task is None:
            return None
        try:
            await self._task
        except asyncio.CancelledError:
            return None
        return self.result

class ChatView:
    def __init__(self, client: TaskMateClient, project_id: uuid.UUID | str, author: dict[str, Any] | None = None):
        self._client = client
        self.project_id = str(project_id)
        self.author = author
        self.messages: list[dict[str, Any]] = []

    def _has(self, message_id: str) -> bool:
        return any(m["id"] == message_id for m in self.messages)

    async def refresh(self) -> list[dict[str, Any]]:
        self.messages = await self._client.history(self.project_id)
        return self.messages

    async def apply(self, event: dict[str, Any]) -> None:
        kind = event.get("type")
        if kind == "message.broadcast":
            message = event["message"]
            if not self._has(message["id"]):
                self.messages.append(message)
        elif kind == "message.appended":
            await self.refresh()

    async def send(self, content: str) -> dict[str, Any]:
        client_id = uuid.uuid4()
        created_at = datetime.now(timezone.utc)
        self.messages.append({
            "id": str(client_id),
            "project_id": self.project_id,
            "content": content,
            "created_at": created_at.isoformat(),
            "user": self.author,
        })
        try:
            return await self._client.post_message(self.project_id, content, client_id, created_at)
        except httpx.HTTPError:
            logger.warning("posting to project %s failed, reloading history", self.project_id)
            await self.refresh()
            raise
