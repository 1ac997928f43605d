import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Any

import jwt
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from taskmate.auth.tokens import subject_from_token
from taskmate.chat.inbox import Inbox
from taskmate.db import get_session_factory
from taskmate.errors import Forbidden, NotFound
from taskmate.models.user import User
from taskmate.rbac.deps import check_perm, load_project_context
from taskmate.realtime.hub import APPENDS_TOPIC, Subscription, hub, project_topic

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)

WS_UNAUTHENTICATED = 4401
WS_FORBIDDEN = 4403
WS_NOT_FOUND = 4404

def _bearer(websocket: WebSocket, token: str | None) -> str | None:
    # browsers cannot set headers on a websocket, so the query param wins
    if token:
        return token
    scheme, _, credentials = websocket.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None

def _authenticate(db: Session, token: str | None) -> User | None:
    if not token:
        return None
    try:
        user_id = subject_from_token(token)
    except (jwt.PyJWTError, KeyError, ValueError):
        return None
    return db.get(User, user_id)

# each helper owns a short session: nothing stays open while the socket does

def _admit_to_project(sessions: sessionmaker, token: str | None, project_id: uuid.UUID) -> tuple[int | None, uuid.UUID | None]:
    with sessions() as db:
        user = _authenticate(db, token)
        if user is None:
            return WS_UNAUTHENTICATED, None
        try:
            check_perm(load_project_context(db, project_id, user.id), "chat:subscribe")
        except NotFound:
            return WS_NOT_FOUND, user.id
        except Forbidden:
            return WS_FORBIDDEN, user.id
        return None, user.id

def _load_inbox(sessions: sessionmaker, token: str | None) -> Inbox | None:
    with sessions() as db:
        user = _authenticate(db, token)
        if user is None:
            return None
        return Inbox.rebuild(db, user.id)

async def _pump(
    websocket: WebSocket,
    sub: Subscription,
    transform: Callable[[dict[str, Any]], dict[str, Any] | None] | None,
) -> None:
    while True:
        event = await sub.get()
        if transform is not None:
            event = transform(event)
            if event is None:
                continue
        await websocket.send_json(event)

async def _receive(websocket: WebSocket) -> None:
    while True:
        text = await websocket.receive_text()
        if text == "ping":
            await websocket.send_json({"type": "pong"})

async def _serve(
    websocket: WebSocket,
    sub: Subscription,
    transform: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None,
) -> None:
    """Run until either side stops: the client leaves or sending fails."""
    tasks = [
        asyncio.create_task(_pump(websocket, sub, transform)),
        asyncio.create_task(_receive(websocket)),
    ]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)

    for result in results:
        if isinstance(result, Exception) and not isinstance(result, WebSocketDisconnect):
            logger.warning("websocket on %s closed after error", sub.topic, exc_info=result)

@router.websocket("/ws/projects/{project_id}")
async def project_channel(
    websocket: WebSocket,
    project_id: uuid.UUID,
    token: str | None = Query(default=None),
    sessions: sessionmaker = Depends(get_session_factory),
):
    denied, user_id = await run_in_threadpool(_admit_to_project, sessions, _bearer(websocket, token), project_id)
    if denied == WS_UNAUTHENTICATED:
        await websocket.close(code=denied, reason="not authenticated")
        return
    if denied is not None:
        await websocket.close(code=denied, reason="not a project participant")
        return

    # subscription lives exactly as long as the viewing session
    with hub.subscription(project_topic(project_id)) as sub:
        await websocket.accept()
        await websocket.send_json({"type": "subscribed", "topic": sub.topic})
        logger.info("user %s joined chat for project %s", user_id, project_id)
        await _serve(websocket, sub)
    logger.info("user %s left chat for project %s", user_id, project_id)

@router.websocket("/ws/inbox")
async def inbox_channel(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    sessions: sessionmaker = Depends(get_session_factory),
):
    # subscribe before the rebuild so no append slips between the two
    with hub.subscription(APPENDS_TOPIC) as sub:
        inbox = await run_in_threadpool(_load_inbox, sessions, _bearer(websocket, token))
        if inbox is None:
            await websocket.close(code=WS_UNAUTHENTICATED, reason="not authenticated")
            return

        # only this user's projects take up queue space from here on
        watched = {str(pid) for pid in inbox.project_ids()}
        sub.accept = lambda event: event.get("project_id") in watched

        def _project(event: dict[str, Any]) -> dict[str, Any] | None:
            entry = inbox.apply(event)
            if entry is None:
                return None
            return {
                "type": "inbox.updated",
                "item": entry.to_out().model_dump(mode="json"),
                "order": [str(pid) for pid in inbox.project_ids()],
            }

        await websocket.accept()
        await websocket.send_json({
            "type": "inbox.snapshot",
            "items": [c.model_dump(mode="json") for c in inbox.to_out()],
        })
        await _serve(websocket, sub, _project)
