"""Project chat: a best-effort broadcast in front of an authoritative log.

``post_message`` fans the fully formed message out to everyone viewing the
project before it touches the database, then appends it to the durable log.
Only the append is authoritative. Once it commits, a ``message.appended``
notification goes out and subscribers re-fetch the whole history instead of
merging deltas, which absorbs dropped, duplicated or reordered broadcasts.
"""
import logging
import uuid
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskmate.errors import ValidationFailed
from taskmate.models.base import as_utc, now_utc
from taskmate.models.message import Message
from taskmate.models.user import User
from taskmate.rbac.deps import check_perm, load_project_context
from taskmate.realtime.hub import APPENDS_TOPIC, ChannelHub, hub as default_hub, project_topic
from taskmate.schemas.messages import MessageOut
from taskmate.schemas.users import UserRef

logger = logging.getLogger(__name__)

BROADCAST = "message.broadcast"
APPENDED = "message.appended"

def message_out(message: Message, author: User) -> MessageOut:
    return MessageOut(
        id=message.id,
        project_id=message.project_id,
        content=message.content,
        created_at=as_utc(message.created_at),
        user=UserRef(id=author.id, name=author.display_name),
    )

def broadcast_event(
    project_id: uuid.UUID,
    author: User,
    content: str,
    client_id: uuid.UUID | None = None,
    client_created_at: datetime | None = None,
) -> dict[str, Any]:
    created_at = as_utc(client_created_at) if client_created_at else now_utc()
    return {
        "type": BROADCAST,
        "project_id": str(project_id),
        "message": {
            "id": str(client_id or uuid.uuid4()),
            "project_id": str(project_id),
            "content": content,
            "created_at": created_at.isoformat(),
            "user": {"id": str(author.id), "name": author.display_name},
        },
    }

def appended_event(message: Message) -> dict[str, Any]:
    return {
        "type": APPENDED,
        "project_id": str(message.project_id),
        "message_id": str(message.id),
        "content": message.content,
        "created_at": as_utc(message.created_at).isoformat(),
    }

def get_history(db: Session, project_id: uuid.UUID, caller_id: uuid.UUID) -> list[MessageOut]:
    check_perm(load_project_context(db, project_id, caller_id), "messages:read")

    rows = db.execute(
        select(Message, User)
        .join(User, User.id == Message.user_id)
        .where(Message.project_id == project_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    ).all()
    return [message_out(msg, author) for msg, author in rows]

def post_message(
    db: Session,
    project_id: uuid.UUID,
    author: User,
    content: str,
    client_id: uuid.UUID | None = None,
    client_created_at: datetime | None = None,
    channel_hub: ChannelHub | None = None,
) -> MessageOut:
    channel_hub = channel_hub or default_hub
    check_perm(load_project_context(db, project_id, author.id), "messages:post")

    content = (content or "").strip()
    if not content:
        raise ValidationFailed("content is required")

    # broadcast path: immediate, not waiting on the database
    channel_hub.publish(
        project_topic(project_id),
        broadcast_event(project_id, author, content, client_id, client_created_at),
    )

    # durable path: the only source of truth for history and ordering
    message = Message(project_id=project_id, user_id=author.id, content=content, created_at=now_utc())
    db.add(message)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("append to project %s chat failed", project_id)
        raise HTTPException(status_code=500, detail="message append failed")

    db.refresh(message)
    event = appended_event(message)
    channel_hub.publish(project_topic(project_id), event)
    channel_hub.publish(APPENDS_TOPIC, event)
    logger.info("message %s appended to project %s", message.id, project_id)
    return message_out(message, author)
