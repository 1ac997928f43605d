"""Inbox read model: the latest message per visible project, most recent first.

Everything here is derived from the message log. ``Inbox.rebuild`` computes
it from scratch and ``Inbox.apply`` folds in one ``message.appended``
notification, so a stale or lost inbox is fixed by rebuilding it.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from taskmate.chat.service import APPENDED
from taskmate.models.base import as_utc
from taskmate.models.enums import MembershipStatus
from taskmate.models.membership import Membership
from taskmate.models.message import Message
from taskmate.models.project import Project
from taskmate.schemas.messages import ChatOut, PreviewOut

@dataclass
class Preview:
    message_id: str
    content: str
    created_at: datetime

@dataclass
class InboxEntry:
    project_id: uuid.UUID
    title: str
    created_at: datetime
    last_message: Preview | None = None

    @property
    def last_activity(self) -> datetime:
        return self.last_message.created_at if self.last_message else self.created_at

    def to_out(self) -> ChatOut:
        last = None
        if self.last_message is not None:
            last = PreviewOut(content=self.last_message.content, created_at=self.last_message.created_at)
        return ChatOut(project_id=self.project_id, title=self.title, last_message=last)

def visible_projects(db: Session, user_id: uuid.UUID) -> list[Project]:
    member_of = select(Membership.project_id).where(
        Membership.user_id == user_id,
        Membership.status == MembershipStatus.active,
    )
    q = (
        select(Project)
        .where(or_(Project.owner_id == user_id, Project.id.in_(member_of)))
        .order_by(Project.created_at.desc())
    )
    return list(db.scalars(q).all())

def latest_message(db: Session, project_id: uuid.UUID) -> Message | None:
    return db.scalar(
        select(Message)
        .where(Message.project_id == project_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(1)
    )

class Inbox:
    def __init__(self, entries: list[InboxEntry]):
        self._entries = sorted(entries, key=lambda e: e.last_activity, reverse=True)

    @classmethod
    def rebuild(cls, db: Session, user_id: uuid.UUID) -> "Inbox":
        entries = []
        for project in visible_projects(db, user_id):
            msg = latest_message(db, project.id)
            preview = None
            if msg is not None:
                preview = Preview(str(msg.id), msg.content, as_utc(msg.created_at))
            entries.append(
                InboxEntry(
                    project_id=project.id,
                    title=project.title,
                    created_at=as_utc(project.created_at),
                    last_message=preview,
                )
            )
        return cls(entries)

    @property
    def entries(self) -> list[InboxEntry]:
        return list(self._entries)

    def project_ids(self) -> list[uuid.UUID]:
        return [e.project_id for e in self._entries]

    def apply(self, event: dict[str, Any]) -> InboxEntry | None:
        """Fold one append notification in; returns the promoted entry, if any."""
        if event.get("type") != APPENDED:
            return None

        try:
            project_id = uuid.UUID(str(event["project_id"]))
            created_at = as_utc(datetime.fromisoformat(event["created_at"]))
            preview = Preview(str(event["message_id"]), event["content"], created_at)
        except (KeyError, ValueError):
            return None

        entry = next((e for e in self._entries if e.project_id == project_id), None)
        if entry is None:
            return None

        # a late notification must not replace a newer preview
        current = entry.last_message
        if current is None or (preview.created_at, preview.message_id) >= (current.created_at, current.message_id):
            entry.last_message = preview

        self._entries.remove(entry)
        self._entries.insert(0, entry)
        return entry

    def to_out(self) -> list[ChatOut]:
        return [e.to_out() for e in self._entries]
