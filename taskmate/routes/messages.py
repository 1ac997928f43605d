import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskmate.auth.deps import get_current_user
from taskmate.chat import service
from taskmate.config import settings
from taskmate.db import get_db
from taskmate.models.user import User
from taskmate.ratelimit import rate_limit
from taskmate.schemas.messages import MessageIn, MessageOut

router = APIRouter(prefix="/projects/{project_id}/messages", tags=["messages"])

@router.get("", response_model=list[MessageOut])
def get_history(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[MessageOut]:
    return service.get_history(db, project_id, user.id)

@router.post("", response_model=MessageOut, status_code=201)
def post_message(
    project_id: uuid.UUID,
    payload: MessageIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _: None = Depends(
        rate_limit(
            "messages:post",
            limit_per_window=settings.rate_limit_messages_per_min,
            window_seconds=60,
        )
    ),
) -> MessageOut:
    return service.post_message(
        db,
        project_id,
        user,
        payload.content,
        client_id=payload.client_id,
        client_created_at=payload.client_created_at,
    )
