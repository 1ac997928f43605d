import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskmate.auth.deps import get_current_user
from taskmate.config import settings
from taskmate.db import get_db
from taskmate.membership import engine
from taskmate.models.base import as_utc
from taskmate.models.project_request import ProjectRequest
from taskmate.models.user import User
from taskmate.ratelimit import rate_limit
from taskmate.schemas.requests import DecisionIn, JoinRequestIn, RequestOut
from taskmate.schemas.users import UserRef

router = APIRouter(tags=["requests"])

def request_out(db: Session, r: ProjectRequest) -> RequestOut:
    requester = db.get(User, r.user_id)
    return RequestOut(
        id=r.id,
        project_id=r.project_id,
        user=UserRef(id=requester.id, name=requester.display_name),
        message=r.message,
        status=r.status,
        created_at=as_utc(r.created_at),
        updated_at=as_utc(r.updated_at),
    )

@router.post("/projects/{project_id}/requests", response_model=RequestOut, status_code=201)
def submit_request(
    project_id: uuid.UUID,
    payload: JoinRequestIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _: None = Depends(
        rate_limit(
            "requests:submit",
            limit_per_window=settings.rate_limit_requests_per_min,
            window_seconds=60,
        )
    ),
) -> RequestOut:
    r = engine.submit_request(db, project_id, user.id, payload.message)
    return request_out(db, r)

@router.get("/projects/{project_id}/requests", response_model=list[RequestOut])
def list_requests(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[RequestOut]:
    rows = engine.list_pending_requests(db, project_id, user.id)
    return [request_out(db, r) for r in rows]

@router.patch("/requests/{request_id}", response_model=RequestOut)
def decide_request(
    request_id: uuid.UUID,
    payload: DecisionIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RequestOut:
    r = engine.decide_request(db, request_id, user.id, payload.action)
    return request_out(db, r)

@router.delete("/requests/{request_id}", response_model=RequestOut)
def withdraw_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RequestOut:
    r = engine.withdraw_request(db, request_id, user.id)
    return request_out(db, r)
