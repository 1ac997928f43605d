import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskmate.auth.deps import get_current_user, get_identity
from taskmate.chat.inbox import Inbox
from taskmate.db import get_db
from taskmate.errors import Conflict
from taskmate.membership import engine
from taskmate.models.base import as_utc
from taskmate.models.enums import MembershipStatus
from taskmate.models.membership import Membership
from taskmate.models.project import Project
from taskmate.models.user import User
from taskmate.routes.projects import project_out
from taskmate.routes.requests import request_out
from taskmate.schemas.messages import ChatOut
from taskmate.schemas.projects import MyProjectsOut
from taskmate.schemas.requests import IncomingProjectOut, SentRequestOut
from taskmate.schemas.users import ProfileIn, UserOut

router = APIRouter(prefix="/me", tags=["me"])

def user_out(u: User) -> UserOut:
    return UserOut(id=u.id, name=u.name, email=u.email, city=u.city, github_url=u.github_url, skills=u.skills or [])

@router.get("", response_model=UserOut)
def get_me(user: User = Depends(get_current_user)) -> UserOut:
    return user_out(user)

# first call creates the profile for a fresh identity
@router.put("", response_model=UserOut)
def put_me(
    payload: ProfileIn,
    user_id: uuid.UUID = Depends(get_identity),
    db: Session = Depends(get_db),
) -> UserOut:
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)

    user.name = payload.name.strip()
    user.email = payload.email.lower().strip()
    user.city = payload.city or None
    user.github_url = str(payload.github_url) if payload.github_url else None
    user.skills = sorted({s.strip() for s in payload.skills if s.strip()})
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("email already in use")
    db.refresh(user)
    return user_out(user)

@router.get("/projects", response_model=MyProjectsOut)
def my_projects(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MyProjectsOut:
    owned = db.scalars(
        select(Project).where(Project.owner_id == user.id).order_by(Project.created_at.desc())
    ).all()
    member_of = db.scalars(
        select(Project)
        .join(Membership, Membership.project_id == Project.id)
        .where(Membership.user_id == user.id, Membership.status == MembershipStatus.active)
        .order_by(Project.created_at.desc())
    ).all()
    return MyProjectsOut(
        owned_projects=[project_out(db, p) for p in owned],
        member_projects=[project_out(db, p) for p in member_of],
    )

@router.get("/requests/sent", response_model=list[SentRequestOut])
def sent_requests(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SentRequestOut]:
    return [
        SentRequestOut(
            id=r.id,
            project_id=p.id,
            project_title=p.title,
            message=r.message,
            status=r.status,
            created_at=as_utc(r.created_at),
        )
        for r, p in engine.list_sent_requests(db, user.id)
    ]

@router.get("/requests/incoming", response_model=list[IncomingProjectOut])
def incoming_requests(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[IncomingProjectOut]:
    return [
        IncomingProjectOut(project_id=p.id, title=p.title, requests=[request_out(db, r) for r in reqs])
        for p, reqs in engine.list_incoming_requests(db, user.id)
    ]

@router.get("/chats", response_model=list[ChatOut])
def my_chats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ChatOut]:
    return Inbox.rebuild(db, user.id).to_out()
