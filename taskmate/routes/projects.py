import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from taskmate.auth.deps import get_current_user
from taskmate.db import get_db
from taskmate.errors import Conflict, NotFound
from taskmate.models.base import as_utc
from taskmate.models.enums import MembershipStatus
from taskmate.models.membership import Membership
from taskmate.models.message import Message
from taskmate.models.project import Project
from taskmate.models.project_request import ProjectRequest
from taskmate.models.user import User
from taskmate.rbac.deps import ProjectContext, require_perm
from taskmate.schemas.projects import ProjectCreateIn, ProjectOut, ProjectUpdateIn
from taskmate.schemas.users import UserRef

router = APIRouter(prefix="/projects", tags=["projects"])

def project_out(db: Session, p: Project) -> ProjectOut:
    owner = db.get(User, p.owner_id)
    members = db.scalars(
        select(User)
        .join(Membership, Membership.user_id == User.id)
        .where(Membership.project_id == p.id, Membership.status == MembershipStatus.active)
        .order_by(Membership.created_at)
    ).all()
    return ProjectOut(
        id=p.id,
        owner=UserRef(id=owner.id, name=owner.display_name),
        title=p.title,
        description=p.description,
        city=p.city,
        team_size=p.team_size,
        member_count=p.seats_taken,
        members=[UserRef(id=m.id, name=m.display_name) for m in members],
        created_at=as_utc(p.created_at),
    )

@router.post("", response_model=ProjectOut, status_code=201)
def create_project(
    payload: ProjectCreateIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = Project(
        owner_id=user.id,
        title=payload.title,
        description=payload.description,
        city=payload.city,
        team_size=payload.team_size,
        seats_taken=1,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return project_out(db, p)

@router.get("", response_model=list[ProjectOut])
def list_projects(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ProjectOut]:
    rows = db.scalars(select(Project).order_by(Project.created_at.desc())).all()
    return [project_out(db, r) for r in rows]

@router.get("/{project_id}", response_model=ProjectOut)
def get_project(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProjectOut:
    p = db.get(Project, project_id)
    if p is None:
        raise NotFound("project not found")
    return project_out(db, p)

@router.put("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdateIn,
    ctx: ProjectContext = Depends(require_perm("projects:update")),
    db: Session = Depends(get_db),
) -> ProjectOut:
    # team size may shrink only down to the seats already taken
    stmt = (
        update(Project)
        .where(Project.id == project_id, Project.seats_taken <= payload.team_size)
        .values(
            title=payload.title,
            description=payload.description,
            city=payload.city,
            team_size=payload.team_size,
        )
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        db.rollback()
        raise Conflict("team size below current member count")
    db.commit()

    p = db.get(Project, project_id)
    db.refresh(p)
    return project_out(db, p)

@router.delete("/{project_id}")
def delete_project(
    project_id: uuid.UUID,
    ctx: ProjectContext = Depends(require_perm("projects:delete")),
    db: Session = Depends(get_db),
) -> dict:
    # cascade explicitly so it does not depend on the backend enforcing FKs
    for model in (Message, ProjectRequest, Membership):
        db.execute(delete(model).where(model.project_id == project_id).execution_options(synchronize_session=False))
    db.execute(delete(Project).where(Project.id == project_id).execution_options(synchronize_session=False))
    db.commit()
    return {"deleted": True}
