"""Join request lifecycle.

PENDING is the only open state. APPROVED, REJECTED and WITHDRAWN are
terminal, so every transition is written as a conditional update guarded by
``status = pending`` and a zero row count means somebody else got there
first.

Approval also takes a seat on the project row with a second conditional
update (``seats_taken < team_size``) in the same transaction as the
membership insert. The update locks only that project's row, so concurrent
approvals on one project serialize and the loser sees the team as full.
"""
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskmate.errors import Conflict, Forbidden, NotFound, ValidationFailed
from taskmate.models.base import now_utc
from taskmate.models.enums import TERMINAL_REQUEST_STATUSES, MembershipStatus, RequestAction, RequestStatus
from taskmate.models.membership import Membership
from taskmate.models.project import Project
from taskmate.models.project_request import ProjectRequest
from taskmate.rbac.deps import check_perm, load_project_context

logger = logging.getLogger(__name__)

MAX_REQUEST_MESSAGE_LENGTH = 100

def _transition(db: Session, request_id: uuid.UUID, to_status: RequestStatus) -> bool:
    stmt = (
        update(ProjectRequest)
        .where(ProjectRequest.id == request_id)
        .where(ProjectRequest.status == RequestStatus.pending)
        .values(status=to_status, updated_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1

def _take_seat(db: Session, project_id: uuid.UUID) -> bool:
    stmt = (
        update(Project)
        .where(Project.id == project_id)
        .where(Project.seats_taken < Project.team_size)
        .values(seats_taken=Project.seats_taken + 1)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1

def _has_pending(db: Session, project_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    row = db.scalar(
        select(ProjectRequest.id).where(
            ProjectRequest.project_id == project_id,
            ProjectRequest.user_id == user_id,
            ProjectRequest.status == RequestStatus.pending,
        )
    )
    return row is not None

def submit_request(
    db: Session,
    project_id: uuid.UUID,
    requester_id: uuid.UUID,
    message: str | None = None,
) -> ProjectRequest:
    if message is not None and len(message) > MAX_REQUEST_MESSAGE_LENGTH:
        raise ValidationFailed(f"message too long (max {MAX_REQUEST_MESSAGE_LENGTH} characters)")

    project = db.get(Project, project_id)
    if project is None:
        raise NotFound("project not found")

    if project.owner_id == requester_id:
        raise Forbidden("cannot request to join your own project")

    if db.get(Membership, {"user_id": requester_id, "project_id": project_id}) is not None:
        raise Conflict("already a member")

    if _has_pending(db, project_id, requester_id):
        raise Conflict("request already pending")

    if project.seats_taken >= project.team_size:
        raise Conflict("team full")

    req = ProjectRequest(
        project_id=project_id,
        user_id=requester_id,
        message=message or None,
        status=RequestStatus.pending,
    )
    db.add(req)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent submit for the same pair
        db.rollback()
        raise Conflict("request already pending")

    db.refresh(req)
    logger.info("request %s submitted by %s for project %s", req.id, requester_id, project_id)
    return req

def _approve(db: Session, req: ProjectRequest) -> None:
    try:
        if not _transition(db, req.id, RequestStatus.approved):
            raise Conflict("request already processed")
        if not _take_seat(db, req.project_id):
            raise Conflict("team full")

        db.add(Membership(user_id=req.user_id, project_id=req.project_id, status=MembershipStatus.active))
        db.flush()
    except Conflict:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise Conflict("already a member")

def decide_request(
    db: Session,
    request_id: uuid.UUID,
    decider_id: uuid.UUID,
    action: RequestAction,
) -> ProjectRequest:
    req = db.get(ProjectRequest, request_id)
    if req is None:
        raise NotFound("request not found")

    project = db.get(Project, req.project_id)
    if project is None or project.owner_id != decider_id:
        raise Forbidden("only the project owner can decide requests")

    if req.status in TERMINAL_REQUEST_STATUSES:
        raise Conflict("request already processed")

    if action == RequestAction.approve:
        _approve(db, req)
    elif not _transition(db, req.id, RequestStatus.rejected):
        db.rollback()
        raise Conflict("request already processed")

    db.commit()
    db.refresh(req)
    logger.info("request %s %s by %s", req.id, req.status.value, decider_id)
    return req

def withdraw_request(db: Session, request_id: uuid.UUID, requester_id: uuid.UUID) -> ProjectRequest:
    req = db.get(ProjectRequest, request_id)
    if req is None:
        raise NotFound("request not found")

    if req.user_id != requester_id:
        raise Forbidden("only the requester can withdraw a request")

    if req.status != RequestStatus.pending or not _transition(db, req.id, RequestStatus.withdrawn):
        db.rollback()
        raise Conflict("only pending requests can be withdrawn")

    db.commit()
    db.refresh(req)
    logger.info("request %s withdrawn", req.id)
    return req

def list_pending_requests(db: Session, project_id: uuid.UUID, owner_id: uuid.UUID) -> list[ProjectRequest]:
    check_perm(load_project_context(db, project_id, owner_id), "requests:list")

    q = (
        select(ProjectRequest)
        .where(ProjectRequest.project_id == project_id, ProjectRequest.status == RequestStatus.pending)
        .order_by(ProjectRequest.created_at.desc())
    )
    return list(db.scalars(q).all())

def list_sent_requests(db: Session, user_id: uuid.UUID) -> list[tuple[ProjectRequest, Project]]:
    q = (
        select(ProjectRequest, Project)
        .join(Project, Project.id == ProjectRequest.project_id)
        .where(ProjectRequest.user_id == user_id)
        .order_by(ProjectRequest.created_at.desc())
    )
    return [(r, p) for r, p in db.execute(q).all()]

def list_incoming_requests(db: Session, owner_id: uuid.UUID) -> list[tuple[Project, list[ProjectRequest]]]:
    q = (
        select(ProjectRequest, Project)
        .join(Project, Project.id == ProjectRequest.project_id)
        .where(Project.owner_id == owner_id, ProjectRequest.status == RequestStatus.pending)
        .order_by(ProjectRequest.created_at.asc())
    )
    grouped: dict[uuid.UUID, tuple[Project, list[ProjectRequest]]] = {}
    for req, project in db.execute(q).all():
        grouped.setdefault(project.id, (project, []))[1].append(req)
    return list(grouped.values())
