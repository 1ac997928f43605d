import uuid

from fastapi import Depends
from sqlalchemy.orm import Session

from taskmate.auth.deps import get_current_user
from taskmate.db import get_db
from taskmate.errors import Forbidden, NotFound
from taskmate.models.enums import MembershipStatus, ProjectRole
from taskmate.models.membership import Membership
from taskmate.models.project import Project
from taskmate.models.user import User
from taskmate.rbac.perms import PERMS

class ProjectContext:
    def __init__(self, project: Project, user_id: uuid.UUID, role: ProjectRole | None):
        self.project = project
        self.user_id = user_id
        self.role = role

def resolve_role(db: Session, project: Project, user_id: uuid.UUID) -> ProjectRole | None:
    if project.owner_id == user_id:
        return ProjectRole.owner

    membership = db.get(Membership, {"user_id": user_id, "project_id": project.id})
    if membership is not None and membership.status == MembershipStatus.active:
        return ProjectRole.member
    return None

def load_project_context(db: Session, project_id: uuid.UUID, user_id: uuid.UUID) -> ProjectContext:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFound("project not found")
    return ProjectContext(project=project, user_id=user_id, role=resolve_role(db, project, user_id))

def check_perm(ctx: ProjectContext, action: str) -> ProjectContext:
    allowed = PERMS.get(action)
    if allowed is None:
        raise RuntimeError(f"unknown permission action: {action}")

    if ctx.role not in allowed:
        if ProjectRole.member in allowed:
            raise Forbidden("not a project participant")
        raise Forbidden("only the project owner can do this")
    return ctx

def get_project_context(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProjectContext:
    return load_project_context(db, project_id, user.id)

def require_perm(action: str):
    if action not in PERMS:
        raise RuntimeError(f"unknown permission action: {action}")

    def _checker(ctx: ProjectContext = Depends(get_project_context)) -> ProjectContext:
        return check_perm(ctx, action)

    return _checker
