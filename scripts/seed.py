import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskmate.auth.tokens import issue_access_token
from taskmate.db import SessionLocal
from taskmate.models.enums import MembershipStatus
from taskmate.models.membership import Membership
from taskmate.models.message import Message
from taskmate.models.project import Project
from taskmate.models.user import User

@dataclass
class SeedResult:
    users: dict[str, tuple[str, uuid.UUID]]
    project_id: uuid.UUID

def get_or_create_user(db: Session, email: str, name: str, skills: list[str]) -> User:
    email = email.lower().strip()
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(id=uuid.uuid4(), email=email, name=name, skills=skills)
        db.add(u)
        db.flush()
    return u

def get_or_create_project(db: Session, owner_id: uuid.UUID, title: str, team_size: int) -> Project:
    p = db.scalar(select(Project).where(Project.owner_id == owner_id, Project.title == title))
    if p is None:
        p = Project(owner_id=owner_id, title=title, description=f"{title} (seeded)", team_size=team_size)
        db.add(p)
        db.flush()
    return p

def ensure_member(db: Session, user_id: uuid.UUID, project: Project) -> Membership:
    m = db.get(Membership, {"user_id": user_id, "project_id": project.id})
    if m is None:
        m = Membership(user_id=user_id, project_id=project.id, status=MembershipStatus.active)
        db.add(m)
        # seat accounting moves with the membership row
        project.seats_taken += 1
        db.flush()
    return m

def seed() -> SeedResult:
    db = SessionLocal()
    try:
        owner = get_or_create_user(db, "owner@example.com", "Olena", ["python", "product"])
        member = get_or_create_user(db, "member@example.com", "Marko", ["react"])
        newcomer = get_or_create_user(db, "newcomer@example.com", "Nadia", ["sql"])

        project = get_or_create_project(db, owner.id, "seeded project", team_size=3)
        ensure_member(db, member.id, project)

        if db.scalar(select(Message.id).where(Message.project_id == project.id).limit(1)) is None:
            db.add(Message(project_id=project.id, user_id=owner.id, content="welcome to the team"))

        users = {label: (u.email, u.id) for label, u in (("owner", owner), ("member", member), ("newcomer", newcomer))}
        project_id = project.id
        db.commit()
        return SeedResult(users=users, project_id=project_id)
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"project_id={r.project_id}")
    print("tokens:")
    for label, (email, user_id) in r.users.items():
        print(f"  {label:<9} {email}: {issue_access_token(user_id)}")
