import os
import uuid
from contextlib import nullcontext

# must be set before taskmate.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REALTIME_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskmate.db import SessionLocal, engine, get_db, get_session_factory
from taskmate.main import create_app
from taskmate.models import Base, Project, User

@pytest.fixture()
def db_session() -> Session:
    Base.metadata.create_all(engine)
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)

@pytest.fixture()
def client(db_session: Session) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    def _shared_session():
        return nullcontext(db_session)

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: _shared_session
    return TestClient(app)

@pytest.fixture()
def make_user(db_session: Session):
    def _make(name: str) -> User:
        u = User(id=uuid.uuid4(), name=name, email=f"{name.lower()}@example.com", skills=[])
        db_session.add(u)
        db_session.commit()
        return u

    return _make

@pytest.fixture()
def make_project(db_session: Session):
    def _make(owner: User, title: str = "hackathon", team_size: int = 3) -> Project:
        p = Project(owner_id=owner.id, title=title, description="build something", team_size=team_size)
        db_session.add(p)
        db_session.commit()
        return p

    return _make
