import uuid
from datetime import datetime
from pydantic import BaseModel, Field

from taskmate.schemas.users import UserRef

class ProjectCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    city: str | None = None
    team_size: int = Field(ge=1)

class ProjectUpdateIn(ProjectCreateIn):
    pass

class ProjectOut(BaseModel):
    id: uuid.UUID
    owner: UserRef
    title: str
    description: str
    city: str | None
    team_size: int
    member_count: int
    members: list[UserRef] = []
    created_at: datetime

class MyProjectsOut(BaseModel):
    owned_projects: list[ProjectOut]
    member_projects: list[ProjectOut]
