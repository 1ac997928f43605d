import uuid
from datetime import datetime
from pydantic import BaseModel

from taskmate.models.enums import RequestAction, RequestStatus
from taskmate.schemas.users import UserRef

class JoinRequestIn(BaseModel):
    # length is checked by the engine so it maps to a distinct error
    message: str | None = None

class DecisionIn(BaseModel):
    action: RequestAction

class RequestOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    user: UserRef
    message: str | None
    status: RequestStatus
    created_at: datetime
    updated_at: datetime

class SentRequestOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    project_title: str
    message: str | None
    status: RequestStatus
    created_at: datetime

class IncomingProjectOut(BaseModel):
    project_id: uuid.UUID
    title: str
    requests: list[RequestOut]
