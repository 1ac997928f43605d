import uuid
from datetime import datetime
from pydantic import BaseModel

from taskmate.schemas.users import UserRef

class MessageIn(BaseModel):
    content: str
    # optimistic copy the sender already rendered and broadcast
    client_id: uuid.UUID | None = None
    client_created_at: datetime | None = None

class MessageOut(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    content: str
    created_at: datetime
    user: UserRef

class PreviewOut(BaseModel):
    content: str
    created_at: datetime

class ChatOut(BaseModel):
    project_id: uuid.UUID
    title: str
    last_message: PreviewOut | None = None
