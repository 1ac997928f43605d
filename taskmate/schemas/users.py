import uuid
from pydantic import BaseModel, EmailStr, Field, HttpUrl

class ProfileIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    city: str | None = None
    github_url: HttpUrl | None = None
    skills: list[str] = []

class UserOut(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    city: str | None = None
    github_url: str | None = None
    skills: list[str] = []

class UserRef(BaseModel):
    id: uuid.UUID
    name: str
