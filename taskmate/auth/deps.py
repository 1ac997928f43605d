import uuid

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from taskmate.auth.tokens import subject_from_token
from taskmate.db import get_db
from taskmate.errors import Unauthorized
from taskmate.models.user import User

bearer = HTTPBearer(auto_error=False)

def get_identity(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> uuid.UUID:
    if creds is None or creds.scheme.lower() != "bearer":
        raise Unauthorized("missing bearer token")

    try:
        return subject_from_token(creds.credentials)
    except (jwt.PyJWTError, KeyError, ValueError):
        raise Unauthorized("invalid token")

def get_current_user(
    user_id: uuid.UUID = Depends(get_identity),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise Unauthorized("user not found")

    return user
