import uuid
import jwt
from datetime import datetime, timedelta, timezone
from taskmate.config import settings

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

# production tokens come from the identity provider; this mints the same
# shape with the shared secret for local runs, seeds and tests
def issue_access_token(user_id: str | uuid.UUID, expires_minutes: int | None = None) -> str:
    user_id = str(user_id)
    iat = now_utc()
    exp = iat + timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    payload = {
        "sub": user_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")

def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )

def subject_from_token(token: str) -> uuid.UUID:
    payload = decode_access_token(token)
    return uuid.UUID(payload["sub"])
