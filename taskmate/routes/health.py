from fastapi import APIRouter
from fastapi.responses import JSONResponse

from taskmate.config import settings
from taskmate.db import db_ping
from taskmate.redis_client import redis_ping

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    return {"status": "ok"}

# readiness probe
@router.get("/ready")
def ready():
    probes = [("db", db_ping)]
    if settings.realtime_backend == "redis" or settings.rate_limit_enabled:
        probes.append(("redis", redis_ping))

    checks: dict[str, bool] = {}
    errors: dict[str, str] = {}

    for name, fn in probes:
        try:
            checks[name] = bool(fn())
        except Exception as e:
            checks[name] = False
            msg = str(e).strip()
            errors[name] = f"{e.__class__.__name__}{(': ' + msg) if msg else ''}"

    ok = all(checks.values())

    body: dict = {"status": "ok" if ok else "unready", "checks": checks}
    if errors:
        body["errors"] = errors

    # 200 only when every backing service in use is reachable, 503 otherwise
    return JSONResponse(status_code=200 if ok else 503, content=body)
