from fastapi import APIRouter
from fastapi.responses import JSONResponse

from taskflow.db import db_ping
from taskflow.redis_client import redis_ping

router = APIRouter(tags=["health"])

@router.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "taskflow-api"}

# readiness probe: db is required, redis only backs the rate limiter
@router.get("/ready")
def ready():
    checks: dict[str, bool] = {}
    errors: dict[str, str] = {}

    for name, fn in (("db", db_ping), ("redis", redis_ping)):
        try:
            checks[name] = bool(fn())
        except Exception as e:
            checks[name] = False
            msg = str(e).strip()
            errors[name] = f"{e.__class__.__name__}{(': ' + msg) if msg else ''}"

    ok = checks.get("db", False)

    body: dict = {"status": "ok" if ok else "unready", "checks": checks}
    if errors:
        body["errors"] = errors
    if ok and not checks.get("redis", False):
        body["status"] = "degraded"

    return JSONResponse(status_code=200 if ok else 503, content=body)
