import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import jwt

from taskflow.config import settings

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "iat", "exp"]

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

# some backends (sqlite) hand back naive datetimes; they are stored as utc
def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def new_magic_token() -> str:
    return secrets.token_urlsafe(32)

# peppered so a leaked table cannot be replayed
def hash_magic_token(token: str) -> str:
    key = settings.magic_link_pepper.encode("utf-8")
    return hmac.new(key, token.encode("utf-8"), hashlib.sha256).hexdigest()

def magic_link_expiry() -> datetime:
    return now_utc() + timedelta(minutes=settings.magic_link_expires_minutes)

def issue_access_token(user_id: str | uuid.UUID, expires_minutes: int | None = None) -> str:
    issued = now_utc()
    ttl = timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    claims = {
        "sub": str(user_id),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(issued.timestamp()),
        "exp": int((issued + ttl).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)

def decode_access_token(token: str) -> dict:
    """Verified claims of ``token``; raises ``jwt.PyJWTError`` otherwise."""
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[ALGORITHM],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        options={"require": REQUIRED_CLAIMS},
    )
