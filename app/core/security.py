from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from passlib.context import CryptContext
import jwt

from app.core.config import settings

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def _salted(raw: str) -> str:
    # PASSWORD_SALT comes from .env
    return f"{raw}:{settings.PASSWORD_SALT}"

def hash_password(raw: str) -> str:
    return pwd_context.hash(_salted(raw))

def verify_password(raw: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(_salted(raw), hashed)

def create_access_token(subject: str | int, role: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    """Bearer token for the admin console; `role` is informational, the DB row decides."""
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.JWT_EXPIRE_MINUTES)
    payload: Dict[str, Any] = {
        "sub": str(subject),
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
        "iss": settings.APP_NAME,
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)

def decode_access_token(token: str) -> int:
    """User id from a token; raises jwt.InvalidTokenError on anything unusable."""
    payload = jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[ALGORITHM],
        issuer=settings.APP_NAME,
        options={"require": ["exp", "iat", "sub"]},
    )
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise jwt.InvalidTokenError("sub is not a user id") from e
