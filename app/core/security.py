from datetime import datetime, timedelta, timezone
import uuid

from jose import jwt

from app.core.config import settings


def create_access_token(subject: int | str, expires_delta: timedelta | None = None) -> str:
    """Issue a signed bearer token for ``subject`` (a user id)."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": str(subject),
        "exp": expire,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify a bearer token. Raises ``jose.JWTError`` when invalid."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
