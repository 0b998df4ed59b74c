"""
JWT helpers for caller identity.

Tokens are issued by the external identity provider; the API only decodes
them. The encoders exist for service callers (scheduler, CLI) and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import jwt, JWTError

from src.core.config import get_settings

settings = get_settings()

USER_TOKEN_TYPE = "access"
SERVICE_TOKEN_TYPE = "service"


def _sign(subject: str, token_type: str, expires_delta: Optional[timedelta]) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": subject,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(subject: Any, expires_delta: Optional[timedelta] = None) -> str:
    """Token for a user; subject is the user id."""
    return _sign(str(subject), USER_TOKEN_TYPE, expires_delta)


def create_service_token(service_name: str, expires_delta: Optional[timedelta] = None) -> str:
    """Token for a trusted backend caller (scheduler, queue drain)."""
    return _sign(service_name, SERVICE_TOKEN_TYPE, expires_delta)


def decode_token(token: str) -> Optional[dict]:
    """Claims of a valid, unexpired token, or None."""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
