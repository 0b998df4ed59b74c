"""
FastAPI dependencies for caller identity.
"""
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.core.security import SERVICE_TOKEN_TYPE, USER_TOKEN_TYPE, decode_token
from src.services.access import Caller

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Caller:
    """Resolve the bearer token into an explicit Caller."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    payload = decode_token(credentials.credentials)
    if payload is None or not payload.get("sub"):
        raise unauthorized

    if payload.get("type") == SERVICE_TOKEN_TYPE:
        return Caller.service(payload["sub"])
    if payload.get("type") != USER_TOKEN_TYPE:
        raise unauthorized
    try:
        return Caller.user(UUID(payload["sub"]))
    except ValueError:
        raise unauthorized
