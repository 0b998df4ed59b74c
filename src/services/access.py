"""
Tenant access control.

Every entry point receives an explicit Caller and checks it before touching
any ledger row. Service callers (scheduler, queue drain) carry no user id and
are only accepted where an entry point opts in with allow_service=True.
"""
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.exceptions import AuthorizationError
from src.models.restaurant import UserRestaurant, ELEVATED_ROLES


@dataclass(frozen=True)
class Caller:
    """Identity of whoever invokes a ledger operation."""
    user_id: Optional[UUID] = None
    is_service: bool = False
    name: Optional[str] = None

    @classmethod
    def user(cls, user_id: UUID) -> "Caller":
        return cls(user_id=user_id)

    @classmethod
    def service(cls, name: str = "scheduler") -> "Caller":
        return cls(is_service=True, name=name)

    def __str__(self) -> str:
        return f"service:{self.name}" if self.is_service else f"user:{self.user_id}"


def get_role(db: Session, user_id: UUID, restaurant_id: UUID) -> Optional[str]:
    """Role of a user in a restaurant, or None when not a member."""
    stmt = select(UserRestaurant.role).where(
        UserRestaurant.user_id == user_id,
        UserRestaurant.restaurant_id == restaurant_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def has_restaurant_access(
    db: Session,
    caller: Caller,
    restaurant_id: UUID,
    roles: Optional[Iterable[str]] = None,
    allow_service: bool = False,
) -> bool:
    """
    Return True when the caller may act on the restaurant.

    Args:
        caller: Identity to check
        restaurant_id: Tenant being accessed
        roles: Required roles; None means any membership
        allow_service: Accept service callers without a membership lookup
    """
    if caller.is_service:
        return allow_service
    if caller.user_id is None:
        return False

    role = get_role(db, caller.user_id, restaurant_id)
    if role is None:
        return False
    if roles is not None and role not in set(roles):
        return False
    return True


def require_restaurant_access(
    db: Session,
    caller: Caller,
    restaurant_id: UUID,
    roles: Optional[Iterable[str]] = None,
    allow_service: bool = False,
) -> None:
    """Raise AuthorizationError unless has_restaurant_access() allows the caller."""
    if not has_restaurant_access(db, caller, restaurant_id, roles=roles, allow_service=allow_service):
        if roles is not None and caller.user_id is not None and get_role(db, caller.user_id, restaurant_id):
            raise AuthorizationError(
                f"Access denied: role {', '.join(sorted(roles))} required for restaurant {restaurant_id}"
            )
        raise AuthorizationError(
            f"Access denied: {caller} does not have access to restaurant {restaurant_id}"
        )


def require_elevated_access(db: Session, caller: Caller, restaurant_id: UUID) -> None:
    """Owner or manager."""
    require_restaurant_access(db, caller, restaurant_id, roles=ELEVATED_ROLES)


def require_service_caller(caller: Caller) -> None:
    if not caller.is_service:
        raise AuthorizationError("Access denied: operation is restricted to service callers")
