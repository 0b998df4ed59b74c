"""
Tenant creation.
"""
import hashlib
import logging
from datetime import timedelta
from typing import Optional

import pytz
from sqlalchemy import select, text
from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.exceptions import AuthorizationError, ValidationError
from src.core.local_time import utcnow
from src.models.restaurant import Restaurant, UserRestaurant
from src.services.access import Caller

logger = logging.getLogger(__name__)


def _advisory_lock_key(caller: Caller, name: str) -> int:
    digest = hashlib.sha256(f"{caller.user_id}:{name.lower()}".encode("utf-8")).digest()
    # pg_advisory_xact_lock takes a signed 64-bit key
    return int.from_bytes(digest[:8], "big", signed=True)


def create_restaurant_with_owner(
    db: Session,
    caller: Caller,
    name: str,
    timezone: Optional[str] = None,
) -> Restaurant:
    """
    Create a restaurant and make the caller its owner.

    Concurrent duplicate submissions (double clicks, client retries) are
    serialized on a transaction-scoped advisory lock; a restaurant of the same
    name created by the same owner within the look-back window is returned
    instead of creating another.
    """
    if caller.user_id is None:
        raise AuthorizationError("Access denied: restaurants can only be created by a user")
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", field="name")
    if timezone and timezone not in pytz.all_timezones_set:
        raise ValidationError(f"Unknown timezone {timezone!r}", field="timezone")

    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": _advisory_lock_key(caller, name)})

    window_start = utcnow() - timedelta(seconds=get_settings().RESTAURANT_CREATE_LOOKBACK_SECONDS)
    existing = db.execute(
        select(Restaurant)
        .join(UserRestaurant, UserRestaurant.restaurant_id == Restaurant.id)
        .where(
            UserRestaurant.user_id == caller.user_id,
            UserRestaurant.role == "owner",
            Restaurant.name == name,
            Restaurant.created_at >= window_start,
        )
        .order_by(Restaurant.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()
    if existing is not None:
        db.commit()
        logger.info(f"Returning restaurant {existing.id} created moments ago by {caller}")
        return existing

    restaurant = Restaurant(name=name, timezone=timezone)
    db.add(restaurant)
    db.flush()
    db.add(UserRestaurant(user_id=caller.user_id, restaurant_id=restaurant.id, role="owner"))
    db.commit()
    db.refresh(restaurant)
    logger.info(f"Restaurant {restaurant.id} created by {caller}")
    return restaurant
