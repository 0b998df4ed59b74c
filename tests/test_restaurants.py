"""
Tests for tenant creation.
"""
import pytest

from sqlalchemy import select

from src.core.exceptions import AuthorizationError, ValidationError
from src.models.restaurant import Restaurant, UserRestaurant
from src.services.restaurants import create_restaurant_with_owner


class TestCreateRestaurant:

    def test_caller_becomes_owner(self, db, owner, owner_caller):
        restaurant = create_restaurant_with_owner(db, owner_caller, "Harbor Grill", "America/Los_Angeles")

        membership = db.execute(
            select(UserRestaurant).where(UserRestaurant.restaurant_id == restaurant.id)
        ).scalar_one()
        assert membership.user_id == owner.id
        assert membership.role == "owner"
        assert restaurant.timezone == "America/Los_Angeles"

    def test_duplicate_submission_returns_first_restaurant(self, db, owner_caller):
        first = create_restaurant_with_owner(db, owner_caller, "Harbor Grill")
        second = create_restaurant_with_owner(db, owner_caller, "Harbor Grill")

        assert second.id == first.id
        assert len(db.execute(select(Restaurant).where(Restaurant.name == "Harbor Grill")).scalars().all()) == 1

    def test_different_names_create_separate_restaurants(self, db, owner_caller):
        first = create_restaurant_with_owner(db, owner_caller, "Harbor Grill")
        second = create_restaurant_with_owner(db, owner_caller, "Harbor Grill Express")

        assert second.id != first.id

    def test_same_name_from_another_user_is_not_deduplicated(self, db, owner_caller, outsider_caller):
        first = create_restaurant_with_owner(db, owner_caller, "Harbor Grill")
        second = create_restaurant_with_owner(db, outsider_caller, "Harbor Grill")

        assert second.id != first.id

    def test_unknown_timezone_is_rejected(self, db, owner_caller):
        with pytest.raises(ValidationError) as exc:
            create_restaurant_with_owner(db, owner_caller, "Harbor Grill", "Mars/Base")
        assert exc.value.field == "timezone"

    def test_service_caller_cannot_create(self, db, service_caller):
        with pytest.raises(AuthorizationError):
            create_restaurant_with_owner(db, service_caller, "Harbor Grill")
