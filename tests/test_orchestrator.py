"""
Tests for the cross-vendor orchestrator and vendor fetch enqueueing.
"""
import pytest
from datetime import date, datetime

import pytz
from sqlalchemy import select

from src.core.exceptions import AuthorizationError, ValidationError
from src.models.pos_connection import PosConnection
from src.models.pos_staging import SquareOrder, SquareOrderLineItem
from src.models.restaurant import Restaurant
from src.models.sync_job import SyncJob
from src.models.sync_run import SyncRun
from src.models.unified_sale import UnifiedSale
from src.services.pos_sync.square import SquareSync
from src.services.sync_orchestrator import (
    POS_FETCH_QUEUE,
    enqueue_vendor_fetch_jobs,
    sync_all_restaurants,
)


def _stage_square_order(db, restaurant, order_id):
    db.add_all([
        SquareOrder(
            restaurant_id=restaurant.id, order_id=order_id, state="COMPLETED", service_date=date(2024, 3, 1),
            closed_at=datetime(2024, 3, 1, 18, 0, tzinfo=pytz.UTC),
        ),
        SquareOrderLineItem(
            restaurant_id=restaurant.id, order_id=order_id, uid=f"{order_id}-1", name="Burger",
            quantity="1", base_price_money=1200, total_money=1200,
        ),
    ])


@pytest.fixture
def connected_restaurants(db, restaurant, other_restaurant):
    """Two restaurants with active Square connections and one with an inactive one."""
    inactive = Restaurant(name="Closed Cafe")
    db.add(inactive)
    db.flush()
    db.add_all([
        PosConnection(restaurant_id=restaurant.id, pos_system="square", merchant_id="m-1"),
        PosConnection(restaurant_id=other_restaurant.id, pos_system="square", merchant_id="m-2"),
        PosConnection(restaurant_id=inactive.id, pos_system="square", merchant_id="m-3", is_active=False),
        PosConnection(restaurant_id=restaurant.id, pos_system="toast", merchant_id="t-1"),
    ])
    _stage_square_order(db, restaurant, "sq-a")
    _stage_square_order(db, other_restaurant, "sq-b")
    _stage_square_order(db, inactive, "sq-c")
    db.commit()
    return restaurant, other_restaurant, inactive


class TestSyncAllRestaurants:

    def test_syncs_every_active_connection(self, db, service_caller, connected_restaurants):
        restaurant, other_restaurant, inactive = connected_restaurants

        result = sync_all_restaurants(db, "square", service_caller)

        assert result.processed == 2
        assert result.errored == 0
        assert result.message == "processed 2, errored 0"
        synced = set(db.execute(select(UnifiedSale.restaurant_id)).scalars().all())
        assert synced == {restaurant.id, other_restaurant.id}

        connection = db.execute(
            select(PosConnection).where(PosConnection.restaurant_id == restaurant.id, PosConnection.pos_system == "square")
        ).scalar_one()
        assert connection.last_sync_at is not None

    def test_one_failure_does_not_stop_the_others(self, db, service_caller, connected_restaurants, monkeypatch):
        restaurant, other_restaurant, _ = connected_restaurants
        original = SquareSync.fetch_records

        def flaky_fetch(self, restaurant_id):
            if restaurant_id == restaurant.id:
                raise RuntimeError("staging table locked")
            return original(self, restaurant_id)

        monkeypatch.setattr(SquareSync, "fetch_records", flaky_fetch)

        result = sync_all_restaurants(db, "square", service_caller)

        assert result.processed == 1
        assert result.errored == 1
        failed = [outcome for outcome in result.outcomes if not outcome.ok]
        assert failed[0].restaurant_id == restaurant.id
        assert "staging table locked" in failed[0].error

        # The failed restaurant's work was rolled back; the other one committed
        runs = db.execute(select(SyncRun.restaurant_id)).scalars().all()
        assert runs == [other_restaurant.id]
        assert db.execute(select(UnifiedSale.restaurant_id)).scalars().all() == [other_restaurant.id]

    def test_user_callers_are_rejected(self, db, owner_caller, connected_restaurants):
        with pytest.raises(AuthorizationError):
            sync_all_restaurants(db, "square", owner_caller)

    def test_unknown_vendor_is_rejected(self, db, service_caller):
        with pytest.raises(ValidationError):
            sync_all_restaurants(db, "lightspeed", service_caller)

    def test_result_dict(self, db, service_caller, connected_restaurants):
        data = sync_all_restaurants(db, "square", service_caller).to_dict()

        assert data["pos_system"] == "square"
        assert len(data["results"]) == 2
        assert all(entry["ok"] for entry in data["results"])
        assert all(entry["rows_affected"] == 1 for entry in data["results"])


def test_enqueue_vendor_fetch_jobs(db, service_caller, connected_restaurants):
    restaurant, other_restaurant, _ = connected_restaurants

    queued = enqueue_vendor_fetch_jobs(db, "square", service_caller, action="backfill")

    assert queued == 2
    jobs = db.execute(select(SyncJob).order_by(SyncJob.id)).scalars().all()
    assert {job.queue_name for job in jobs} == {POS_FETCH_QUEUE}
    assert {job.payload["function"] for job in jobs} == {"square-sync-data"}
    assert {job.payload["body"]["restaurant_id"] for job in jobs} == {str(restaurant.id), str(other_restaurant.id)}
    assert all(job.payload["body"]["action"] == "backfill" for job in jobs)
