"""
Cross-vendor orchestrator: runs one vendor's sync for every restaurant with an
active connection. Invoked by the external scheduler as a service caller.
"""
import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.core.local_time import utcnow
from src.models.pos_connection import PosConnection
from src.services.access import Caller, require_service_caller
from src.services.job_queue import JobQueue
from src.services.pos_sync import SyncResult, get_sync_service

logger = logging.getLogger(__name__)


class RestaurantSyncOutcome:
    def __init__(self, restaurant_id: UUID, result: Optional[SyncResult] = None, error: Optional[str] = None):
        self.restaurant_id = restaurant_id
        self.result = result
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict:
        return {
            "restaurant_id": str(self.restaurant_id),
            "ok": self.ok,
            "rows_affected": self.result.rows_affected if self.result else 0,
            "rows_failed": self.result.rows_failed if self.result else 0,
            "error": self.error,
        }


class OrchestratorResult:
    """Per-restaurant outcomes of one orchestrated run."""

    def __init__(self, pos_system: str):
        self.pos_system = pos_system
        self.outcomes: List[RestaurantSyncOutcome] = []

    @property
    def processed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def errored(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def message(self) -> str:
        return f"processed {self.processed}, errored {self.errored}"

    def to_dict(self) -> Dict:
        return {
            "pos_system": self.pos_system,
            "processed": self.processed,
            "errored": self.errored,
            "message": self.message,
            "results": [outcome.to_dict() for outcome in self.outcomes],
        }


def active_restaurant_ids(db: Session, pos_system: str) -> List[UUID]:
    stmt = (
        select(PosConnection.restaurant_id)
        .where(PosConnection.pos_system == pos_system, PosConnection.is_active.is_(True))
        .distinct()
        .order_by(PosConnection.restaurant_id)
    )
    return list(db.execute(stmt).scalars().all())


def sync_all_restaurants(db: Session, pos_system: str, caller: Caller) -> OrchestratorResult:
    """
    Sync every restaurant with an active connection for the vendor.

    Each restaurant runs in its own transaction; a failure is rolled back,
    logged and reported without affecting the other restaurants.
    """
    require_service_caller(caller)
    service = get_sync_service(db, pos_system)
    result = OrchestratorResult(pos_system)

    for restaurant_id in active_restaurant_ids(db, pos_system):
        try:
            sync_result = service.sync(restaurant_id, caller)
            db.execute(
                update(PosConnection)
                .where(
                    PosConnection.restaurant_id == restaurant_id,
                    PosConnection.pos_system == pos_system,
                    PosConnection.is_active.is_(True),
                )
                .values(last_sync_at=utcnow())
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"{pos_system} sync failed for restaurant {restaurant_id}: {e}", exc_info=True)
            result.outcomes.append(RestaurantSyncOutcome(restaurant_id, error=str(e)))
            continue
        result.outcomes.append(RestaurantSyncOutcome(restaurant_id, result=sync_result))

    logger.info(f"{pos_system} orchestrated sync: {result.message}")
    return result


POS_FETCH_QUEUE = "pos_fetch"


def enqueue_vendor_fetch_jobs(db: Session, pos_system: str, caller: Caller, action: str = "daily") -> int:
    """
    Queue one vendor API fetch per active connection. The worker functions
    refill the staging tables; the drain delivers them.
    """
    require_service_caller(caller)
    get_sync_service(db, pos_system)
    queue = JobQueue(db, POS_FETCH_QUEUE)
    restaurant_ids = active_restaurant_ids(db, pos_system)
    for restaurant_id in restaurant_ids:
        queue.enqueue(
            {
                "function": f"{pos_system}-sync-data",
                "body": {"restaurant_id": str(restaurant_id), "action": action},
            }
        )
    logger.info(f"Queued {len(restaurant_ids)} {pos_system} fetch jobs")
    return len(restaurant_ids)
