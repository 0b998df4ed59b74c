"""
Shared machinery for vendor syncs: staging rows in, ledger rows out.

A vendor sync only says which staging records are eligible and how one record
maps onto ledger rows. This module owns the rest: access checks, per-row error
isolation, the conflict-resolving insert and the sync run record.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.exceptions import NotFoundError, UpstreamRowError
from src.core.local_time import to_local_sale_datetime, utcnow
from src.models.restaurant import Restaurant
from src.models.sync_run import SyncRun
from src.models.unified_sale import UnifiedSale
from src.services.access import Caller, require_restaurant_access

logger = logging.getLogger(__name__)

IDENTITY_COLUMNS = ("restaurant_id", "pos_system", "external_order_id", "external_item_id")

# Vendor-reported fields refreshed by an updating resync
REFRESHABLE_COLUMNS = (
    "item_name",
    "quantity",
    "unit_price",
    "total_price",
    "sale_date",
    "sale_time",
    "pos_category",
    "raw_data",
    "synced_at",
)

# json has no equality operator in PostgreSQL, so raw_data is refreshed but never compared
COMPARED_COLUMNS = (
    "item_name",
    "quantity",
    "unit_price",
    "total_price",
    "sale_date",
    "sale_time",
    "pos_category",
)


class ConflictPolicy:
    IGNORE = "ignore"  # insert-if-absent
    UPDATE = "update"  # insert-or-refresh, never touching split rows


class SyncResult:
    """
    Result of one vendor sync for one restaurant.

    rows_processed and rows_failed count staging records; rows_affected and
    rows_skipped count the ledger rows those records produced. A record
    fails once however many of its ledger rows were rejected.
    """

    def __init__(self, restaurant_id: UUID, pos_system: str):
        self.restaurant_id = restaurant_id
        self.pos_system = pos_system
        self.sync_run_id: Optional[UUID] = None
        self.rows_processed = 0
        self.rows_affected = 0
        self.rows_skipped = 0
        self.rows_failed = 0
        self.errors: List[Dict] = []

    @property
    def status(self) -> str:
        if self.rows_failed == 0:
            return "COMPLETED"
        if self.rows_failed == self.rows_processed:
            return "FAILED"
        return "PARTIAL"

    def to_dict(self) -> Dict:
        """Convert to dictionary for API response."""
        return {
            "restaurant_id": str(self.restaurant_id),
            "pos_system": self.pos_system,
            "sync_run_id": str(self.sync_run_id) if self.sync_run_id else None,
            "status": self.status,
            "rows_processed": self.rows_processed,
            "rows_affected": self.rows_affected,
            "rows_skipped": self.rows_skipped,
            "rows_failed": self.rows_failed,
            "errors": self.errors[:10],
        }


def sale_row(
    restaurant_id: UUID,
    pos_system: str,
    external_order_id: Optional[str],
    external_item_id: Optional[str],
    item_name: Optional[str],
    total_price: Decimal,
    sale_date: date,
    sale_time=None,
    quantity: Decimal = Decimal("1"),
    unit_price: Optional[Decimal] = None,
    item_type: str = "sale",
    adjustment_type: Optional[str] = None,
    pos_category: Optional[str] = None,
    raw_data: Any = None,
) -> Dict[str, Any]:
    """Build the column values of one ledger row, rejecting rows without an identity."""
    if not external_order_id:
        raise UpstreamRowError("external order id is missing")
    if not external_item_id:
        raise UpstreamRowError("external item id is missing", row_ref=str(external_order_id))
    return {
        "restaurant_id": restaurant_id,
        "pos_system": pos_system,
        "external_order_id": str(external_order_id),
        "external_item_id": str(external_item_id),
        "item_name": item_name or "Unknown Item",
        "quantity": quantity,
        "unit_price": unit_price,
        "total_price": total_price,
        "sale_date": sale_date,
        "sale_time": sale_time,
        "pos_category": pos_category,
        "item_type": item_type,
        "adjustment_type": adjustment_type,
        "raw_data": raw_data,
        "synced_at": utcnow(),
    }


def local_sale_moment(
    instant: Optional[datetime],
    fallback_date: Optional[date],
    timezone_name: Optional[str],
    what: str = "settlement time",
) -> Tuple[date, Any]:
    """
    (sale_date, sale_time) from a settlement instant, or the vendor's service
    date with no time when the instant is missing.
    """
    if instant is not None:
        return to_local_sale_datetime(instant, timezone_name)
    if fallback_date is not None:
        return fallback_date, None
    raise UpstreamRowError(f"{what} is missing")


def build_upsert(session: Session, values: Dict[str, Any], policy: str):
    """
    INSERT ... ON CONFLICT against the partial identity index.

    The UPDATE branch is guarded by is_split = false, so a resync can never
    change the total of a sale whose allocations are already recorded.
    """
    dialect = session.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    stmt = insert(UnifiedSale.__table__).values(**values)
    index_where = UnifiedSale.parent_sale_id.is_(None)

    if policy == ConflictPolicy.IGNORE:
        return stmt.on_conflict_do_nothing(index_elements=list(IDENTITY_COLUMNS), index_where=index_where)

    table = UnifiedSale.__table__
    refreshed = {column: stmt.excluded[column] for column in REFRESHABLE_COLUMNS if column in values}
    refreshed["updated_at"] = utcnow()
    # Unchanged rows are left alone so an unchanged resync reports zero affected rows
    changed = or_(*[
        table.c[column].is_distinct_from(stmt.excluded[column])
        for column in COMPARED_COLUMNS
        if column in values
    ])
    return stmt.on_conflict_do_update(
        index_elements=list(IDENTITY_COLUMNS),
        index_where=index_where,
        set_=refreshed,
        where=and_(table.c.is_split.is_(False), changed),
    )


class VendorSync:
    """
    Base class for a vendor's staging-to-ledger sync.

    Subclasses set pos_system and conflict_policy and implement
    fetch_records() and map_record().
    """

    pos_system: str = ""
    conflict_policy: str = ConflictPolicy.IGNORE

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def fetch_records(self, restaurant_id: UUID) -> Iterable[Any]:
        """Eligible (finalized) staging records of one restaurant."""
        raise NotImplementedError

    def map_record(self, record: Any, restaurant: Restaurant) -> List[Dict[str, Any]]:
        """
        Ledger rows for one staging record.

        Raises:
            UpstreamRowError: the record cannot be mapped
        """
        raise NotImplementedError

    def record_ref(self, record: Any) -> str:
        return repr(record)

    def sync(self, restaurant_id: UUID, caller: Caller) -> SyncResult:
        """
        Normalize all eligible staging records of a restaurant into the ledger.

        Idempotent: a second run with unchanged staging data affects no rows.
        Unmappable records are logged, counted and recorded on the sync run;
        they never abort the sync.
        """
        require_restaurant_access(self.db, caller, restaurant_id, allow_service=True)
        restaurant = self.db.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")

        result = SyncResult(restaurant_id, self.pos_system)
        run = SyncRun(restaurant_id=restaurant_id, pos_system=self.pos_system, status="RUNNING")
        self.db.add(run)
        self.db.flush()
        result.sync_run_id = run.id

        for record in self.fetch_records(restaurant_id):
            result.rows_processed += 1
            try:
                rows = self.map_record(record, restaurant)
            except UpstreamRowError as e:
                self._record_failure(result, record, e.message)
                continue

            rejected = []
            for values in rows:
                try:
                    with self.db.begin_nested():
                        written = self.db.execute(build_upsert(self.db, values, self.conflict_policy))
                except (IntegrityError, DataError) as e:
                    rejected.append(f"{values['external_item_id']}: {e.orig if e.orig else e}")
                    continue
                if written.rowcount and written.rowcount > 0:
                    result.rows_affected += 1
                else:
                    result.rows_skipped += 1
            if rejected:
                self._record_failure(result, record, "; ".join(rejected))

        run.status = result.status
        run.rows_processed = result.rows_processed
        run.rows_affected = result.rows_affected
        run.rows_skipped = result.rows_skipped
        run.rows_failed = result.rows_failed
        run.errors = result.errors[: self.settings.SYNC_ERROR_SAMPLE_SIZE]
        run.finished_at = utcnow()
        self.db.commit()

        logger.info(
            f"{self.pos_system} sync for restaurant {restaurant_id}: "
            f"{result.rows_affected} affected, {result.rows_skipped} unchanged, "
            f"{result.rows_failed} failed of {result.rows_processed} records"
        )
        return result

    def _record_failure(self, result: SyncResult, record: Any, message: str) -> None:
        ref = self.record_ref(record)
        result.rows_failed += 1
        result.errors.append({"record": ref, "message": message})
        logger.warning(f"Skipping {self.pos_system} record {ref}: {message}")
