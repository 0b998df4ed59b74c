"""
Manual ledger entry: single sales keyed by the user, bulk uploads, and
explicit deletion.
"""
import hashlib
import logging
import uuid
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from src.core.exceptions import ConflictError, NotFoundError, UpstreamRowError, ValidationError
from src.core.local_time import utcnow
from src.models.unified_sale import ADJUSTMENT_TYPES, ITEM_TYPES, UnifiedSale
from src.services import pos_units
from src.services.access import Caller, require_elevated_access
from src.services.ledger import get_tenant_category, get_tenant_sale
from src.services.pos_sync.base import ConflictPolicy, build_upsert

logger = logging.getLogger(__name__)


@dataclass
class ManualSaleInput:
    item_name: str
    total_price: Decimal
    sale_date: date
    sale_time: Optional[time] = None
    quantity: Decimal = Decimal("1")
    unit_price: Optional[Decimal] = None
    item_type: str = "sale"
    adjustment_type: Optional[str] = None
    pos_category: Optional[str] = None
    category_id: Optional[UUID] = None
    external_order_id: Optional[str] = None
    external_item_id: Optional[str] = None


class ImportResult:
    """Result of a bulk manual upload."""

    def __init__(self):
        self.rows_processed = 0
        self.rows_inserted = 0
        self.rows_skipped_duplicate = 0
        self.rows_failed = 0
        self.errors: List[Dict] = []

    def to_dict(self) -> Dict:
        return {
            "rows_processed": self.rows_processed,
            "rows_inserted": self.rows_inserted,
            "rows_skipped_duplicate": self.rows_skipped_duplicate,
            "rows_failed": self.rows_failed,
            "errors": self.errors[:10],
        }


def compute_row_hash(data: ManualSaleInput) -> str:
    """
    Stable identity for an uploaded row without its own id.

    Hash is based on: date + time + item_name + quantity + total
    """
    hash_input = f"{data.sale_date.isoformat()}|{data.sale_time or ''}|{data.item_name}|{data.quantity}|{data.total_price}"
    return hashlib.sha256(hash_input.encode("utf-8")).hexdigest()


def _validated_values(data: ManualSaleInput, field_prefix: str = "") -> Dict:
    if not data.item_name or not data.item_name.strip():
        raise ValidationError("item_name is required", field=f"{field_prefix}item_name")
    if data.item_type not in ITEM_TYPES:
        raise ValidationError(
            f"item_type must be one of {', '.join(ITEM_TYPES)}", field=f"{field_prefix}item_type"
        )
    if data.adjustment_type is not None and data.adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(
            f"adjustment_type must be one of {', '.join(ADJUSTMENT_TYPES)}",
            field=f"{field_prefix}adjustment_type",
        )
    if data.sale_date is None:
        raise ValidationError("sale_date is required", field=f"{field_prefix}sale_date")
    try:
        total = pos_units.quantize_money(pos_units.to_decimal(data.total_price, "total_price"))
        quantity = pos_units.parse_quantity(data.quantity)
        unit_price = (
            pos_units.quantize_money(pos_units.to_decimal(data.unit_price, "unit_price"))
            if data.unit_price is not None
            else pos_units.line_total_to_unit_price(total, quantity)
        )
    except UpstreamRowError as e:
        raise ValidationError(e.message, field=f"{field_prefix}total_price")

    return {
        "item_name": data.item_name.strip(),
        "quantity": quantity,
        "unit_price": unit_price,
        "total_price": total,
        "sale_date": data.sale_date,
        "sale_time": data.sale_time,
        "pos_category": data.pos_category,
        "item_type": data.item_type,
        "adjustment_type": data.adjustment_type,
    }


def create_manual_sale(db: Session, restaurant_id: UUID, data: ManualSaleInput, caller: Caller) -> UnifiedSale:
    """Record a sale by hand (pos_system 'manual'). A given category marks it categorized."""
    require_elevated_access(db, caller, restaurant_id)
    values = _validated_values(data)
    if data.category_id is not None:
        get_tenant_category(db, restaurant_id, data.category_id)

    sale = UnifiedSale(
        restaurant_id=restaurant_id,
        pos_system="manual",
        external_order_id=data.external_order_id or f"manual_{uuid.uuid4().hex}",
        external_item_id=data.external_item_id or uuid.uuid4().hex,
        category_id=data.category_id,
        is_categorized=data.category_id is not None,
        synced_at=utcnow(),
        **values,
    )
    db.add(sale)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            f"A manual sale with order {data.external_order_id} and item {data.external_item_id} already exists"
        )
    db.refresh(sale)
    return sale


def import_manual_sales(
    db: Session,
    restaurant_id: UUID,
    rows: Sequence[ManualSaleInput],
    caller: Caller,
) -> ImportResult:
    """
    Bulk-import rows (pos_system 'manual_upload').

    Rows are keyed by their order/item ids, or by a content hash when the
    upload has none, so re-uploading a file inserts nothing new. Invalid rows
    are reported and skipped.
    """
    require_elevated_access(db, caller, restaurant_id)
    result = ImportResult()

    for index, data in enumerate(rows):
        result.rows_processed += 1
        try:
            values = _validated_values(data, field_prefix=f"rows[{index}].")
            if data.category_id is not None:
                get_tenant_category(db, restaurant_id, data.category_id)
            row_hash = compute_row_hash(data)
        except ValidationError as e:
            result.rows_failed += 1
            result.errors.append({"row": index, "field": e.field, "message": e.message})
            continue
        except NotFoundError as e:
            result.rows_failed += 1
            result.errors.append({"row": index, "field": "category_id", "message": e.message})
            continue

        values.update(
            restaurant_id=restaurant_id,
            pos_system="manual_upload",
            external_order_id=data.external_order_id or f"upload_{data.sale_date.isoformat()}",
            external_item_id=data.external_item_id or row_hash,
            category_id=data.category_id,
            is_categorized=data.category_id is not None,
            synced_at=utcnow(),
        )
        try:
            with db.begin_nested():
                written = db.execute(build_upsert(db, values, ConflictPolicy.IGNORE))
        except (IntegrityError, DataError) as e:
            result.rows_failed += 1
            result.errors.append({"row": index, "field": None, "message": str(e.orig or e)})
            continue

        if written.rowcount and written.rowcount > 0:
            result.rows_inserted += 1
        else:
            result.rows_skipped_duplicate += 1

    db.commit()
    logger.info(
        f"Manual upload for restaurant {restaurant_id}: {result.rows_inserted} inserted, "
        f"{result.rows_skipped_duplicate} duplicates, {result.rows_failed} failed"
    )
    return result


def delete_sale(db: Session, restaurant_id: UUID, sale_id: UUID, caller: Caller) -> None:
    """Explicitly remove a ledger row, its allocations and any legacy split children."""
    require_elevated_access(db, caller, restaurant_id)
    sale = get_tenant_sale(db, restaurant_id, sale_id)
    db.execute(delete(UnifiedSale).where(UnifiedSale.parent_sale_id == sale.id))
    db.delete(sale)
    db.commit()
    logger.info(f"Sale {sale_id} deleted by {caller}")
