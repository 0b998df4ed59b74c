"""
Toast: closed orders expand into sale, discount, void, tax, tip and refund rows.

Toast reports item price and item discount as line totals in dollars, so the
unit price is derived by dividing by quantity. Refund amounts arrive in cents.
Rows are refreshed on resync unless the sale has been split. A tax, tip or
refund row whose source was later corrected to zero (or whose payment was
denied or voided) is refreshed to a zero amount instead of being left stale.
"""
from collections import namedtuple
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.exceptions import UpstreamRowError
from src.models.pos_staging import ToastOrder, ToastOrderItem, ToastPayment
from src.models.restaurant import Restaurant
from src.models.unified_sale import UnifiedSale
from src.services import pos_units
from src.services.pos_sync.base import ConflictPolicy, VendorSync, local_sale_moment, sale_row

EXCLUDED_PAYMENT_STATUSES = ("DENIED", "VOIDED")
ZERO = Decimal("0.00")

ToastRecord = namedtuple("ToastRecord", ["kind", "order", "detail"])


def _nonzero(value) -> bool:
    return value is not None and Decimal(str(value)) != 0


class ToastSync(VendorSync):
    pos_system = "toast"
    conflict_policy = ConflictPolicy.UPDATE

    def __init__(self, db: Session):
        super().__init__(db)
        self.synced_adjustment_ids: Set[str] = set()

    def _load_synced_adjustment_ids(self, restaurant_id: UUID) -> Set[str]:
        stmt = select(UnifiedSale.external_item_id).where(
            UnifiedSale.restaurant_id == restaurant_id,
            UnifiedSale.pos_system == self.pos_system,
            UnifiedSale.parent_sale_id.is_(None),
            UnifiedSale.item_type.in_(("tax", "tip", "refund")),
        )
        return set(self.db.execute(stmt).scalars().all())

    def fetch_records(self, restaurant_id: UUID) -> Iterable[Any]:
        self.synced_adjustment_ids = self._load_synced_adjustment_ids(restaurant_id)

        orders = self.db.execute(
            select(ToastOrder)
            .where(
                ToastOrder.restaurant_id == restaurant_id,
                ToastOrder.is_voided.is_(False),
                ToastOrder.closed_date.is_not(None),
                ToastOrder.order_date.is_not(None),
            )
            .order_by(ToastOrder.toast_order_guid)
        ).scalars().all()
        by_guid = {order.toast_order_guid: order for order in orders}

        items = self.db.execute(
            select(ToastOrderItem)
            .where(ToastOrderItem.restaurant_id == restaurant_id)
            .order_by(ToastOrderItem.toast_order_guid, ToastOrderItem.toast_item_guid)
        ).scalars().all()
        payments = self.db.execute(
            select(ToastPayment)
            .where(ToastPayment.restaurant_id == restaurant_id)
            .order_by(ToastPayment.toast_order_guid, ToastPayment.toast_payment_guid)
        ).scalars().all()

        records = []
        for item in items:
            if item.toast_order_guid in by_guid:
                records.append(ToastRecord("item", by_guid[item.toast_order_guid], item))
        for order in orders:
            if _nonzero(order.tax_amount) or f"{order.toast_order_guid}_tax" in self.synced_adjustment_ids:
                records.append(ToastRecord("tax", order, None))
        for payment in payments:
            if payment.toast_order_guid in by_guid:
                records.append(ToastRecord("payment", by_guid[payment.toast_order_guid], payment))
        return records

    def record_ref(self, record: Any) -> str:
        if record.kind == "item":
            return f"{record.order.toast_order_guid}/{record.detail.toast_item_guid}"
        if record.kind == "payment":
            return f"{record.order.toast_order_guid}/payment/{record.detail.toast_payment_guid}"
        return f"{record.order.toast_order_guid}/tax"

    def map_record(self, record: Any, restaurant: Restaurant) -> List[Dict[str, Any]]:
        if record.kind == "item":
            return self._map_item(record.order, record.detail, restaurant)
        if record.kind == "payment":
            return self._map_payment(record.order, record.detail, restaurant)
        return self._map_tax(record.order, restaurant)

    def _order_moment(self, order: ToastOrder, restaurant: Restaurant):
        return local_sale_moment(order.closed_date, order.order_date, restaurant.timezone, "order close time")

    def _map_item(self, order: ToastOrder, item: ToastOrderItem, restaurant: Restaurant) -> List[Dict[str, Any]]:
        if not item.toast_item_guid:
            raise UpstreamRowError("item guid is missing", row_ref=order.toast_order_guid)
        # Zero-priced lines (free modifiers) carry no money
        if item.price is None or not _nonzero(item.price):
            return []

        sale_date, sale_time = self._order_moment(order, restaurant)
        quantity = pos_units.parse_quantity(item.quantity)
        line_total = pos_units.quantize_money(pos_units.to_decimal(item.price, "price"))
        common = dict(
            sale_date=sale_date,
            sale_time=sale_time,
            quantity=quantity,
            pos_category=item.menu_category,
            raw_data=item.raw_json,
        )

        if item.is_voided:
            return [
                sale_row(
                    restaurant.id, self.pos_system, order.toast_order_guid, f"{item.toast_item_guid}_void",
                    f"Void - {item.item_name or 'Unknown Item'}", -abs(line_total),
                    unit_price=pos_units.line_total_to_unit_price(-abs(line_total), quantity),
                    item_type="discount", adjustment_type="void", **common,
                )
            ]

        rows = [
            sale_row(
                restaurant.id, self.pos_system, order.toast_order_guid, item.toast_item_guid,
                item.item_name, line_total,
                unit_price=pos_units.line_total_to_unit_price(line_total, quantity),
                **common,
            )
        ]
        if _nonzero(item.discount_amount):
            discount = -abs(pos_units.quantize_money(pos_units.to_decimal(item.discount_amount, "discount_amount")))
            rows.append(
                sale_row(
                    restaurant.id, self.pos_system, order.toast_order_guid, f"{item.toast_item_guid}_discount",
                    f"Discount - {item.item_name or 'Unknown Item'}", discount,
                    unit_price=pos_units.line_total_to_unit_price(discount, quantity),
                    item_type="discount", adjustment_type="discount", **common,
                )
            )
        return rows

    def _map_tax(self, order: ToastOrder, restaurant: Restaurant) -> List[Dict[str, Any]]:
        sale_date, sale_time = self._order_moment(order, restaurant)
        tax = ZERO
        if order.tax_amount is not None:
            tax = pos_units.quantize_money(pos_units.to_decimal(order.tax_amount, "tax_amount"))
        return [
            sale_row(
                restaurant.id, self.pos_system, order.toast_order_guid, f"{order.toast_order_guid}_tax",
                "Sales Tax", tax, sale_date, sale_time,
                unit_price=tax, item_type="tax", adjustment_type="tax", raw_data=order.raw_json,
            )
        ]

    def _map_payment(self, order: ToastOrder, payment: ToastPayment, restaurant: Restaurant) -> List[Dict[str, Any]]:
        excluded = (payment.payment_status or "").upper() in EXCLUDED_PAYMENT_STATUSES
        tip_id = f"{payment.toast_payment_guid}_tip"
        refund_id = f"{payment.toast_payment_guid}_refund"

        tip: Optional[Decimal] = None
        if not excluded and _nonzero(payment.tip_amount):
            tip = pos_units.quantize_money(pos_units.to_decimal(payment.tip_amount, "tip_amount"))
        elif tip_id in self.synced_adjustment_ids:
            tip = ZERO
        refund: Optional[Decimal] = None
        if not excluded and _nonzero(payment.refund_amount):
            refund = -abs(pos_units.cents_to_dollars(payment.refund_amount, "refund_amount"))
        elif refund_id in self.synced_adjustment_ids:
            refund = ZERO
        if tip is None and refund is None:
            return []

        if payment.paid_date is not None:
            sale_date, sale_time = local_sale_moment(payment.paid_date, None, restaurant.timezone)
        else:
            sale_date, sale_time = self._order_moment(order, restaurant)
        payment_type = payment.payment_type or "Unknown"

        rows = []
        if tip is not None:
            rows.append(
                sale_row(
                    restaurant.id, self.pos_system, order.toast_order_guid, tip_id,
                    f"Tip - {payment_type}", tip, sale_date, sale_time,
                    unit_price=tip, item_type="tip", adjustment_type="tip", raw_data=payment.raw_json,
                )
            )
        if refund is not None:
            rows.append(
                sale_row(
                    restaurant.id, self.pos_system, order.toast_order_guid, refund_id,
                    f"Refund - {payment_type}", refund, sale_date, sale_time,
                    unit_price=refund, item_type="refund", raw_data=payment.raw_json,
                )
            )
        return rows
