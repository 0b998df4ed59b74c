"""
Clover: locked (paid) orders, one ledger row per revenue line item.
"""
from typing import Any, Dict, Iterable, List
from uuid import UUID

from sqlalchemy import and_, func, select

from src.core.exceptions import UpstreamRowError
from src.models.pos_staging import CloverOrder, CloverOrderLineItem
from src.models.restaurant import Restaurant
from src.services import pos_units
from src.services.pos_sync.base import ConflictPolicy, VendorSync, local_sale_moment, sale_row

FINALIZED_STATE = "locked"


class CloverSync(VendorSync):
    pos_system = "clover"
    conflict_policy = ConflictPolicy.IGNORE

    def fetch_records(self, restaurant_id: UUID) -> Iterable[Any]:
        stmt = (
            select(CloverOrder, CloverOrderLineItem)
            .join(
                CloverOrderLineItem,
                and_(
                    CloverOrderLineItem.order_id == CloverOrder.order_id,
                    CloverOrderLineItem.restaurant_id == CloverOrder.restaurant_id,
                ),
            )
            .where(
                CloverOrder.restaurant_id == restaurant_id,
                func.lower(CloverOrder.state) == FINALIZED_STATE,
                CloverOrder.closed_time.is_not(None),
                CloverOrder.service_date.is_not(None),
                CloverOrderLineItem.is_revenue.is_(True),
            )
            .order_by(CloverOrder.order_id, CloverOrderLineItem.line_item_id)
        )
        return self.db.execute(stmt).all()

    def record_ref(self, record: Any) -> str:
        order, line_item = record
        return f"{order.order_id}/{line_item.line_item_id}"

    def map_record(self, record: Any, restaurant: Restaurant) -> List[Dict[str, Any]]:
        order, line_item = record
        if not line_item.line_item_id:
            raise UpstreamRowError("line item id is missing", row_ref=order.order_id)

        sale_date, sale_time = local_sale_moment(order.closed_time, order.service_date, restaurant.timezone)
        quantity = pos_units.clover_quantity(line_item.unit_quantity)
        unit_price = pos_units.cents_to_dollars(line_item.price, "price")

        return [
            sale_row(
                restaurant.id,
                self.pos_system,
                order.order_id,
                line_item.line_item_id,
                line_item.name,
                pos_units.extended_price(unit_price, quantity),
                sale_date,
                sale_time,
                quantity=quantity,
                unit_price=unit_price,
                pos_category=line_item.category_id,
                raw_data={"clover_order": order.raw_json, "clover_line_item": line_item.raw_json},
            )
        ]
