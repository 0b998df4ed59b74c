"""
Square: completed orders, one ledger row per line item.
"""
from typing import Any, Dict, Iterable, List
from uuid import UUID

from sqlalchemy import and_, select

from src.core.exceptions import UpstreamRowError
from src.models.pos_staging import SquareOrder, SquareOrderLineItem
from src.models.restaurant import Restaurant
from src.services import pos_units
from src.services.pos_sync.base import ConflictPolicy, VendorSync, local_sale_moment, sale_row


class SquareSync(VendorSync):
    pos_system = "square"
    conflict_policy = ConflictPolicy.IGNORE

    def fetch_records(self, restaurant_id: UUID) -> Iterable[Any]:
        stmt = (
            select(SquareOrder, SquareOrderLineItem)
            .join(
                SquareOrderLineItem,
                and_(
                    SquareOrderLineItem.order_id == SquareOrder.order_id,
                    SquareOrderLineItem.restaurant_id == SquareOrder.restaurant_id,
                ),
            )
            .where(
                SquareOrder.restaurant_id == restaurant_id,
                SquareOrder.state == "COMPLETED",
                SquareOrder.closed_at.is_not(None),
                SquareOrder.service_date.is_not(None),
            )
            .order_by(SquareOrder.order_id, SquareOrderLineItem.uid)
        )
        return self.db.execute(stmt).all()

    def record_ref(self, record: Any) -> str:
        order, line_item = record
        return f"{order.order_id}/{line_item.uid}"

    def map_record(self, record: Any, restaurant: Restaurant) -> List[Dict[str, Any]]:
        order, line_item = record
        if not line_item.uid:
            raise UpstreamRowError("line item uid is missing", row_ref=order.order_id)

        sale_date, sale_time = local_sale_moment(order.closed_at, order.service_date, restaurant.timezone)
        quantity = pos_units.parse_quantity(line_item.quantity)
        total = pos_units.cents_to_dollars(line_item.total_money, "total_money")
        if line_item.base_price_money is not None:
            unit_price = pos_units.cents_to_dollars(line_item.base_price_money, "base_price_money")
        else:
            unit_price = pos_units.line_total_to_unit_price(total, quantity)

        return [
            sale_row(
                restaurant.id,
                self.pos_system,
                order.order_id,
                line_item.uid,
                line_item.name,
                total,
                sale_date,
                sale_time,
                quantity=quantity,
                unit_price=unit_price,
                pos_category=line_item.category_id,
                raw_data={"square_order": order.raw_json, "square_line_item": line_item.raw_json},
            )
        ]
