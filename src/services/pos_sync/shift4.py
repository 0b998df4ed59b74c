"""
Shift4: charge-level rows. Shift4 reports no line items, so each captured
charge becomes one sale row (tip excluded) plus a tip row, and each refund a
negative sale row.
"""
from collections import namedtuple
from typing import Any, Dict, Iterable, List
from uuid import UUID

from sqlalchemy import select

from src.core.exceptions import UpstreamRowError
from src.core.local_time import from_unix_seconds
from src.models.pos_staging import Shift4Charge, Shift4Refund
from src.models.restaurant import Restaurant
from src.services import pos_units
from src.services.pos_sync.base import ConflictPolicy, VendorSync, local_sale_moment, sale_row

FAILED_REFUND_STATUSES = ("failed", "canceled")

Shift4Record = namedtuple("Shift4Record", ["kind", "row"])


def _instant(created_at_ts):
    if created_at_ts is None:
        return None
    try:
        return from_unix_seconds(created_at_ts)
    except (TypeError, ValueError, OverflowError, OSError):
        raise UpstreamRowError(f"created_at_ts is not a unix timestamp: {created_at_ts!r}")


class Shift4Sync(VendorSync):
    pos_system = "shift4"
    conflict_policy = ConflictPolicy.UPDATE

    def fetch_records(self, restaurant_id: UUID) -> Iterable[Any]:
        charges = self.db.execute(
            select(Shift4Charge)
            .where(
                Shift4Charge.restaurant_id == restaurant_id,
                Shift4Charge.status == "successful",
                Shift4Charge.captured.is_(True),
                Shift4Charge.created_at_ts.is_not(None),
            )
            .order_by(Shift4Charge.charge_id)
        ).scalars().all()
        refunds = self.db.execute(
            select(Shift4Refund)
            .where(Shift4Refund.restaurant_id == restaurant_id)
            .order_by(Shift4Refund.refund_id)
        ).scalars().all()

        records = [Shift4Record("charge", charge) for charge in charges]
        records.extend(
            Shift4Record("refund", refund)
            for refund in refunds
            if (refund.status or "").lower() not in FAILED_REFUND_STATUSES
        )
        return records

    def record_ref(self, record: Any) -> str:
        if record.kind == "charge":
            return record.row.charge_id
        return f"{record.row.charge_id}/refund/{record.row.refund_id}"

    def map_record(self, record: Any, restaurant: Restaurant) -> List[Dict[str, Any]]:
        if record.kind == "charge":
            return self._map_charge(record.row, restaurant)
        return self._map_refund(record.row, restaurant)

    def _map_charge(self, charge: Shift4Charge, restaurant: Restaurant) -> List[Dict[str, Any]]:
        sale_date, sale_time = local_sale_moment(
            _instant(charge.created_at_ts), charge.service_date, restaurant.timezone, "charge time"
        )
        amount_cents = pos_units.to_decimal(charge.amount, "amount")
        tip_cents = pos_units.to_decimal(charge.tip_amount, "tip_amount") if charge.tip_amount is not None else 0
        sale_total = pos_units.cents_to_dollars(amount_cents - tip_cents, "amount")

        rows = [
            sale_row(
                restaurant.id, self.pos_system, charge.charge_id, f"{charge.charge_id}_sale",
                charge.description or "Shift4 Sale", sale_total, sale_date, sale_time,
                unit_price=sale_total, raw_data=charge.raw_json,
            )
        ]
        if tip_cents > 0:
            tip = pos_units.cents_to_dollars(tip_cents, "tip_amount")
            rows.append(
                sale_row(
                    restaurant.id, self.pos_system, charge.charge_id, f"{charge.charge_id}_tip",
                    "Tips", tip, sale_date, sale_time,
                    unit_price=tip, item_type="tip", adjustment_type="tip",
                    raw_data={"tip_cents": int(tip_cents)},
                )
            )
        return rows

    def _map_refund(self, refund: Shift4Refund, restaurant: Restaurant) -> List[Dict[str, Any]]:
        sale_date, sale_time = local_sale_moment(
            _instant(refund.created_at_ts), refund.service_date, restaurant.timezone, "refund time"
        )
        amount = -abs(pos_units.cents_to_dollars(refund.amount, "amount"))
        return [
            sale_row(
                restaurant.id, self.pos_system, refund.charge_id, refund.refund_id,
                "Refund", amount, sale_date, sale_time,
                unit_price=amount, raw_data=refund.raw_json,
            )
        ]
