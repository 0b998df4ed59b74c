"""
Vendor unit normalization.

Every vendor reports money and quantities differently. These helpers are the
only place raw vendor numbers become ledger dollars and units; sync mappers
call them instead of dividing inline.

    Square   money in cents, quantity as a decimal string ("2", "1.5")
    Clover   price in cents, unitQty in thousandths (1000 = 1 unit)
    Toast    dollars, item price and discount are line totals, refunds in cents
    Shift4   money in cents
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from src.core.exceptions import UpstreamRowError

CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")
CLOVER_QUANTITY_SCALE = Decimal(1000)


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Parse a vendor number into a Decimal.

    Raises:
        UpstreamRowError: value is missing or not numeric
    """
    if value is None or isinstance(value, bool):
        raise UpstreamRowError(f"{field} is missing")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise UpstreamRowError(f"{field} is not numeric: {value!r}")
    if not result.is_finite():
        raise UpstreamRowError(f"{field} is not a finite number: {value!r}")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def cents_to_dollars(cents: Any, field: str = "amount") -> Decimal:
    """1050 -> Decimal('10.50')"""
    return quantize_money(to_decimal(cents, field) / 100)


def clover_quantity(unit_qty: Any) -> Decimal:
    """
    Clover unitQty is in thousandths; a missing unitQty means one unit.

    >>> clover_quantity(2000)
    Decimal('2.000')
    """
    if unit_qty is None:
        return Decimal("1.000")
    quantity = to_decimal(unit_qty, "unit_quantity") / CLOVER_QUANTITY_SCALE
    return quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def parse_quantity(value: Any, default: Optional[Decimal] = Decimal("1")) -> Decimal:
    """Decimal-string or numeric quantity. Missing falls back to default."""
    if value is None or value == "":
        if default is None:
            raise UpstreamRowError("quantity is missing")
        return default
    return to_decimal(value, "quantity").quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def line_total_to_unit_price(line_total: Decimal, quantity: Decimal) -> Optional[Decimal]:
    """Per-unit price from a line total. Zero quantity has no unit price."""
    if quantity == 0:
        return None
    return quantize_money(line_total / quantity)


def extended_price(unit_price: Decimal, quantity: Decimal) -> Decimal:
    """Line total from a unit price and quantity."""
    return quantize_money(unit_price * quantity)
