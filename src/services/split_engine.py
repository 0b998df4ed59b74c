"""
Split engine: allocate one ledger row across several categories.

A split replaces the row's single category with allocations whose amounts
sum to the row's total (within a cent-level tolerance). Re-splitting an
already-split row replaces its allocations in one transaction.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.config import get_settings
from src.core.exceptions import ConflictError, ValidationError
from src.models.unified_sale import UnifiedSale, UnifiedSaleSplit
from src.services.access import Caller, require_elevated_access, require_restaurant_access
from src.services.ledger import get_tenant_category, get_tenant_sale

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
PERCENT_TOTAL = Decimal("100")
PERCENT_TOLERANCE = Decimal("0.01")
ROUNDING_RESIDUE_LIMIT = Decimal("0.02")


@dataclass(frozen=True)
class SplitAllocation:
    """One requested allocation: an amount, an optional category and a label."""
    amount: Decimal
    category_id: Optional[UUID] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class PercentageSplit:
    category_id: Optional[UUID]
    percentage: Decimal
    description: Optional[str] = None


@dataclass(frozen=True)
class AmountSplit:
    category_id: Optional[UUID]
    amount: Decimal
    description: Optional[str] = None


SplitRuleEntry = Union[PercentageSplit, AmountSplit]


def _money(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    # Sub-cent amounts are rejected, never rounded into a different split
    if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} must have at most 2 decimal places", field=field)
    return amount.quantize(CENT)


def split_tolerance(total: Decimal) -> Decimal:
    """Allowed |sum - total|: max(absolute tolerance, relative tolerance x |total|)."""
    settings = get_settings()
    absolute = Decimal(str(settings.SPLIT_ABSOLUTE_TOLERANCE))
    relative = Decimal(str(settings.SPLIT_RELATIVE_TOLERANCE)) * abs(total)
    return max(absolute, relative)


def validate_allocations(allocations: Sequence[SplitAllocation]) -> List[Decimal]:
    """Cent-rounded amounts of a well-formed allocation list."""
    if not allocations:
        raise ValidationError("At least one allocation is required", field="allocations")

    amounts = []
    for index, allocation in enumerate(allocations):
        field = f"allocations[{index}].amount"
        if allocation.amount is None:
            raise ValidationError(f"{field} is required", field=field)
        amount = _money(allocation.amount, field)
        if amount == 0:
            raise ValidationError(f"{field} must not be zero", field=field)
        amounts.append(amount)
    return amounts


def check_split_sum(expected: Decimal, amounts: Sequence[Decimal]) -> None:
    actual = sum(amounts, Decimal("0"))
    if abs(actual - expected) > split_tolerance(expected):
        raise ConflictError(
            f"Split amounts must sum to the sale total: expected {expected}, got {actual}",
            {"expected": str(expected), "actual": str(actual)},
        )


def split_sale(
    db: Session,
    restaurant_id: UUID,
    sale_id: UUID,
    allocations: Sequence[SplitAllocation],
    caller: Caller,
) -> UnifiedSale:
    """
    Split a sale across categories, replacing any previous split.

    The previous allocations and legacy split-child rows are deleted and the
    new allocations written in a single transaction; on any failure the
    sale keeps its previous state.

    Raises:
        AuthorizationError: caller is not an owner or manager
        NotFoundError: sale or a category is not in this restaurant
        ConflictError: sale is itself a split child, or the amounts do not sum to its total
        ValidationError: empty list, missing or zero amounts
    """
    require_elevated_access(db, caller, restaurant_id)
    sale = get_tenant_sale(db, restaurant_id, sale_id, for_update=True)
    if sale.parent_sale_id is not None:
        raise ConflictError(f"Sale {sale_id} is already a split of {sale.parent_sale_id}; nested splits are not allowed")

    amounts = validate_allocations(allocations)
    for allocation in allocations:
        if allocation.category_id is not None:
            get_tenant_category(db, restaurant_id, allocation.category_id)
    check_split_sum(Decimal(str(sale.total_price)), amounts)

    try:
        db.execute(delete(UnifiedSaleSplit).where(UnifiedSaleSplit.sale_id == sale.id))
        db.execute(delete(UnifiedSale).where(UnifiedSale.parent_sale_id == sale.id))
        for allocation, amount in zip(allocations, amounts):
            db.add(
                UnifiedSaleSplit(
                    sale_id=sale.id,
                    category_id=allocation.category_id,
                    amount=amount,
                    description=allocation.description or sale.item_name,
                )
            )
        sale.is_split = True
        sale.is_categorized = True
        sale.category_id = None
        sale.suggested_category_id = None
        sale.ai_confidence = None
        sale.ai_reasoning = None
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Failed to split sale {sale_id}", exc_info=True)
        raise

    db.refresh(sale)
    logger.info(f"Sale {sale_id} split into {len(amounts)} allocations by {caller}")
    return sale


def resolve_split_rule(entries: Sequence[SplitRuleEntry], total: Decimal) -> List[SplitAllocation]:
    """
    Turn a split rule into concrete allocations for a sale total.

    A rule is either all percentages (summing to 100) or all fixed amounts,
    with at least two entries. Percentage amounts are rounded to cents and
    the last entry absorbs the rounding residue.
    """
    if len(entries) < 2:
        raise ValidationError("A split rule needs at least two entries", field="entries")

    if all(isinstance(entry, AmountSplit) for entry in entries):
        return [SplitAllocation(entry.amount, entry.category_id, entry.description) for entry in entries]
    if not all(isinstance(entry, PercentageSplit) for entry in entries):
        raise ValidationError("A split rule cannot mix percentages and amounts", field="entries")

    percentages = []
    for index, entry in enumerate(entries):
        field = f"entries[{index}].percentage"
        try:
            percentage = Decimal(str(entry.percentage))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number", field=field)
        if percentage <= 0 or percentage > PERCENT_TOTAL:
            raise ValidationError(f"{field} must be between 0 and 100", field=field)
        percentages.append(percentage)

    if abs(sum(percentages) - PERCENT_TOTAL) > PERCENT_TOLERANCE:
        raise ValidationError(f"Percentages must sum to 100, got {sum(percentages)}", field="entries")

    total = Decimal(str(total))
    amounts = [(total * pct / PERCENT_TOTAL).quantize(CENT, rounding=ROUND_HALF_UP) for pct in percentages[:-1]]
    remainder = total - sum(amounts, Decimal("0"))
    ideal_last = (total * percentages[-1] / PERCENT_TOTAL).quantize(CENT, rounding=ROUND_HALF_UP)
    if abs(remainder - ideal_last) > ROUNDING_RESIDUE_LIMIT:
        raise ConflictError(
            f"Split rule rounding residue {remainder - ideal_last} exceeds {ROUNDING_RESIDUE_LIMIT}"
        )
    amounts.append(remainder)

    return [
        SplitAllocation(amount, entry.category_id, entry.description)
        for entry, amount in zip(entries, amounts)
    ]


def apply_split_rule(
    db: Session,
    restaurant_id: UUID,
    sale_id: UUID,
    entries: Sequence[SplitRuleEntry],
    caller: Caller,
) -> UnifiedSale:
    """Resolve a split rule against the sale's total and split it."""
    require_elevated_access(db, caller, restaurant_id)
    sale = get_tenant_sale(db, restaurant_id, sale_id)
    allocations = resolve_split_rule(entries, Decimal(str(sale.total_price)))
    return split_sale(db, restaurant_id, sale_id, allocations, caller)


def get_sale_splits(db: Session, restaurant_id: UUID, sale_id: UUID, caller: Caller) -> List[UnifiedSaleSplit]:
    require_restaurant_access(db, caller, restaurant_id)
    sale = get_tenant_sale(db, restaurant_id, sale_id)
    stmt = (
        select(UnifiedSaleSplit)
        .where(UnifiedSaleSplit.sale_id == sale.id)
        .order_by(UnifiedSaleSplit.created_at, UnifiedSaleSplit.id)
    )
    return list(db.execute(stmt).scalars().all())
