"""
Reporting aggregates over the unified sales ledger.

Every report is computed in SQL and returned pre-aggregated; callers never
receive raw rows to sum themselves. Each report checks tenant membership
first and raises AuthorizationError instead of returning an empty result.

Row buckets (rows without a parent):
    revenue       item_type = 'sale' and no adjustment_type
    discounts     item_type = 'discount', adjustment_type other than 'void'
    voids         item_type = 'discount', adjustment_type = 'void'
    pass-through  everything else (tax, tips, service charges, fees, refunds,
                  sale rows carrying an adjustment)
"""
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import and_, case, distinct, exists, func, or_, select
from sqlalchemy.orm import Session, aliased

from src.models.account import ChartOfAccount
from src.models.unified_sale import UnifiedSale, UnifiedSaleSplit
from src.services.access import Caller, require_restaurant_access

CENT = Decimal("0.01")

REVENUE = and_(UnifiedSale.item_type == "sale", UnifiedSale.adjustment_type.is_(None))
VOIDS = and_(UnifiedSale.item_type == "discount", UnifiedSale.adjustment_type == "void")
DISCOUNTS = and_(
    UnifiedSale.item_type == "discount",
    or_(UnifiedSale.adjustment_type.is_(None), UnifiedSale.adjustment_type != "void"),
)
PASS_THROUGH = or_(
    UnifiedSale.item_type.notin_(["sale", "discount"]),
    and_(UnifiedSale.item_type == "sale", UnifiedSale.adjustment_type.isnot(None)),
)
TAX = or_(UnifiedSale.item_type == "tax", UnifiedSale.adjustment_type == "tax")
TIPS = or_(UnifiedSale.item_type == "tip", UnifiedSale.adjustment_type == "tip")
OTHER_LIABILITIES = or_(
    UnifiedSale.item_type.in_(["service_charge", "fee"]),
    UnifiedSale.adjustment_type.in_(["service_charge", "fee"]),
)
TIP_ACCOUNT = or_(
    func.lower(ChartOfAccount.account_name).like("%tip%"),
    func.lower(func.coalesce(ChartOfAccount.account_subtype, "")).like("%tip%"),
)


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT)


def _sum_if(condition, column=UnifiedSale.total_price):
    return func.coalesce(func.sum(case((condition, column), else_=0)), 0)


def _like_pattern(term: str) -> str:
    """Substring pattern with LIKE wildcards in the term matched literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _ledger_filters(restaurant_id: UUID, start_date: Optional[date], end_date: Optional[date]) -> list:
    filters = [UnifiedSale.restaurant_id == restaurant_id]
    if start_date is not None:
        filters.append(UnifiedSale.sale_date >= start_date)
    if end_date is not None:
        filters.append(UnifiedSale.sale_date <= end_date)
    return filters


@dataclass
class SalesTotals:
    total_count: int
    revenue: Decimal
    discounts: Decimal
    voids: Decimal
    pass_through_amount: Decimal
    unique_items: int
    collected_at_pos: Decimal

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class CategoryRevenue:
    account_id: Optional[UUID]
    account_code: Optional[str]
    account_name: str
    account_type: Optional[str]
    account_subtype: Optional[str]
    is_categorized: bool
    total_amount: Decimal
    transaction_count: int


@dataclass
class PassThroughTotal:
    adjustment_type: str
    total_amount: Decimal
    transaction_count: int


@dataclass
class TipDay:
    tip_date: date
    pos_source: str
    total_amount_cents: int
    transaction_count: int


@dataclass
class DailySalesTotal:
    sale_date: date
    total_revenue: Decimal
    transaction_count: int


@dataclass
class MonthlySalesMetrics:
    period: str
    gross_revenue: Decimal = Decimal("0.00")
    discounts: Decimal = Decimal("0.00")
    sales_tax: Decimal = Decimal("0.00")
    tips: Decimal = Decimal("0.00")
    other_liabilities: Decimal = Decimal("0.00")


def get_unified_sales_totals(
    db: Session,
    restaurant_id: UUID,
    start_date: Optional[date],
    end_date: Optional[date],
    caller: Caller,
    search_term: Optional[str] = None,
) -> SalesTotals:
    """
    Raw-collection totals: every ledger row without a parent, split or not.

    revenue + discounts + voids + pass_through_amount == collected_at_pos.
    """
    require_restaurant_access(db, caller, restaurant_id)

    filters = _ledger_filters(restaurant_id, start_date, end_date)
    filters.append(UnifiedSale.parent_sale_id.is_(None))
    if search_term:
        filters.append(UnifiedSale.item_name.ilike(_like_pattern(search_term.strip()), escape="\\"))

    stmt = select(
        func.count(UnifiedSale.id),
        _sum_if(REVENUE),
        _sum_if(DISCOUNTS),
        _sum_if(VOIDS),
        _sum_if(PASS_THROUGH),
        func.count(distinct(UnifiedSale.item_name)),
        func.coalesce(func.sum(UnifiedSale.total_price), 0),
    ).where(*filters)
    row = db.execute(stmt).one()

    return SalesTotals(
        total_count=int(row[0] or 0),
        revenue=to_money(row[1]),
        discounts=to_money(row[2]),
        voids=to_money(row[3]),
        pass_through_amount=to_money(row[4]),
        unique_items=int(row[5] or 0),
        collected_at_pos=to_money(row[6]),
    )


def get_revenue_by_category(
    db: Session,
    restaurant_id: UUID,
    start_date: Optional[date],
    end_date: Optional[date],
    caller: Caller,
) -> List[CategoryRevenue]:
    """
    Totals per chart-of-accounts category.

    Split rows contribute through their allocations, never through the row
    itself. Sale rows without a category (and unassigned allocations of sale
    rows) are reported in one uncategorized bucket.
    """
    require_restaurant_access(db, caller, restaurant_id)
    filters = _ledger_filters(restaurant_id, start_date, end_date)
    filters.append(UnifiedSale.parent_sale_id.is_(None))
    account_columns = (
        ChartOfAccount.id,
        ChartOfAccount.account_code,
        ChartOfAccount.account_name,
        ChartOfAccount.account_type,
        ChartOfAccount.account_subtype,
    )

    direct = (
        select(*account_columns, func.sum(UnifiedSale.total_price), func.count(UnifiedSale.id))
        .select_from(UnifiedSale)
        .join(ChartOfAccount, UnifiedSale.category_id == ChartOfAccount.id)
        .where(*filters, UnifiedSale.is_split.is_(False))
        .group_by(*account_columns)
    )
    allocated = (
        select(*account_columns, func.sum(UnifiedSaleSplit.amount), func.count(distinct(UnifiedSale.id)))
        .select_from(UnifiedSaleSplit)
        .join(UnifiedSale, UnifiedSaleSplit.sale_id == UnifiedSale.id)
        .join(ChartOfAccount, UnifiedSaleSplit.category_id == ChartOfAccount.id)
        .where(*filters, UnifiedSale.is_split.is_(True))
        .group_by(*account_columns)
    )

    by_account: Dict[UUID, CategoryRevenue] = {}
    for stmt in (direct, allocated):
        for account_id, code, name, account_type, subtype, amount, count in db.execute(stmt).all():
            entry = by_account.get(account_id)
            if entry is None:
                entry = by_account[account_id] = CategoryRevenue(
                    account_id, code, name, account_type, subtype, True, Decimal("0.00"), 0
                )
            entry.total_amount = to_money(entry.total_amount + to_money(amount))
            entry.transaction_count += int(count or 0)

    uncategorized_rows = db.execute(
        select(func.sum(UnifiedSale.total_price), func.count(UnifiedSale.id)).where(
            *filters,
            UnifiedSale.is_split.is_(False),
            UnifiedSale.category_id.is_(None),
            UnifiedSale.item_type == "sale",
        )
    ).one()
    uncategorized_allocations = db.execute(
        select(func.sum(UnifiedSaleSplit.amount), func.count(distinct(UnifiedSale.id)))
        .select_from(UnifiedSaleSplit)
        .join(UnifiedSale, UnifiedSaleSplit.sale_id == UnifiedSale.id)
        .where(
            *filters,
            UnifiedSale.is_split.is_(True),
            UnifiedSaleSplit.category_id.is_(None),
            UnifiedSale.item_type == "sale",
        )
    ).one()

    results = sorted(by_account.values(), key=lambda entry: (-entry.total_amount, entry.account_code or ""))
    uncategorized_count = int(uncategorized_rows[1] or 0) + int(uncategorized_allocations[1] or 0)
    if uncategorized_count:
        results.append(
            CategoryRevenue(
                account_id=None,
                account_code=None,
                account_name="Uncategorized",
                account_type=None,
                account_subtype=None,
                is_categorized=False,
                total_amount=to_money(to_money(uncategorized_rows[0]) + to_money(uncategorized_allocations[0])),
                transaction_count=uncategorized_count,
            )
        )
    return results


def get_pass_through_totals(
    db: Session,
    restaurant_id: UUID,
    start_date: Optional[date],
    end_date: Optional[date],
    caller: Caller,
) -> List[PassThroughTotal]:
    """Totals per adjustment type (tax, tip, service_charge, discount, fee, void)."""
    require_restaurant_access(db, caller, restaurant_id)
    stmt = (
        select(UnifiedSale.adjustment_type, func.sum(UnifiedSale.total_price), func.count(UnifiedSale.id))
        .where(
            *_ledger_filters(restaurant_id, start_date, end_date),
            UnifiedSale.parent_sale_id.is_(None),
            UnifiedSale.adjustment_type.isnot(None),
        )
        .group_by(UnifiedSale.adjustment_type)
        .order_by(UnifiedSale.adjustment_type)
    )
    return [
        PassThroughTotal(adjustment_type, to_money(amount), int(count or 0))
        for adjustment_type, amount, count in db.execute(stmt).all()
    ]


def get_pos_tips_by_date(
    db: Session,
    restaurant_id: UUID,
    start_date: Optional[date],
    end_date: Optional[date],
    caller: Caller,
) -> List[TipDay]:
    """
    Tips per day and POS source, newest first.

    A tip is counted once, either through a tip account (an allocation or a
    direct category whose name or subtype mentions "tip") or, when no tip
    account covers it, through a tip-typed row.
    """
    require_restaurant_access(db, caller, restaurant_id)
    filters = _ledger_filters(restaurant_id, start_date, end_date)
    filters.append(UnifiedSale.parent_sale_id.is_(None))
    keys = (UnifiedSale.sale_date, UnifiedSale.pos_system, UnifiedSale.external_order_id)

    allocated = (
        select(*keys, func.sum(UnifiedSaleSplit.amount))
        .select_from(UnifiedSaleSplit)
        .join(UnifiedSale, UnifiedSaleSplit.sale_id == UnifiedSale.id)
        .join(ChartOfAccount, UnifiedSaleSplit.category_id == ChartOfAccount.id)
        .where(*filters, UnifiedSale.is_split.is_(True), TIP_ACCOUNT)
        .group_by(*keys)
    )
    categorized = (
        select(*keys, func.sum(UnifiedSale.total_price))
        .select_from(UnifiedSale)
        .join(ChartOfAccount, UnifiedSale.category_id == ChartOfAccount.id)
        .where(*filters, UnifiedSale.is_split.is_(False), TIP_ACCOUNT)
        .group_by(*keys)
    )
    tip_allocation_exists = exists(
        select(UnifiedSaleSplit.id)
        .join(ChartOfAccount, UnifiedSaleSplit.category_id == ChartOfAccount.id)
        .where(UnifiedSaleSplit.sale_id == UnifiedSale.id, TIP_ACCOUNT)
    )
    tip_account_ids = select(ChartOfAccount.id).where(ChartOfAccount.restaurant_id == restaurant_id, TIP_ACCOUNT)
    typed = (
        select(*keys, func.sum(UnifiedSale.total_price))
        .where(
            *filters,
            TIPS,
            UnifiedSale.is_split.is_(False),
            UnifiedSale.total_price != 0,
            ~tip_allocation_exists,
            or_(UnifiedSale.category_id.is_(None), UnifiedSale.category_id.notin_(tip_account_ids)),
        )
        .group_by(*keys)
    )

    days: Dict[Tuple[date, str], Decimal] = defaultdict(lambda: Decimal("0.00"))
    orders: Dict[Tuple[date, str], Set[str]] = defaultdict(set)
    for stmt in (allocated, categorized, typed):
        for sale_date, pos_system, order_id, amount in db.execute(stmt).all():
            days[(sale_date, pos_system)] += to_money(amount)
            orders[(sale_date, pos_system)].add(order_id)

    ordered = sorted(days, key=lambda key: (key[0], key[1]))
    ordered.sort(key=lambda key: key[0], reverse=True)
    return [
        TipDay(
            tip_date=key[0],
            pos_source=key[1],
            total_amount_cents=int((days[key] * 100).to_integral_value()),
            transaction_count=len(orders[key]),
        )
        for key in ordered
    ]


def get_daily_sales_totals(
    db: Session,
    restaurant_id: UUID,
    start_date: Optional[date],
    end_date: Optional[date],
    caller: Caller,
) -> List[DailySalesTotal]:
    """Revenue rows per day. Legacy split parents are replaced by their child rows."""
    require_restaurant_access(db, caller, restaurant_id)
    child = aliased(UnifiedSale)
    has_children = exists(select(child.id).where(child.parent_sale_id == UnifiedSale.id))
    stmt = (
        select(UnifiedSale.sale_date, func.sum(UnifiedSale.total_price), func.count(UnifiedSale.id))
        .where(*_ledger_filters(restaurant_id, start_date, end_date), REVENUE, ~has_children)
        .group_by(UnifiedSale.sale_date)
        .order_by(UnifiedSale.sale_date)
    )
    return [
        DailySalesTotal(sale_date, to_money(amount), int(count or 0))
        for sale_date, amount, count in db.execute(stmt).all()
    ]


def get_monthly_sales_metrics(
    db: Session,
    restaurant_id: UUID,
    start_date: Optional[date],
    end_date: Optional[date],
    caller: Caller,
) -> List[MonthlySalesMetrics]:
    """Per-month revenue, discounts and pass-through liabilities, oldest first."""
    require_restaurant_access(db, caller, restaurant_id)
    # Grouped by day in SQL, rolled up to months here to stay dialect-neutral
    stmt = (
        select(
            UnifiedSale.sale_date,
            _sum_if(REVENUE),
            _sum_if(UnifiedSale.item_type == "discount"),
            _sum_if(TAX),
            _sum_if(TIPS),
            _sum_if(OTHER_LIABILITIES),
        )
        .where(*_ledger_filters(restaurant_id, start_date, end_date), UnifiedSale.parent_sale_id.is_(None))
        .group_by(UnifiedSale.sale_date)
        .order_by(UnifiedSale.sale_date)
    )

    months: Dict[str, MonthlySalesMetrics] = {}
    for sale_date, revenue, discounts, tax, tips, other in db.execute(stmt).all():
        period = sale_date.strftime("%Y-%m")
        metrics = months.setdefault(period, MonthlySalesMetrics(period))
        metrics.gross_revenue += to_money(revenue)
        metrics.discounts += to_money(discounts)
        metrics.sales_tax += to_money(tax)
        metrics.tips += to_money(tips)
        metrics.other_liabilities += to_money(other)
    return [months[period] for period in sorted(months)]
