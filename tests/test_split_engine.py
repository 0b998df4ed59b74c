"""
Tests for the split engine.
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

import pytz
from sqlalchemy import select

from src.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from src.models.pos_staging import SquareOrder, SquareOrderLineItem
from src.models.unified_sale import UnifiedSale, UnifiedSaleSplit
from src.services.pos_sync import sync_square_to_unified_sales
from src.services.split_engine import (
    AmountSplit,
    PercentageSplit,
    SplitAllocation,
    apply_split_rule,
    get_sale_splits,
    resolve_split_rule,
    split_sale,
    split_tolerance,
)


def allocations(db, sale):
    db.expire_all()
    stmt = select(UnifiedSaleSplit).where(UnifiedSaleSplit.sale_id == sale.id).order_by(UnifiedSaleSplit.amount)
    return db.execute(stmt).scalars().all()


class TestSplitSale:

    def test_square_sale_split_across_two_categories(self, db, restaurant, owner_caller, food_account,
                                                     beverage_account, make_sale):
        sale = make_sale("10.00", item_name="Combo", category_id=food_account.id)

        result = split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("6.00"), food_account.id),
            SplitAllocation(Decimal("4.00"), beverage_account.id, "Drink"),
        ], owner_caller)

        assert result.is_split is True
        assert result.is_categorized is True
        assert result.category_id is None
        rows = allocations(db, sale)
        assert [(row.amount, row.category_id) for row in rows] == [
            (Decimal("4.00"), beverage_account.id),
            (Decimal("6.00"), food_account.id),
        ]
        assert rows[0].description == "Drink"
        # Description defaults to the sale's item name
        assert rows[1].description == "Combo"

    def test_sum_within_tolerance_is_accepted(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("10.00")

        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("5.00"), food_account.id),
            SplitAllocation(Decimal("5.01"), food_account.id),
        ], owner_caller)

        assert len(allocations(db, sale)) == 2

    def test_sum_outside_tolerance_is_rejected_and_prior_split_kept(self, db, restaurant, owner_caller,
                                                                    food_account, beverage_account, make_sale):
        sale = make_sale("10.00")
        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("7.00"), food_account.id),
            SplitAllocation(Decimal("3.00"), beverage_account.id),
        ], owner_caller)

        with pytest.raises(ConflictError) as exc:
            split_sale(db, restaurant.id, sale.id, [
                SplitAllocation(Decimal("5.00"), food_account.id),
                SplitAllocation(Decimal("5.10"), beverage_account.id),
            ], owner_caller)

        assert exc.value.details == {"expected": "10.00", "actual": "10.10"}
        assert [row.amount for row in allocations(db, sale)] == [Decimal("3.00"), Decimal("7.00")]

    def test_resplit_replaces_allocations(self, db, restaurant, owner_caller, food_account,
                                          beverage_account, make_sale):
        sale = make_sale("10.00")
        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("6.00"), food_account.id),
            SplitAllocation(Decimal("4.00"), beverage_account.id),
        ], owner_caller)

        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("2.50"), food_account.id),
            SplitAllocation(Decimal("2.50"), food_account.id),
            SplitAllocation(Decimal("5.00"), beverage_account.id),
        ], owner_caller)

        rows = allocations(db, sale)
        assert [row.amount for row in rows] == [Decimal("2.50"), Decimal("2.50"), Decimal("5.00")]

    def test_refund_row_splits_with_negative_amounts(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("-10.00")

        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("-4.00"), food_account.id),
            SplitAllocation(Decimal("-6.00"), food_account.id),
        ], owner_caller)

        assert sum(row.amount for row in allocations(db, sale)) == Decimal("-10.00")

    def test_nested_split_is_rejected(self, db, restaurant, owner_caller, food_account, make_sale):
        parent = make_sale("10.00")
        child = make_sale("10.00", parent_sale_id=parent.id)

        with pytest.raises(ConflictError):
            split_sale(db, restaurant.id, child.id, [SplitAllocation(Decimal("10.00"), food_account.id)], owner_caller)

    def test_split_removes_legacy_child_rows(self, db, restaurant, owner_caller, food_account, make_sale):
        parent = make_sale("10.00")
        make_sale("4.00", parent_sale_id=parent.id)
        make_sale("6.00", parent_sale_id=parent.id)

        split_sale(db, restaurant.id, parent.id, [SplitAllocation(Decimal("10.00"), food_account.id)], owner_caller)

        children = db.execute(select(UnifiedSale).where(UnifiedSale.parent_sale_id == parent.id)).scalars().all()
        assert children == []

    def test_empty_allocations_are_rejected(self, db, restaurant, owner_caller, make_sale):
        sale = make_sale("10.00")

        with pytest.raises(ValidationError) as exc:
            split_sale(db, restaurant.id, sale.id, [], owner_caller)
        assert exc.value.field == "allocations"

    def test_zero_amount_is_rejected(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("10.00")

        with pytest.raises(ValidationError) as exc:
            split_sale(db, restaurant.id, sale.id, [
                SplitAllocation(Decimal("10.00"), food_account.id),
                SplitAllocation(Decimal("0"), food_account.id),
            ], owner_caller)
        assert exc.value.field == "allocations[1].amount"

    def test_missing_amount_is_rejected(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("10.00")

        with pytest.raises(ValidationError):
            split_sale(db, restaurant.id, sale.id, [SplitAllocation(None, food_account.id)], owner_caller)

    def test_sub_cent_amount_is_rejected_not_treated_as_zero(self, db, restaurant, owner_caller, food_account,
                                                             make_sale):
        sale = make_sale("10.00")

        with pytest.raises(ValidationError) as exc:
            split_sale(db, restaurant.id, sale.id, [
                SplitAllocation(Decimal("0.004"), food_account.id),
                SplitAllocation(Decimal("9.996"), food_account.id),
            ], owner_caller)
        assert exc.value.field == "allocations[0].amount"
        assert "at most 2 decimal places" in exc.value.message

    def test_sub_cent_amounts_are_never_rounded(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("10.00")

        with pytest.raises(ValidationError) as exc:
            split_sale(db, restaurant.id, sale.id, [
                SplitAllocation(Decimal("3.335"), food_account.id),
                SplitAllocation(Decimal("6.665"), food_account.id),
            ], owner_caller)
        assert exc.value.field == "allocations[0].amount"
        assert allocations(db, sale) == []

    def test_trailing_zeros_are_accepted(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("10.00")

        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("3.500"), food_account.id),
            SplitAllocation(Decimal("6.5"), food_account.id),
        ], owner_caller)

        assert [row.amount for row in allocations(db, sale)] == [Decimal("3.50"), Decimal("6.50")]

    def test_category_of_another_tenant_is_not_found(self, db, restaurant, owner_caller, foreign_account, make_sale):
        sale = make_sale("10.00")

        with pytest.raises(NotFoundError):
            split_sale(db, restaurant.id, sale.id, [SplitAllocation(Decimal("10.00"), foreign_account.id)], owner_caller)
        assert allocations(db, sale) == []

    def test_staff_may_not_split(self, db, restaurant, staff_caller, food_account, make_sale):
        sale = make_sale("10.00")

        with pytest.raises(AuthorizationError):
            split_sale(db, restaurant.id, sale.id, [SplitAllocation(Decimal("10.00"), food_account.id)], staff_caller)

    def test_allocation_without_category(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("10.00")

        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("8.00"), food_account.id),
            SplitAllocation(Decimal("2.00")),
        ], owner_caller)

        assert {row.category_id for row in allocations(db, sale)} == {food_account.id, None}

    def test_member_lists_splits(self, db, restaurant, owner_caller, staff_caller, food_account, make_sale):
        sale = make_sale("10.00")
        split_sale(db, restaurant.id, sale.id, [SplitAllocation(Decimal("10.00"), food_account.id)], owner_caller)

        assert len(get_sale_splits(db, restaurant.id, sale.id, staff_caller)) == 1


class TestSplitTolerance:

    def test_absolute_floor(self):
        assert split_tolerance(Decimal("1.00")) == Decimal("0.01")

    def test_relative_for_large_totals(self):
        assert split_tolerance(Decimal("1000.00")) == Decimal("5.000")


class TestSplitRules:

    def test_percentages_with_remainder_on_last_entry(self):
        result = resolve_split_rule([
            PercentageSplit(None, Decimal("33.33")),
            PercentageSplit(None, Decimal("33.33")),
            PercentageSplit(None, Decimal("33.34")),
        ], Decimal("10.00"))

        assert [entry.amount for entry in result] == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]

    def test_percentages_must_sum_to_100(self):
        with pytest.raises(ValidationError):
            resolve_split_rule([PercentageSplit(None, Decimal("50")), PercentageSplit(None, Decimal("40"))],
                               Decimal("10.00"))

    def test_percentage_out_of_range(self):
        with pytest.raises(ValidationError):
            resolve_split_rule([PercentageSplit(None, Decimal("120")), PercentageSplit(None, Decimal("-20"))],
                               Decimal("10.00"))

    def test_at_least_two_entries(self):
        with pytest.raises(ValidationError):
            resolve_split_rule([PercentageSplit(None, Decimal("100"))], Decimal("10.00"))

    def test_mixed_rule_is_rejected(self):
        with pytest.raises(ValidationError):
            resolve_split_rule([PercentageSplit(None, Decimal("50")), AmountSplit(None, Decimal("5.00"))],
                               Decimal("10.00"))

    def test_apply_percentage_rule(self, db, restaurant, owner_caller, food_account, beverage_account, make_sale):
        sale = make_sale("25.00")

        apply_split_rule(db, restaurant.id, sale.id, [
            PercentageSplit(food_account.id, Decimal("60")),
            PercentageSplit(beverage_account.id, Decimal("40")),
        ], owner_caller)

        assert [row.amount for row in allocations(db, sale)] == [Decimal("10.00"), Decimal("15.00")]

    def test_apply_amount_rule_checks_sum(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("25.00")

        with pytest.raises(ConflictError):
            apply_split_rule(db, restaurant.id, sale.id, [
                AmountSplit(food_account.id, Decimal("10.00")),
                AmountSplit(food_account.id, Decimal("10.00")),
            ], owner_caller)


class TestSyncedSaleSplit:
    """A vendor-synced sale carried through sync, split, resync and a rejected re-split."""

    @pytest.fixture
    def square_sale(self, db, restaurant):
        db.add_all([
            SquareOrder(
                restaurant_id=restaurant.id, order_id="O1", state="COMPLETED", service_date=date(2024, 3, 1),
                closed_at=datetime(2024, 3, 1, 18, 0, tzinfo=pytz.UTC),
            ),
            SquareOrderLineItem(
                restaurant_id=restaurant.id, order_id="O1", uid="I1", name="Catering",
                quantity="1", base_price_money=1000, total_money=1000,
            ),
        ])
        db.commit()

    def test_split_survives_resync_and_bad_resplit(self, db, restaurant, owner_caller, food_account,
                                                   beverage_account, square_sale):
        sync_square_to_unified_sales(db, restaurant.id, owner_caller)
        sync_square_to_unified_sales(db, restaurant.id, owner_caller)

        sales = db.execute(select(UnifiedSale).where(UnifiedSale.restaurant_id == restaurant.id)).scalars().all()
        assert len(sales) == 1
        sale = sales[0]
        assert (sale.external_order_id, sale.external_item_id) == ("O1", "I1")
        assert sale.total_price == Decimal("10.00")

        split_sale(db, restaurant.id, sale.id, [
            SplitAllocation(Decimal("6.00"), food_account.id),
            SplitAllocation(Decimal("4.00"), beverage_account.id),
        ], owner_caller)

        resync = sync_square_to_unified_sales(db, restaurant.id, owner_caller)
        assert resync.rows_affected == 0
        db.refresh(sale)
        assert sale.is_split is True
        assert sale.category_id is None
        assert [row.amount for row in allocations(db, sale)] == [Decimal("4.00"), Decimal("6.00")]

        with pytest.raises(ConflictError):
            split_sale(db, restaurant.id, sale.id, [
                SplitAllocation(Decimal("5.00"), food_account.id),
                SplitAllocation(Decimal("5.10"), beverage_account.id),
            ], owner_caller)

        kept = allocations(db, sale)
        assert [(row.amount, row.category_id) for row in kept] == [
            (Decimal("4.00"), beverage_account.id),
            (Decimal("6.00"), food_account.id),
        ]
