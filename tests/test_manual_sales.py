"""
Tests for manual entry, bulk upload and deletion.
"""
import pytest
from datetime import date, time
from decimal import Decimal

from sqlalchemy import select

from src.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from src.models.unified_sale import UnifiedSale, UnifiedSaleSplit
from src.services.manual_sales import (
    ManualSaleInput,
    compute_row_hash,
    create_manual_sale,
    delete_sale,
    import_manual_sales,
)
from src.services.split_engine import SplitAllocation, split_sale


def catering_row(**overrides) -> ManualSaleInput:
    values = dict(item_name="Catering Tray", total_price=Decimal("150.00"), sale_date=date(2024, 3, 1),
                  sale_time=time(12, 0), quantity=Decimal("2"))
    values.update(overrides)
    return ManualSaleInput(**values)


class TestCreateManualSale:

    def test_creates_manual_row(self, db, restaurant, owner_caller, food_account):
        sale = create_manual_sale(db, restaurant.id, catering_row(category_id=food_account.id), owner_caller)

        assert sale.pos_system == "manual"
        assert sale.total_price == Decimal("150.00")
        assert sale.unit_price == Decimal("75.00")
        assert sale.is_categorized is True
        assert sale.external_order_id.startswith("manual_")

    def test_unknown_item_type_is_rejected(self, db, restaurant, owner_caller):
        with pytest.raises(ValidationError) as exc:
            create_manual_sale(db, restaurant.id, catering_row(item_type="gift"), owner_caller)
        assert exc.value.field == "item_type"

    def test_blank_name_is_rejected(self, db, restaurant, owner_caller):
        with pytest.raises(ValidationError):
            create_manual_sale(db, restaurant.id, catering_row(item_name="  "), owner_caller)

    def test_staff_may_not_enter_sales(self, db, restaurant, staff_caller):
        with pytest.raises(AuthorizationError):
            create_manual_sale(db, restaurant.id, catering_row(), staff_caller)


class TestImportManualSales:

    def test_reimport_inserts_nothing_new(self, db, restaurant, owner_caller):
        rows = [catering_row(), catering_row(item_name="Coffee Urn", total_price=Decimal("40.00"))]

        first = import_manual_sales(db, restaurant.id, rows, owner_caller)
        second = import_manual_sales(db, restaurant.id, rows, owner_caller)

        assert (first.rows_inserted, first.rows_skipped_duplicate) == (2, 0)
        assert (second.rows_inserted, second.rows_skipped_duplicate) == (0, 2)
        sales = db.execute(select(UnifiedSale).where(UnifiedSale.pos_system == "manual_upload")).scalars().all()
        assert len(sales) == 2
        assert {sale.external_order_id for sale in sales} == {"upload_2024-03-01"}
        assert compute_row_hash(rows[0]) in {sale.external_item_id for sale in sales}

    def test_invalid_rows_are_reported(self, db, restaurant, owner_caller, foreign_account):
        rows = [
            catering_row(),
            catering_row(item_name=""),
            catering_row(item_name="Wrong Tenant", category_id=foreign_account.id),
        ]

        result = import_manual_sales(db, restaurant.id, rows, owner_caller)

        assert result.rows_processed == 3
        assert result.rows_inserted == 1
        assert result.rows_failed == 2
        assert result.errors[0] == {"row": 1, "field": "rows[1].item_name", "message": "item_name is required"}
        assert result.errors[1]["field"] == "category_id"


class TestDeleteSale:

    def test_delete_removes_allocations(self, db, restaurant, owner_caller, food_account, make_sale):
        sale = make_sale("10.00")
        split_sale(db, restaurant.id, sale.id, [SplitAllocation(Decimal("10.00"), food_account.id)], owner_caller)
        sale_id = sale.id

        delete_sale(db, restaurant.id, sale_id, owner_caller)

        assert db.get(UnifiedSale, sale_id) is None
        assert db.execute(select(UnifiedSaleSplit)).scalars().all() == []

    def test_delete_other_tenant_sale_is_not_found(self, db, restaurant, other_restaurant, owner_caller, make_sale):
        sale = make_sale("10.00", restaurant_id=other_restaurant.id)

        with pytest.raises(NotFoundError):
            delete_sale(db, restaurant.id, sale.id, owner_caller)
