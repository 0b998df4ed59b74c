"""
Tenant-scoped ledger lookups shared by categorization, splitting and manual entry.
"""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.exceptions import NotFoundError
from src.models.account import ChartOfAccount
from src.models.unified_sale import UnifiedSale


def get_tenant_sale(db: Session, restaurant_id: UUID, sale_id: UUID, for_update: bool = False) -> UnifiedSale:
    """A sale of this restaurant. Sales of other tenants are reported as missing."""
    stmt = select(UnifiedSale).where(
        UnifiedSale.id == sale_id,
        UnifiedSale.restaurant_id == restaurant_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    sale = db.execute(stmt).scalar_one_or_none()
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found in restaurant {restaurant_id}")
    return sale


def get_tenant_category(db: Session, restaurant_id: UUID, category_id: UUID) -> ChartOfAccount:
    stmt = select(ChartOfAccount).where(
        ChartOfAccount.id == category_id,
        ChartOfAccount.restaurant_id == restaurant_id,
    )
    account = db.execute(stmt).scalar_one_or_none()
    if account is None:
        raise NotFoundError(f"Category {category_id} not found in restaurant {restaurant_id}")
    return account
