"""
Report response schemas.
"""
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class SalesTotalsResponse(BaseModel):
    total_count: int
    revenue: Decimal
    discounts: Decimal
    voids: Decimal
    pass_through_amount: Decimal
    unique_items: int
    collected_at_pos: Decimal

    class Config:
        from_attributes = True


class CategoryRevenueResponse(BaseModel):
    account_id: Optional[UUID] = None
    account_code: Optional[str] = None
    account_name: str
    account_type: Optional[str] = None
    account_subtype: Optional[str] = None
    is_categorized: bool
    total_amount: Decimal
    transaction_count: int

    class Config:
        from_attributes = True


class PassThroughTotalResponse(BaseModel):
    adjustment_type: str
    total_amount: Decimal
    transaction_count: int

    class Config:
        from_attributes = True


class TipDayResponse(BaseModel):
    tip_date: date
    pos_source: str
    total_amount_cents: int
    transaction_count: int

    class Config:
        from_attributes = True


class DailySalesTotalResponse(BaseModel):
    sale_date: date
    total_revenue: Decimal
    transaction_count: int

    class Config:
        from_attributes = True


class MonthlySalesMetricsResponse(BaseModel):
    period: str
    gross_revenue: Decimal
    discounts: Decimal
    sales_tax: Decimal
    tips: Decimal
    other_liabilities: Decimal

    class Config:
        from_attributes = True
