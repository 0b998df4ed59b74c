"""
Ledger-related Pydantic schemas: manual entry, categorization and splits.
"""
from datetime import date, datetime, time
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class SaleResponse(BaseModel):
    """A unified ledger row."""
    id: UUID
    restaurant_id: UUID
    pos_system: str
    external_order_id: str
    external_item_id: str
    item_name: str
    quantity: Decimal
    unit_price: Optional[Decimal] = None
    total_price: Decimal
    sale_date: date
    sale_time: Optional[time] = None
    pos_category: Optional[str] = None
    item_type: str
    adjustment_type: Optional[str] = None
    category_id: Optional[UUID] = None
    is_categorized: bool
    suggested_category_id: Optional[UUID] = None
    ai_confidence: Optional[str] = None
    ai_reasoning: Optional[str] = None
    is_split: bool
    parent_sale_id: Optional[UUID] = None
    synced_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ManualSaleRequest(BaseModel):
    """A sale keyed in by hand or one row of an upload."""
    item_name: str
    total_price: Decimal
    sale_date: date
    sale_time: Optional[time] = None
    quantity: Decimal = Decimal("1")
    unit_price: Optional[Decimal] = None
    item_type: str = "sale"
    adjustment_type: Optional[str] = None
    pos_category: Optional[str] = None
    category_id: Optional[UUID] = None
    external_order_id: Optional[str] = None
    external_item_id: Optional[str] = None

    @field_validator('quantity')
    @classmethod
    def quantity_not_zero(cls, v):
        if v == 0:
            raise ValueError('quantity must not be zero')
        return v


class ManualImportRequest(BaseModel):
    rows: List[ManualSaleRequest] = Field(..., min_length=1)


class ManualImportResponse(BaseModel):
    rows_processed: int
    rows_inserted: int
    rows_skipped_duplicate: int
    rows_failed: int
    errors: list = []


class CategorizeRequest(BaseModel):
    category_id: UUID


class SuggestionRequest(BaseModel):
    category_id: UUID
    confidence: Literal["high", "medium", "low"]
    reasoning: Optional[str] = None


class SuggestionResponse(BaseModel):
    applied: bool


class SplitAllocationRequest(BaseModel):
    """One allocation of a split. Category may be left open for later."""
    amount: Decimal
    category_id: Optional[UUID] = None
    description: Optional[str] = None


class SplitRequest(BaseModel):
    allocations: List[SplitAllocationRequest]


class PercentageSplitEntry(BaseModel):
    type: Literal["percentage"] = "percentage"
    category_id: Optional[UUID] = None
    percentage: Decimal
    description: Optional[str] = None


class AmountSplitEntry(BaseModel):
    type: Literal["amount"] = "amount"
    category_id: Optional[UUID] = None
    amount: Decimal
    description: Optional[str] = None


SplitRuleEntryRequest = Annotated[Union[PercentageSplitEntry, AmountSplitEntry], Field(discriminator="type")]


class SplitRuleRequest(BaseModel):
    entries: List[SplitRuleEntryRequest]


class SplitAllocationResponse(BaseModel):
    id: UUID
    sale_id: UUID
    category_id: Optional[UUID] = None
    amount: Decimal
    description: Optional[str] = None

    class Config:
        from_attributes = True


class SplitResponse(BaseModel):
    sale: SaleResponse
    allocations: List[SplitAllocationResponse]
