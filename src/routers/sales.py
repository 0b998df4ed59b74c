"""
Ledger router: manual entry, categorization and splits.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.core.deps import get_current_caller
from src.db.session import get_db
from src.schemas.sales import (
    CategorizeRequest,
    ManualImportRequest,
    ManualImportResponse,
    ManualSaleRequest,
    SaleResponse,
    SplitAllocationResponse,
    SplitRequest,
    SplitResponse,
    SplitRuleRequest,
    SuggestionRequest,
    SuggestionResponse,
)
from src.services.access import Caller
from src.services.categorization import categorize_sale, record_category_suggestion, uncategorize_sale
from src.services.manual_sales import ManualSaleInput, create_manual_sale, delete_sale, import_manual_sales
from src.services.split_engine import (
    AmountSplit,
    PercentageSplit,
    SplitAllocation,
    apply_split_rule,
    get_sale_splits,
    split_sale,
)

router = APIRouter(prefix="/restaurants/{restaurant_id}/sales", tags=["sales"])


def _split_response(db: Session, restaurant_id: UUID, sale, caller: Caller) -> SplitResponse:
    allocations = get_sale_splits(db, restaurant_id, sale.id, caller)
    return SplitResponse(
        sale=SaleResponse.model_validate(sale),
        allocations=[SplitAllocationResponse.model_validate(a) for a in allocations],
    )


@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
def create_sale(
    restaurant_id: UUID,
    request: ManualSaleRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Record a manual sale."""
    sale = create_manual_sale(db, restaurant_id, ManualSaleInput(**request.model_dump()), caller)
    return SaleResponse.model_validate(sale)


@router.post("/import", response_model=ManualImportResponse)
def import_sales(
    restaurant_id: UUID,
    request: ManualImportRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """
    Bulk-import sales rows (e.g. from a spreadsheet export).

    Re-importing the same rows is a no-op; invalid rows are reported, not fatal.
    """
    rows = [ManualSaleInput(**row.model_dump()) for row in request.rows]
    result = import_manual_sales(db, restaurant_id, rows, caller)
    return ManualImportResponse(**result.to_dict())


@router.delete("/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_sale(
    restaurant_id: UUID,
    sale_id: UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    delete_sale(db, restaurant_id, sale_id, caller)


@router.post("/{sale_id}/categorize", response_model=SaleResponse)
def categorize(
    restaurant_id: UUID,
    sale_id: UUID,
    request: CategorizeRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    sale = categorize_sale(db, restaurant_id, sale_id, request.category_id, caller)
    return SaleResponse.model_validate(sale)


@router.post("/{sale_id}/uncategorize", response_model=SaleResponse)
def uncategorize(
    restaurant_id: UUID,
    sale_id: UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    sale = uncategorize_sale(db, restaurant_id, sale_id, caller)
    return SaleResponse.model_validate(sale)


@router.post("/{sale_id}/suggestion", response_model=SuggestionResponse)
def suggest_category(
    restaurant_id: UUID,
    sale_id: UUID,
    request: SuggestionRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Store an advisory category suggestion. Ignored once the sale is categorized."""
    applied = record_category_suggestion(
        db, restaurant_id, sale_id, request.category_id, request.confidence, request.reasoning, caller
    )
    return SuggestionResponse(applied=applied)


@router.post("/{sale_id}/split", response_model=SplitResponse)
def split(
    restaurant_id: UUID,
    sale_id: UUID,
    request: SplitRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """
    Split a sale across categories, replacing any previous split.

    Allocation amounts must sum to the sale total (within a cent-level tolerance).
    """
    allocations = [SplitAllocation(a.amount, a.category_id, a.description) for a in request.allocations]
    sale = split_sale(db, restaurant_id, sale_id, allocations, caller)
    return _split_response(db, restaurant_id, sale, caller)


@router.post("/{sale_id}/split-rule", response_model=SplitResponse)
def split_by_rule(
    restaurant_id: UUID,
    sale_id: UUID,
    request: SplitRuleRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Split a sale by percentages or fixed amounts."""
    entries = [
        PercentageSplit(e.category_id, e.percentage, e.description)
        if e.type == "percentage"
        else AmountSplit(e.category_id, e.amount, e.description)
        for e in request.entries
    ]
    sale = apply_split_rule(db, restaurant_id, sale_id, entries, caller)
    return _split_response(db, restaurant_id, sale, caller)


@router.get("/{sale_id}/splits", response_model=list[SplitAllocationResponse])
def list_splits(
    restaurant_id: UUID,
    sale_id: UUID,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    return [SplitAllocationResponse.model_validate(a) for a in get_sale_splits(db, restaurant_id, sale_id, caller)]
