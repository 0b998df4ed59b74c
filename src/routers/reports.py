"""
Reporting router. Every endpoint returns pre-aggregated values.
"""
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.core.deps import get_current_caller
from src.db.session import get_db
from src.schemas.reports import (
    CategoryRevenueResponse,
    DailySalesTotalResponse,
    MonthlySalesMetricsResponse,
    PassThroughTotalResponse,
    SalesTotalsResponse,
    TipDayResponse,
)
from src.services import aggregation
from src.services.access import Caller

router = APIRouter(prefix="/restaurants/{restaurant_id}/reports", tags=["reports"])


@router.get("/totals", response_model=SalesTotalsResponse)
def sales_totals(
    restaurant_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive item name filter"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Revenue, discounts, voids and pass-through totals for a date range."""
    totals = aggregation.get_unified_sales_totals(db, restaurant_id, start_date, end_date, caller, search_term=search)
    return SalesTotalsResponse.model_validate(totals)


@router.get("/revenue-by-category", response_model=List[CategoryRevenueResponse])
def revenue_by_category(
    restaurant_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    rows = aggregation.get_revenue_by_category(db, restaurant_id, start_date, end_date, caller)
    return [CategoryRevenueResponse.model_validate(row) for row in rows]


@router.get("/pass-through", response_model=List[PassThroughTotalResponse])
def pass_through_totals(
    restaurant_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    rows = aggregation.get_pass_through_totals(db, restaurant_id, start_date, end_date, caller)
    return [PassThroughTotalResponse.model_validate(row) for row in rows]


@router.get("/tips", response_model=List[TipDayResponse])
def tips_by_date(
    restaurant_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    rows = aggregation.get_pos_tips_by_date(db, restaurant_id, start_date, end_date, caller)
    return [TipDayResponse.model_validate(row) for row in rows]


@router.get("/daily", response_model=List[DailySalesTotalResponse])
def daily_sales(
    restaurant_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    rows = aggregation.get_daily_sales_totals(db, restaurant_id, start_date, end_date, caller)
    return [DailySalesTotalResponse.model_validate(row) for row in rows]


@router.get("/monthly", response_model=List[MonthlySalesMetricsResponse])
def monthly_metrics(
    restaurant_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    rows = aggregation.get_monthly_sales_metrics(db, restaurant_id, start_date, end_date, caller)
    return [MonthlySalesMetricsResponse.model_validate(row) for row in rows]
