"""
Sales Analytics API

  GET /analytics/top-products           → Best sellers by units
  GET /analytics/sales-history/{id}     → Zero-filled daily units for one product
  GET /analytics/total-sales-today      → Revenue so far today (UTC)
  GET /analytics/avg-daily-sales        → Revenue per selling day, with trend
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from demand_forecast_agent.demand_forecast_agent import ProductNotFoundError
from schemas.forecast import AvgDailySalesOut, SalesHistoryOut, SalesTodayOut, TopProductOut
from services.analytics import (
    get_avg_daily_sales,
    get_sales_history,
    get_top_products,
    get_total_sales_today,
)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/top-products", response_model=list[TopProductOut])
def top_products(
    range_days: int = Query(default=30, ge=1, le=365),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Best sellers by units sold over the last ``range_days`` days."""
    return get_top_products(db, range_days, limit)


@router.get("/sales-history/{product_id}", response_model=SalesHistoryOut)
def sales_history(
    product_id: int,
    days: int = Query(default=90, ge=1, le=365),
    db: Session = Depends(get_db),
):
    try:
        return get_sales_history(db, product_id, days)
    except ProductNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/total-sales-today", response_model=SalesTodayOut)
def total_sales_today(db: Session = Depends(get_db)):
    return get_total_sales_today(db)


@router.get("/avg-daily-sales", response_model=AvgDailySalesOut)
def avg_daily_sales(
    range_days: int = Query(default=7, ge=1, le=365),
    db: Session = Depends(get_db),
):
    """Average over days that had sales; trend compares the first and last three."""
    return get_avg_daily_sales(db, range_days)
