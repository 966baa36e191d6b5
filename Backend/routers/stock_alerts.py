"""
Stock Alert API

  POST /stock-alerts/scan  → Classify every product, store new reorder alerts
  GET  /stock-alerts/      → Open alerts (or all with include_resolved=true)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config import ForecastSettings, get_settings
from database import get_db
from schemas.stock_alert import AlertScanOut, StockAlertOut
from stock_alert_agent.stock_alert_agent import list_open_alerts, run_stock_alerts

router = APIRouter(prefix="/stock-alerts", tags=["Stock Alerts"])


@router.post("/scan", response_model=AlertScanOut)
def scan_stock(
    db: Session = Depends(get_db),
    settings: ForecastSettings = Depends(get_settings),
):
    """Run the alert scan now. Re-running with unchanged stock adds no duplicates."""
    return run_stock_alerts(db, settings=settings)


@router.get("/", response_model=list[StockAlertOut])
def list_alerts(
    include_resolved: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    return list_open_alerts(db, include_resolved=include_resolved)
