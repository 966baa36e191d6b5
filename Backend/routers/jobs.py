import hmac

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from config import JOB_RUN_KEY
from database import get_db
from demand_forecast_agent.backtest import evaluate_sales_predictions
from stock_alert_agent.stock_alert_agent import run_stock_alerts

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _check_job_key(key: str) -> None:
    if not JOB_RUN_KEY:
        raise HTTPException(status_code=503, detail="JOB_RUN_KEY is not configured")
    if not hmac.compare_digest(key, JOB_RUN_KEY):
        raise HTTPException(status_code=401, detail="Invalid job key")


@router.get("/run-stock-alerts")
def run_stock_alert_job(
    key: str = Query(default=""),
    db: Session = Depends(get_db),
):
    """External scheduler hook: scans all products for reorder alerts."""
    _check_job_key(key)
    result = run_stock_alerts(db)
    return {"ok": True, "alerts_created": result["alerts_created"]}


@router.get("/run-backtest")
def run_backtest_job(
    key: str = Query(default=""),
    db: Session = Depends(get_db),
):
    """External scheduler hook: evaluates past predictions."""
    _check_job_key(key)
    result = evaluate_sales_predictions(db)
    return {"ok": True, "evaluations_count": result["evaluations_count"]}
