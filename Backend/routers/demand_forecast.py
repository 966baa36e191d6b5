"""
Demand Forecasting API

  GET  /demand-forecast/products/{id}  → Forecast one product (Prophet or classical)
  POST /demand-forecast/backtest       → Score past predictions, append model metrics
  GET  /demand-forecast/model-metrics  → Latest MAE/RMSE per product + model + horizon
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from config import ForecastSettings, get_settings
from database import get_db
from demand_forecast_agent.backtest import evaluate_sales_predictions
from demand_forecast_agent.demand_forecast_agent import ProductNotFoundError, forecast_product_sales
from schemas.forecast import BacktestOut, ForecastMethod, ModelMetricOut, SalesForecastOut
from services.analytics import get_model_metrics

router = APIRouter(prefix="/demand-forecast", tags=["Demand Forecasting Agent"])


@router.get("/products/{product_id}", response_model=SalesForecastOut)
def product_forecast(
    product_id: int,
    horizon_days: int = Query(default=7, ge=1, le=90),
    method: ForecastMethod = Query(default="auto"),
    db: Session = Depends(get_db),
    settings: ForecastSettings = Depends(get_settings),
):
    """
    Sales forecast for one product.

    With enough history and the ML service enabled, Prophet answers with
    confidence intervals. Otherwise (or when Prophet fails) the classical
    models compete and the historically most accurate one wins.
    """
    try:
        fc = forecast_product_sales(db, product_id, horizon_days, method, settings=settings)
    except ProductNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return fc.to_dict()


@router.post("/backtest", response_model=BacktestOut)
def run_backtest(
    db: Session = Depends(get_db),
    settings: ForecastSettings = Depends(get_settings),
):
    """Compare recent predictions with real sales and store MAE / RMSE."""
    return evaluate_sales_predictions(db, settings=settings)


@router.get("/model-metrics", response_model=list[ModelMetricOut])
def model_metrics(db: Session = Depends(get_db)):
    return get_model_metrics(db)
