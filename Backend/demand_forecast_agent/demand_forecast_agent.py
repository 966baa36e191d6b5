"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Demand Forecasting Agent: per-product sales forecast
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

For one product and one request:

  1. BUILDS the zero-filled daily series over the lookback window
  2. ASKS the Prophet service when there is enough history and it is enabled
  3. FALLS BACK to the classical competition when Prophet is skipped or fails
     (moving average, linear regression, baseline average)
  4. PICKS the classical winner from persisted backtest metrics
  5. UPSERTS the prediction on (product_id, prediction_date, model_version)
  6. RETURNS one response shape whichever path produced it

Only an unknown product is an error for the caller. Prophet failures and
storage failures are logged and degrade to a still-valid answer.
"""

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone

from langfuse.decorators import observe
from sqlalchemy import func as sqlfunc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import ForecastSettings, get_settings
from models.prediction import Prediction
from models.product import Product
from demand_forecast_agent.classical_models import round_units, run_classical_models
from demand_forecast_agent.model_selector import load_model_metrics, select_best_model
from demand_forecast_agent.prophet_client import (
    AdvancedForecast,
    AdvancedForecastFailure,
    FailureReason,
    ProphetClient,
)
from demand_forecast_agent.sales_history import build_daily_series, utc_today
from services.tracing import trace_output

logger = logging.getLogger("posforecast.demand_forecast")

FORECAST_METHODS = ("auto", "prophet", "classical")


class ProductNotFoundError(LookupError):
    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


# ━━━ DATA STRUCTURES ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class SalesForecast:
    """Forecast for one product, whichever model produced it."""
    product_id: int = 0
    product_name: str = ""
    horizon_days: int = 7
    predicted_total: int = 0
    predicted_daily: list = field(default_factory=list)
    model_version: str = ""
    model_params: dict = field(default_factory=dict)
    computed_at: datetime | None = None
    confidence_intervals: list | None = None
    model_metadata: dict | None = None
    fallback_reason: str | None = None
    persisted: bool = False

    def to_dict(self):
        return asdict(self)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PUBLIC: Forecast one product
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@observe(name="sales_forecast_product")
def forecast_product_sales(
    db: Session,
    product_id: int,
    horizon_days: int = 7,
    method: str = "auto",
    settings: ForecastSettings | None = None,
    prophet_client: ProphetClient | None = None,
    today: date | None = None,
) -> SalesForecast:
    settings = settings or get_settings()
    today = today or utc_today()
    if method not in FORECAST_METHODS:
        raise ValueError(f"Unknown forecast method {method!r}")

    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ProductNotFoundError(product_id)

    series = build_daily_series(db, product.id, settings.prediction_lookback_days, today)
    history_days = series.days_with_sales
    logger.info("Forecast for %s: %d days with sales in the last %d", product.name, history_days, len(series))

    fc = None
    fallback_reason = None
    if _prophet_eligible(settings, method, history_days):
        # Only a client built here is ours to close
        owned = nullcontext(prophet_client) if prophet_client else ProphetClient.from_settings(settings)
        with owned as client:
            result = client.predict(product.id, product.name, series, horizon_days)
        if isinstance(result, AdvancedForecast):
            fc = _from_prophet(product, horizon_days, result)
        else:
            fallback_reason = _log_prophet_failure(product, result)

    if fc is None:
        fc = _classical_forecast(db, product, series, horizon_days, settings, today)
        fc.fallback_reason = fallback_reason

    fc.computed_at = datetime.now(timezone.utc)
    fc.persisted = save_prediction(
        db,
        product_id=product.id,
        prediction_date=today,
        horizon_days=horizon_days,
        predicted_qty=fc.predicted_total,
        model_version=fc.model_version,
    )

    trace_output({
        "product": product.name, "model": fc.model_version, "total": fc.predicted_total,
        "history_days": history_days, "fallback_reason": fallback_reason, "persisted": fc.persisted,
    })
    return fc


def _prophet_eligible(settings: ForecastSettings, method: str, history_days: int) -> bool:
    return (
        settings.ml_service_enabled
        and method in ("auto", "prophet")
        and history_days >= settings.prophet_min_history_days
    )


def _log_prophet_failure(product: Product, failure: AdvancedForecastFailure) -> str:
    if failure.reason == FailureReason.unavailable:
        logger.warning("Prophet unavailable for %s, falling back to classical models", product.name)
    else:
        logger.error(
            "Prophet %s for %s (status %s): %s, falling back to classical models",
            failure.reason.value, product.name, failure.status_code, failure.detail,
        )
    return failure.reason.value


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PATHS: Prophet result / classical competition
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _from_prophet(product: Product, horizon_days: int, result: AdvancedForecast) -> SalesForecast:
    daily = [round_units(p.prediction) for p in result.predictions]
    return SalesForecast(
        product_id=product.id,
        product_name=product.name,
        horizon_days=horizon_days,
        predicted_total=sum(daily),
        predicted_daily=daily,
        model_version=result.model,
        model_params={},
        confidence_intervals=[
            {"date": p.date, "lower": p.lower_bound, "upper": p.upper_bound}
            for p in result.predictions
        ],
        model_metadata=result.metadata,
    )


@observe(name="sales_forecast_classical")
def _classical_forecast(
    db: Session,
    product: Product,
    series,
    horizon_days: int,
    settings: ForecastSettings,
    today: date,
) -> SalesForecast:
    # Baseline keeps its own window; only re-query when it differs.
    if settings.baseline_lookback_days == settings.prediction_lookback_days:
        baseline_series = series
    else:
        baseline_series = build_daily_series(db, product.id, settings.baseline_lookback_days, today)

    available, skipped = run_classical_models(
        series.values, horizon_days, settings.moving_average_window, baseline_series.values,
    )
    for na in skipped:
        logger.info("Model %s skipped for %s: %s", na.model_version, product.name, na.reason)

    selected = select_best_model(load_model_metrics(db, product.id), available)
    winner = available[selected]
    logger.info(
        "Classical winner for %s: %s (%d units over %d days)",
        product.name, selected, winner.predicted_total, horizon_days,
    )

    trace_output({
        "product": product.name,
        "candidates": {k: v.predicted_total for k, v in available.items()},
        "skipped": [na.model_version for na in skipped],
        "selected": selected,
    })

    return SalesForecast(
        product_id=product.id,
        product_name=product.name,
        horizon_days=horizon_days,
        predicted_total=winner.predicted_total,
        predicted_daily=list(winner.predicted_daily),
        model_version=selected,
        model_params=dict(winner.params),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PERSIST: natural-key upsert
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _dialect_insert(db: Session):
    name = db.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    return None


def save_prediction(
    db: Session,
    product_id: int,
    prediction_date: date,
    horizon_days: int,
    predicted_qty: int,
    model_version: str,
) -> bool:
    """
    Insert or overwrite the row for (product_id, prediction_date, model_version).
    Returns False, after logging, when the write fails.
    """
    try:
        insert = _dialect_insert(db)
        if insert is not None:
            stmt = insert(Prediction.__table__).values(
                product_id=product_id,
                prediction_date=prediction_date,
                horizon_days=horizon_days,
                predicted_qty=int(predicted_qty),
                model_version=model_version,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["product_id", "prediction_date", "model_version"],
                set_={
                    "predicted_qty": stmt.excluded.predicted_qty,
                    "horizon_days": stmt.excluded.horizon_days,
                    "created_at": sqlfunc.now(),
                },
            )
            db.execute(stmt)
        else:
            row = (
                db.query(Prediction)
                .filter(
                    Prediction.product_id == product_id,
                    Prediction.prediction_date == prediction_date,
                    Prediction.model_version == model_version,
                )
                .first()
            )
            if row:
                row.predicted_qty = int(predicted_qty)
                row.horizon_days = horizon_days
                row.created_at = datetime.now(timezone.utc)
            else:
                db.add(Prediction(
                    product_id=product_id,
                    prediction_date=prediction_date,
                    horizon_days=horizon_days,
                    predicted_qty=int(predicted_qty),
                    model_version=model_version,
                ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not save %s prediction for product %s", model_version, product_id)
        return False
    return True
