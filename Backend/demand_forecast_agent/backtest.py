"""
Backtest: score stored predictions against what actually sold.

Looks at predictions whose date is in the last ``backtest_window_days`` days
and already over, compares ``predicted_qty`` with the units sold that day,
and appends one MAE / RMSE row per (model_version, product_id, horizon).
The metrics table keeps a single snapshot per group per evaluation day, so
re-running right away adds nothing.
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from langfuse.decorators import observe
from sqlalchemy import func as sqlfunc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import ForecastSettings, get_settings
from models.prediction import ModelMetric, Prediction
from models.sale import Sale, SaleItem
from demand_forecast_agent.sales_history import as_date, utc_today
from services.tracing import trace_output

logger = logging.getLogger("posforecast.backtest")


def _actual_sales(db: Session, product_ids: set[int], start: date, end: date) -> dict[tuple[int, date], int]:
    """Units sold per (product_id, day) for the given products and days."""
    sale_day = sqlfunc.date(Sale.sale_date)
    rows = (
        db.query(
            SaleItem.product_id,
            sale_day.label("sale_day"),
            sqlfunc.sum(SaleItem.quantity).label("total_qty"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(
            SaleItem.product_id.in_(product_ids),
            sale_day >= start,
            sale_day <= end,
        )
        .group_by(SaleItem.product_id, sale_day)
        .all()
    )
    return {(row.product_id, as_date(row.sale_day)): int(row.total_qty or 0) for row in rows}


def _insert_metric(db: Session, values: dict) -> bool:
    """Append one metric row unless this snapshot already exists. True if inserted."""
    name = db.get_bind().dialect.name
    if name in ("postgresql", "sqlite"):
        if name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert
        stmt = insert(ModelMetric.__table__).values(**values).on_conflict_do_nothing(
            index_elements=["model_version", "product_id", "horizon", "evaluation_date"],
        )
        return db.execute(stmt).rowcount > 0

    exists = (
        db.query(ModelMetric.id)
        .filter(
            ModelMetric.model_version == values["model_version"],
            ModelMetric.product_id == values["product_id"],
            ModelMetric.horizon == values["horizon"],
            ModelMetric.evaluation_date == values["evaluation_date"],
        )
        .first()
    )
    if exists:
        return False
    db.add(ModelMetric(**values))
    return True


@observe(name="sales_prediction_backtest")
def evaluate_sales_predictions(
    db: Session,
    settings: ForecastSettings | None = None,
    today: date | None = None,
) -> dict:
    settings = settings or get_settings()
    today = today or utc_today()
    window_start = today - timedelta(days=settings.backtest_window_days)

    predictions = (
        db.query(Prediction)
        .filter(Prediction.prediction_date >= window_start, Prediction.prediction_date < today)
        .order_by(Prediction.product_id, Prediction.prediction_date)
        .all()
    )
    if not predictions:
        logger.info("No past predictions to evaluate")
        return {"status": "ok", "message": "No past predictions to evaluate.", "evaluations_count": 0}

    actuals = _actual_sales(db, {p.product_id for p in predictions}, window_start, today - timedelta(days=1))

    errors = defaultdict(list)
    for pred in predictions:
        actual = actuals.get((pred.product_id, pred.prediction_date), 0)
        error = actual - pred.predicted_qty
        errors[(pred.model_version, pred.product_id, pred.horizon_days)].append((abs(error), error * error))

    now = datetime.now(timezone.utc)
    evaluations_count = 0
    try:
        for (model_version, product_id, horizon), samples in errors.items():
            n = len(samples)
            mae = sum(a for a, _ in samples) / n
            rmse = math.sqrt(sum(s for _, s in samples) / n)
            inserted = _insert_metric(db, {
                "model_version": model_version,
                "product_id": product_id,
                "horizon": horizon,
                "mae": mae,
                "rmse": rmse,
                "evaluation_date": today,
                "evaluated_at": now,
            })
            if inserted:
                evaluations_count += 1
                logger.info(
                    "Metrics for product %s (%s, %sd): MAE=%.2f RMSE=%.2f over %d predictions",
                    product_id, model_version, horizon, mae, rmse, n,
                )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not store backtest metrics")
        return {"status": "error", "message": "Backtest metrics could not be stored.", "evaluations_count": 0}

    trace_output({"predictions": len(predictions), "groups": len(errors), "inserted": evaluations_count})
    return {
        "status": "ok",
        "message": f"Prediction evaluation finished. {evaluations_count} models evaluated.",
        "evaluations_count": evaluations_count,
    }
