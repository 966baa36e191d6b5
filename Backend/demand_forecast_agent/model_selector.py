"""
Pick the classical model that has historically been most accurate for a product.
"""

import logging
from collections.abc import Collection, Iterable

from sqlalchemy.orm import Session

from models.prediction import ModelMetric
from demand_forecast_agent.classical_models import MOVING_AVERAGE

logger = logging.getLogger("posforecast.model_selector")

# Least volatile of the three, used whenever history cannot decide.
DEFAULT_MODEL = MOVING_AVERAGE


def load_model_metrics(db: Session, product_id: int) -> list[ModelMetric]:
    return (
        db.query(ModelMetric)
        .filter(ModelMetric.product_id == product_id)
        .order_by(ModelMetric.mae.asc(), ModelMetric.evaluated_at.desc())
        .all()
    )


def rank_metrics(metrics: Iterable) -> list:
    """Order by MAE ascending, most recent evaluation first on ties."""
    usable = [m for m in metrics if getattr(m, "mae", None) is not None]
    usable.sort(key=lambda m: (m.evaluated_at is not None, m.evaluated_at), reverse=True)
    usable.sort(key=lambda m: m.mae)
    return usable


def select_best_model(metrics: Iterable, available: Collection[str], default: str = DEFAULT_MODEL) -> str:
    """
    Walk the ranked metric history and return the first model version that
    also ran this time. No history, or no overlap, means ``default``.
    """
    ranked = rank_metrics(metrics)
    for metric in ranked:
        if metric.model_version in available:
            logger.info(
                "Selected %s (MAE %.2f) out of %d metric rows",
                metric.model_version, metric.mae, len(ranked),
            )
            return metric.model_version

    if ranked:
        logger.info("No ranked model ran this time, using %s", default)
    else:
        logger.info("No metric history, using %s", default)
    return default
