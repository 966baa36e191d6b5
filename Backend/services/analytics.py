from datetime import date, timedelta

from sqlalchemy import func as sqlfunc
from sqlalchemy.orm import Session

from models.prediction import ModelMetric
from models.product import Product
from models.sale import Sale, SaleItem
from demand_forecast_agent.demand_forecast_agent import ProductNotFoundError
from demand_forecast_agent.sales_history import build_daily_series, utc_today

# Percent change between the first and last three days that still counts as flat
TREND_BAND_PCT = 10.0


def get_model_metrics(db: Session) -> list[dict]:
    """Latest metric row per (product, model_version, horizon)."""
    rows = (
        db.query(ModelMetric, Product.name)
        .join(Product, Product.id == ModelMetric.product_id)
        .order_by(
            ModelMetric.product_id,
            ModelMetric.model_version,
            ModelMetric.horizon,
            ModelMetric.evaluated_at.desc(),
            ModelMetric.id.desc(),
        )
        .all()
    )
    latest = {}
    for metric, product_name in rows:
        key = (metric.product_id, metric.model_version, metric.horizon)
        if key in latest:
            continue
        latest[key] = {
            "product_id": metric.product_id,
            "product_name": product_name,
            "model_version": metric.model_version,
            "horizon": metric.horizon,
            "mae": metric.mae,
            "rmse": metric.rmse,
            "evaluation_date": metric.evaluation_date,
            "evaluated_at": metric.evaluated_at,
        }
    return list(latest.values())


def get_top_products(db: Session, range_days: int = 30, limit: int = 10) -> list[dict]:
    cutoff = utc_today() - timedelta(days=range_days)
    total_qty = sqlfunc.sum(SaleItem.quantity).label("total_qty_sold")
    rows = (
        db.query(Product.id, Product.name, total_qty)
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(sqlfunc.date(Sale.sale_date) >= cutoff)
        .group_by(Product.id, Product.name)
        .order_by(total_qty.desc())
        .limit(limit)
        .all()
    )
    return [
        {"product_id": r.id, "product_name": r.name, "total_qty_sold": int(r.total_qty_sold or 0)}
        for r in rows
    ]


def get_sales_history(db: Session, product_id: int, days: int = 90, today: date | None = None) -> dict:
    """Zero-filled daily units for one product, the series the forecasts are built on."""
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ProductNotFoundError(product_id)

    series = build_daily_series(db, product.id, days, today)
    return {
        "product_id": product.id,
        "product_name": product.name,
        "days": len(series),
        "history": [{"day": d, "qty": v} for d, v in zip(series.dates(), series.values)],
    }


def get_total_sales_today(db: Session, today: date | None = None) -> dict:
    today = today or utc_today()
    total = (
        db.query(sqlfunc.coalesce(sqlfunc.sum(Sale.total_amount), 0.0))
        .filter(sqlfunc.date(Sale.sale_date) == today)
        .scalar()
    )
    return {"day": today, "total_sales": float(total or 0.0)}


def sales_trend(daily_totals: list[float]) -> tuple[str, float]:
    """
    Compare the first three selling days with the last three.
    More than 10% apart either way is "up" / "down", anything else "stable".
    Needs six days; fewer is always stable.
    """
    if len(daily_totals) < 6:
        return "stable", 0.0

    first_avg = sum(daily_totals[:3]) / 3
    last_avg = sum(daily_totals[-3:]) / 3
    if first_avg > 0:
        pct = (last_avg - first_avg) / first_avg * 100
        if pct > TREND_BAND_PCT:
            return "up", round(pct, 1)
        if pct < -TREND_BAND_PCT:
            return "down", round(pct, 1)
        return "stable", round(pct, 1)
    if last_avg > 0:
        return "up", 100.0
    return "stable", 0.0


def get_avg_daily_sales(db: Session, range_days: int = 7, today: date | None = None) -> dict:
    """Average revenue per selling day from ``range_days`` ago through today, with its trend."""
    today = today or utc_today()
    sale_day = sqlfunc.date(Sale.sale_date)
    rows = (
        db.query(
            sale_day.label("sale_day"),
            sqlfunc.sum(Sale.total_amount).label("daily_total"),
        )
        .filter(sale_day >= today - timedelta(days=range_days), sale_day <= today)
        .group_by(sale_day)
        .order_by(sale_day)
        .all()
    )
    daily_totals = [float(r.daily_total or 0.0) for r in rows]
    if not daily_totals:
        return {"range_days": range_days, "average_daily_sales": 0.0, "trend": "stable", "trend_percentage": 0.0}

    trend, pct = sales_trend(daily_totals)
    return {
        "range_days": range_days,
        "average_daily_sales": sum(daily_totals) / len(daily_totals),
        "trend": trend,
        "trend_percentage": pct,
    }
