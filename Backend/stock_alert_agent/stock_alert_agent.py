"""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
Stock Alert Agent: graded reorder alerts
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

For every product:

  velocity            = units sold over the baseline window / window length
  days_until_stockout = floor(stock / velocity), none when velocity is 0

  stock <= reorder_threshold          → low_stock,     severity 3
  days_until_stockout <= threshold    → will_stockout, severity 3 (<=1 day),
                                                       2 (<=3 days), 1 otherwise
  otherwise                           → no alert

An alert is only written when the product has no unresolved alert with the
same (alert_type, severity, predicted_out_date, days_until_stockout).
Overlapping scans queue on a PostgreSQL advisory lock, so the check and the
insert see each other's commits.
Resolving alerts happens elsewhere; this agent never updates or deletes them.
"""

import logging
import math
import time
from dataclasses import dataclass, asdict
from datetime import date, timedelta

from langfuse.decorators import observe
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import ForecastSettings, get_settings
from models.product import Product
from models.stock_alert import AlertType, StockAlert
from demand_forecast_agent.sales_history import average_daily_sales_by_product, utc_today
from services.tracing import trace_output

logger = logging.getLogger("posforecast.stock_alerts")

SEVERITY_CRITICAL = 3
SEVERITY_HIGH = 2
SEVERITY_MEDIUM = 1

# Serializes overlapping scans on PostgreSQL; released on commit or rollback.
ALERT_SCAN_LOCK_KEY = 824715310


@dataclass
class AlertDecision:
    product_id: int
    alert_type: AlertType
    severity: int
    predicted_out_date: date | None = None
    days_until_stockout: int | None = None
    velocity: float = 0.0

    def to_dict(self):
        d = asdict(self)
        d["alert_type"] = self.alert_type.value
        return d


def days_until_stockout(stock: int, velocity: float) -> int | None:
    if velocity <= 0:
        return None
    return math.floor(max(stock, 0) / velocity)


def will_stockout_severity(days: int) -> int:
    if days <= 1:
        return SEVERITY_CRITICAL
    if days <= 3:
        return SEVERITY_HIGH
    return SEVERITY_MEDIUM


def classify_stock(
    product_id: int,
    stock: int,
    reorder_threshold: int,
    velocity: float,
    today: date,
    days_threshold: int = 7,
) -> AlertDecision | None:
    days = days_until_stockout(stock, velocity)

    if stock <= reorder_threshold:
        return AlertDecision(
            product_id=product_id,
            alert_type=AlertType.low_stock,
            severity=SEVERITY_CRITICAL,
            days_until_stockout=days,
            velocity=velocity,
        )

    if days is not None and days <= days_threshold:
        return AlertDecision(
            product_id=product_id,
            alert_type=AlertType.will_stockout,
            severity=will_stockout_severity(days),
            predicted_out_date=today + timedelta(days=days),
            days_until_stockout=days,
            velocity=velocity,
        )

    return None


def _lock_alert_scan(db: Session) -> bool:
    """Take the transaction-scoped scan lock. Returns False where the dialect has none."""
    if db.get_bind().dialect.name != "postgresql":
        return False
    db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": ALERT_SCAN_LOCK_KEY})
    return True


def _open_duplicate(db: Session, decision: AlertDecision) -> StockAlert | None:
    return (
        db.query(StockAlert)
        .filter(
            StockAlert.product_id == decision.product_id,
            StockAlert.alert_type == decision.alert_type,
            StockAlert.severity == decision.severity,
            StockAlert.predicted_out_date == decision.predicted_out_date,
            StockAlert.days_until_stockout == decision.days_until_stockout,
            StockAlert.resolved.is_(False),
        )
        .first()
    )


@observe(name="stock_alert_scan")
def run_stock_alerts(
    db: Session,
    settings: ForecastSettings | None = None,
    today: date | None = None,
) -> dict:
    t0 = time.time()
    settings = settings or get_settings()
    today = today or utc_today()

    products = db.query(Product).order_by(Product.id).all()
    velocities = average_daily_sales_by_product(db, settings.baseline_lookback_days, today)

    decisions = []
    for product in products:
        decision = classify_stock(
            product.id,
            product.stock or 0,
            product.reorder_threshold or 0,
            velocities.get(product.id, 0.0),
            today,
            settings.alert_days_threshold,
        )
        if decision:
            decisions.append(decision)

    alerts_created = 0
    status = "ok"
    try:
        _lock_alert_scan(db)
        for decision in decisions:
            if _open_duplicate(db, decision):
                continue
            db.add(StockAlert(
                product_id=decision.product_id,
                alert_type=decision.alert_type,
                severity=decision.severity,
                predicted_out_date=decision.predicted_out_date,
                days_until_stockout=decision.days_until_stockout,
                resolved=False,
            ))
            alerts_created += 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not store stock alerts")
        alerts_created = 0
        status = "error"

    elapsed_ms = int((time.time() - t0) * 1000)
    logger.info(
        "Stock alert scan: %d products, %d flagged, %d new alerts (%d ms)",
        len(products), len(decisions), alerts_created, elapsed_ms,
    )
    trace_output({
        "products": len(products), "flagged": len(decisions),
        "alerts_created": alerts_created, "time_ms": elapsed_ms,
    })
    return {
        "status": status,
        "alerts_created": alerts_created,
        "products_evaluated": len(products),
        "flagged": [d.to_dict() for d in decisions],
        "execution_time_ms": elapsed_ms,
    }


def list_open_alerts(db: Session, include_resolved: bool = False) -> list[dict]:
    query = (
        db.query(StockAlert, Product.name, Product.stock)
        .join(Product, Product.id == StockAlert.product_id)
    )
    if not include_resolved:
        query = query.filter(StockAlert.resolved.is_(False))
    rows = query.order_by(StockAlert.severity.desc(), StockAlert.created_at.desc()).all()
    return [
        {
            "id": alert.id,
            "product_id": alert.product_id,
            "product_name": name,
            "current_stock": stock,
            "alert_type": alert.alert_type.value if hasattr(alert.alert_type, "value") else str(alert.alert_type),
            "severity": alert.severity,
            "predicted_out_date": alert.predicted_out_date,
            "days_until_stockout": alert.days_until_stockout,
            "resolved": alert.resolved,
            "created_at": alert.created_at,
        }
        for alert, name, stock in rows
    ]
