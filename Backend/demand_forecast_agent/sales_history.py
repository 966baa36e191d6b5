"""
Sales history aggregation.

Turns raw sale line items into a zero-filled daily quantity series. Every
downstream model assumes one value per calendar day, so days without sales
are explicit zeros, never missing entries.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func as sqlfunc
from sqlalchemy.orm import Session

from models.sale import Sale, SaleItem


@dataclass
class DailySeries:
    """Units sold per day, oldest first, ``start`` being the first day."""
    start: date
    values: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def end(self) -> date:
        return self.start + timedelta(days=len(self.values) - 1)

    @property
    def total(self) -> int:
        return sum(self.values)

    @property
    def days_with_sales(self) -> int:
        return sum(1 for v in self.values if v > 0)

    def dates(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(len(self.values))]

    def as_points(self) -> list[dict]:
        """``[{ds, y}]`` rows, the shape the Prophet service expects."""
        return [{"ds": d.isoformat(), "y": v} for d, v in zip(self.dates(), self.values)]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def window_bounds(days: int, today: date | None = None) -> tuple[date, date]:
    """First and last day of a ``days``-long window ending yesterday."""
    today = today or utc_today()
    return today - timedelta(days=days), today - timedelta(days=1)


def as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # SQLite hands DATE() back as text
    return date.fromisoformat(str(value)[:10])


def build_daily_series(db: Session, product_id: int, days: int, today: date | None = None) -> DailySeries:
    """
    Build ``{day: units}`` for the ``days`` calendar days before today.
    Today's partial day is left out so it does not drag the tail down.
    """
    start, end = window_bounds(max(days, 0), today)
    if days <= 0:
        return DailySeries(start=end + timedelta(days=1))

    sale_day = sqlfunc.date(Sale.sale_date)
    rows = (
        db.query(
            sale_day.label("sale_day"),
            sqlfunc.sum(SaleItem.quantity).label("total_qty"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(
            SaleItem.product_id == product_id,
            sale_day >= start,
            sale_day <= end,
        )
        .group_by(sale_day)
        .all()
    )

    # Calendar first, then left-join the facts onto it
    daily = {start + timedelta(days=i): 0 for i in range(days)}
    for row in rows:
        day = as_date(row.sale_day)
        if day in daily:
            daily[day] = max(int(row.total_qty or 0), 0)

    return DailySeries(start=start, values=list(daily.values()))


def calendar_average(total_qty: float, days: int) -> float:
    """Average per calendar day; idle days count, so divide by the window length."""
    if days <= 0:
        return 0.0
    return max(float(total_qty or 0), 0.0) / days


def average_daily_sales(db: Session, product_id: int, days: int, today: date | None = None) -> float:
    series = build_daily_series(db, product_id, days, today)
    return calendar_average(series.total, days)


def average_daily_sales_by_product(db: Session, days: int, today: date | None = None) -> dict[int, float]:
    """
    Same calendar-aware average as ``average_daily_sales`` for every product
    with sales in the window, in one grouped query. Products missing from the
    result sold nothing (velocity 0).
    """
    if days <= 0:
        return {}
    start, end = window_bounds(days, today)
    sale_day = sqlfunc.date(Sale.sale_date)
    rows = (
        db.query(
            SaleItem.product_id,
            sqlfunc.sum(SaleItem.quantity).label("total_qty"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(sale_day >= start, sale_day <= end)
        .group_by(SaleItem.product_id)
        .all()
    )
    return {row.product_id: calendar_average(row.total_qty, days) for row in rows}
