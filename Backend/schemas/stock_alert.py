from datetime import date, datetime

from pydantic import BaseModel


class StockAlertOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    current_stock: int | None
    alert_type: str
    severity: int
    predicted_out_date: date | None
    days_until_stockout: int | None
    resolved: bool
    created_at: datetime | None

    class Config:
        from_attributes = True


class AlertDecisionOut(BaseModel):
    product_id: int
    alert_type: str
    severity: int
    predicted_out_date: date | None = None
    days_until_stockout: int | None = None
    velocity: float = 0.0


class AlertScanOut(BaseModel):
    status: str
    alerts_created: int
    products_evaluated: int
    flagged: list[AlertDecisionOut] = []
    execution_time_ms: int = 0
