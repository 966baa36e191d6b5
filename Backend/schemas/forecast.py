from datetime import datetime, date
from typing import Literal

from pydantic import BaseModel, Field

ForecastMethod = Literal["auto", "prophet", "classical"]


class HistoricalSale(BaseModel):
    ds: str
    y: int


class ProphetRequest(BaseModel):
    product_id: int
    product_name: str
    historical_sales: list[HistoricalSale]
    horizon_days: int
    confidence_interval: float = 0.95


class ProphetPrediction(BaseModel):
    date: str
    prediction: float = Field(allow_inf_nan=False)
    lower_bound: float = Field(allow_inf_nan=False)
    upper_bound: float = Field(allow_inf_nan=False)


class ProphetResponse(BaseModel):
    model: str = Field(min_length=1)
    predictions: list[ProphetPrediction] = Field(min_length=1)
    metadata: dict = Field(default_factory=dict)


class ConfidenceInterval(BaseModel):
    date: str
    lower: float
    upper: float


class SalesForecastOut(BaseModel):
    product_id: int
    product_name: str
    horizon_days: int
    predicted_total: int
    predicted_daily: list[int]
    model_version: str
    model_params: dict = Field(default_factory=dict)
    computed_at: datetime
    confidence_intervals: list[ConfidenceInterval] | None = None
    model_metadata: dict | None = None
    fallback_reason: str | None = None
    persisted: bool = True

    class Config:
        protected_namespaces = ()


class BacktestOut(BaseModel):
    status: str
    message: str
    evaluations_count: int


class ModelMetricOut(BaseModel):
    product_id: int
    product_name: str | None
    model_version: str
    horizon: int
    mae: float
    rmse: float
    evaluation_date: date | None
    evaluated_at: datetime | None

    class Config:
        from_attributes = True
        protected_namespaces = ()


class TopProductOut(BaseModel):
    product_id: int
    product_name: str
    total_qty_sold: int


class DailyQuantity(BaseModel):
    day: date
    qty: int


class SalesHistoryOut(BaseModel):
    product_id: int
    product_name: str
    days: int
    history: list[DailyQuantity]


class SalesTodayOut(BaseModel):
    day: date
    total_sales: float


class AvgDailySalesOut(BaseModel):
    range_days: int
    average_daily_sales: float
    trend: Literal["up", "down", "stable"]
    trend_percentage: float
