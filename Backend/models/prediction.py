from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class Prediction(Base):
    __tablename__ = "sales_predictions"
    __table_args__ = (
        UniqueConstraint("product_id", "prediction_date", "model_version", name="uq_sales_predictions_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    prediction_date = Column(Date, nullable=False, index=True)
    horizon_days = Column(Integer, nullable=False)
    predicted_qty = Column(Integer, nullable=False)
    model_version = Column(String(60), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ModelMetric(Base):
    __tablename__ = "model_metrics"
    __table_args__ = (
        # One snapshot per (model, product, horizon) per evaluation day.
        UniqueConstraint(
            "model_version", "product_id", "horizon", "evaluation_date", name="uq_model_metrics_snapshot",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    model_version = Column(String(60), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    horizon = Column(Integer, nullable=False)
    mae = Column(Float, nullable=False)
    rmse = Column(Float, nullable=False)
    evaluation_date = Column(Date, nullable=False)
    evaluated_at = Column(DateTime(timezone=True), server_default=func.now())
