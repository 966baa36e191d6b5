from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
import enum

from database import Base


class AlertType(str, enum.Enum):
    low_stock = "low_stock"
    will_stockout = "will_stockout"


class StockAlert(Base):
    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    alert_type = Column(SAEnum(AlertType), nullable=False)
    severity = Column(Integer, nullable=False)
    predicted_out_date = Column(Date, nullable=True)
    days_until_stockout = Column(Integer, nullable=True)
    resolved = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
