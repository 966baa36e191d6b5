from models.product import Product
from models.sale import Sale, SaleItem
from models.prediction import Prediction, ModelMetric
from models.stock_alert import StockAlert, AlertType

__all__ = ["Product", "Sale", "SaleItem", "Prediction", "ModelMetric", "StockAlert", "AlertType"]
