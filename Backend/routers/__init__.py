from routers.demand_forecast import router as demand_forecast_router
from routers.stock_alerts import router as stock_alerts_router
from routers.analytics import router as analytics_router
from routers.jobs import router as jobs_router

__all__ = [
    "demand_forecast_router",
    "stock_alerts_router",
    "analytics_router",
    "jobs_router",
]
