import os
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from database import Base, engine
from migrate import migrate as run_migrations
from services.tracing import LANGFUSE_ENABLED, LANGFUSE_HOST, configure_langfuse_decorators
from routers import (
    demand_forecast_router,
    stock_alerts_router,
    analytics_router,
    jobs_router,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create all tables
Base.metadata.create_all(bind=engine)
try:
    run_migrations()
except Exception as e:
    logging.getLogger("posforecast").warning("Migration warning at startup: %s", e)

app = FastAPI(
    title="POS Forecast API",
    description="Demand forecasting and stock alerts for the point-of-sale backend",
    version="1.0.0",
)

# Ensure @observe decorator runtime has Langfuse env values.
configure_langfuse_decorators()

logs_path = os.path.join(os.path.dirname(__file__), "logs")
os.makedirs(logs_path, exist_ok=True)
error_log_file = os.path.join(logs_path, "errors.log")
error_logger = logging.getLogger("posforecast.errors")
if not error_logger.handlers:
    error_logger.setLevel(logging.ERROR)
    fh = logging.FileHandler(error_log_file, encoding="utf-8")
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    error_logger.addHandler(fh)
    error_logger.propagate = False

# CORS for the mobile client and the local web dashboard.
raw_origins = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8081",
)
cors_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
allow_any_origin = "*" in cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_any_origin else cors_origins,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    # Browsers reject wildcard+credentials; keep credentials off for bearer-token API calls.
    allow_credentials=False if allow_any_origin else True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(demand_forecast_router)
app.include_router(stock_alerts_router)
app.include_router(analytics_router)
app.include_router(jobs_router)


@app.middleware("http")
async def _capture_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:  # pragma: no cover
        error_logger.exception("Unhandled server error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/", tags=["Health"])
def health_check():
    return {
        "status": "ok",
        "service": "POS Forecast API",
        "version": "1.0.0",
        "tracing": {"enabled": LANGFUSE_ENABLED, "host": LANGFUSE_HOST},
    }
