"""
Client for the external Prophet forecasting service.

``predict`` never raises for transport or remote problems. It returns either
an ``AdvancedForecast`` or an ``AdvancedForecastFailure`` whose reason tells
the caller what went wrong:

  unavailable         connection refused, DNS failure, timeout
  service_error       the service answered with a non-2xx status
  malformed_response  2xx, but the body does not match the contract
"""

import enum
import logging
from dataclasses import dataclass, field

import requests
from pydantic import ValidationError

from config import ForecastSettings
from demand_forecast_agent.sales_history import DailySeries
from schemas.forecast import ProphetPrediction, ProphetRequest, ProphetResponse

logger = logging.getLogger("posforecast.prophet_client")


class FailureReason(str, enum.Enum):
    unavailable = "unavailable"
    service_error = "service_error"
    malformed_response = "malformed_response"


@dataclass
class AdvancedForecast:
    model: str
    predictions: list[ProphetPrediction] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


@dataclass
class AdvancedForecastFailure:
    reason: FailureReason
    detail: str = ""
    status_code: int | None = None

    @property
    def retryable(self) -> bool:
        return self.reason == FailureReason.unavailable


AdvancedForecastResult = AdvancedForecast | AdvancedForecastFailure


def _error_detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:500] or "Unknown error"
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return str(body)[:500]


class ProphetClient:
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        confidence_interval: float = 0.95,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.confidence_interval = confidence_interval
        self._http = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: ForecastSettings) -> "ProphetClient":
        return cls(
            settings.ml_service_url,
            timeout_seconds=settings.ml_service_timeout_seconds,
            confidence_interval=settings.ml_confidence_interval,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ProphetClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def predict(
        self,
        product_id: int,
        product_name: str,
        series: DailySeries,
        horizon_days: int,
    ) -> AdvancedForecastResult:
        payload = ProphetRequest(
            product_id=product_id,
            product_name=product_name,
            historical_sales=series.as_points(),
            horizon_days=horizon_days,
            confidence_interval=self.confidence_interval,
        )
        url = f"{self.base_url}/predict"
        logger.info("Calling Prophet service for product %s (%d days of history)", product_id, len(series))

        try:
            resp = self._http.post(
                url,
                json=payload.model_dump(),
                timeout=self.timeout_seconds,
                headers={"Content-Type": "application/json"},
            )
        except requests.Timeout as exc:
            logger.warning("Prophet service timed out after %ss: %s", self.timeout_seconds, exc)
            return AdvancedForecastFailure(FailureReason.unavailable, f"timeout: {exc}")
        except requests.RequestException as exc:
            logger.warning("Prophet service not available at %s: %s", self.base_url, exc)
            return AdvancedForecastFailure(FailureReason.unavailable, str(exc))

        if not resp.ok:
            detail = _error_detail(resp)
            logger.error("Prophet service error: %s - %s", resp.status_code, detail)
            return AdvancedForecastFailure(FailureReason.service_error, detail, resp.status_code)

        try:
            body = ProphetResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            logger.error("Prophet service returned an unusable body: %s", exc)
            return AdvancedForecastFailure(FailureReason.malformed_response, str(exc)[:500], resp.status_code)

        if len(body.predictions) != horizon_days:
            detail = f"expected {horizon_days} predictions, got {len(body.predictions)}"
            logger.error("Prophet service returned an unusable body: %s", detail)
            return AdvancedForecastFailure(FailureReason.malformed_response, detail, resp.status_code)

        logger.info("Prophet answered with model %s for product %s", body.model, product_id)
        return AdvancedForecast(model=body.model, predictions=body.predictions, metadata=body.metadata)
