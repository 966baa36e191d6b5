"""
Tests for the Prophet service client, using a stub HTTP session
"""

from datetime import date

import pytest
import requests

from demand_forecast_agent.prophet_client import (
    AdvancedForecast,
    AdvancedForecastFailure,
    FailureReason,
    ProphetClient,
)
from demand_forecast_agent.sales_history import DailySeries
from stubs import GOOD_BODY, StubSession, make_response, prophet_body

SERIES = DailySeries(start=date(2026, 10, 16), values=[3, 0, 5])


def client_for(session) -> ProphetClient:
    return ProphetClient("http://ml.local/", timeout_seconds=5, confidence_interval=0.9, session=session)


class TestProphetClientFailures:

    def test_connection_error_is_unavailable(self):
        session = StubSession(error=requests.ConnectionError("connection refused"))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert isinstance(result, AdvancedForecastFailure)
        assert result.reason == FailureReason.unavailable
        assert result.retryable

    def test_timeout_is_unavailable(self):
        session = StubSession(error=requests.Timeout("read timed out"))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert result.reason == FailureReason.unavailable

    def test_error_status_is_service_error_with_detail(self):
        session = StubSession(make_response(503, {"detail": "model crashed"}))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert result.reason == FailureReason.service_error
        assert result.detail == "model crashed"
        assert result.status_code == 503
        assert not result.retryable

    def test_error_status_with_plain_text_body(self):
        session = StubSession(make_response(500, "Internal Server Error"))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert result.reason == FailureReason.service_error
        assert result.detail == "Internal Server Error"

    def test_non_json_body_is_malformed(self):
        session = StubSession(make_response(200, "<html>oops</html>"))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert result.reason == FailureReason.malformed_response

    def test_missing_predictions_is_malformed(self):
        session = StubSession(make_response(200, {"model": "prophet_v1", "predictions": []}))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert result.reason == FailureReason.malformed_response

    def test_prediction_count_must_match_horizon(self):
        session = StubSession(make_response(200, GOOD_BODY))
        result = client_for(session).predict(1, "Coffee", SERIES, 7)
        assert result.reason == FailureReason.malformed_response
        assert result.detail == "expected 7 predictions, got 2"

    @pytest.mark.parametrize("bad", [float("nan"), float("inf")])
    def test_non_finite_prediction_is_malformed(self, bad):
        session = StubSession(make_response(200, prophet_body([bad, 1.0])))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert result.reason == FailureReason.malformed_response


class TestProphetClientSuccess:

    def test_parses_predictions(self):
        session = StubSession(make_response(200, GOOD_BODY))
        result = client_for(session).predict(1, "Coffee", SERIES, 2)
        assert isinstance(result, AdvancedForecast)
        assert result.model == "prophet_v1"
        assert [p.prediction for p in result.predictions] == [4.4, 5.5]
        assert result.metadata == {"training_days": 3}

    def test_sends_full_series_and_settings(self):
        session = StubSession(make_response(200, GOOD_BODY))
        client_for(session).predict(7, "Coffee", SERIES, 2)

        call = session.calls[0]
        assert call["url"] == "http://ml.local/predict"
        assert call["timeout"] == 5
        assert call["json"]["product_id"] == 7
        assert call["json"]["horizon_days"] == 2
        assert call["json"]["confidence_interval"] == 0.9
        assert call["json"]["historical_sales"] == [
            {"ds": "2026-10-16", "y": 3},
            {"ds": "2026-10-17", "y": 0},
            {"ds": "2026-10-18", "y": 5},
        ]


class TestProphetClientSession:

    def test_context_manager_closes_session(self):
        session = StubSession(make_response(200, GOOD_BODY))
        with client_for(session) as client:
            client.predict(1, "Coffee", SERIES, 2)
        assert session.closed
