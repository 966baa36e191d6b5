"""
Classical forecast models.

Three independent models competing on the same daily series:

  moving_average_v1     adaptive-window mean of the most recent days
  linear_regression_v1  OLS trend, y = mx + b over the day index
  baseline_avg_v1       long-window calendar average

Every model hands back either a ``ModelForecast`` or a ``NotApplicable``;
a model that cannot run on this series drops out of the competition and
never takes the others down with it.

ALL MATH IS PURE PYTHON.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

MOVING_AVERAGE = "moving_average_v1"
LINEAR_REGRESSION = "linear_regression_v1"
BASELINE_AVERAGE = "baseline_avg_v1"

CLASSICAL_MODELS = (MOVING_AVERAGE, LINEAR_REGRESSION, BASELINE_AVERAGE)


@dataclass
class ModelForecast:
    model_version: str
    predicted_daily: list[int] = field(default_factory=list)
    params: dict = field(default_factory=dict)

    @property
    def predicted_total(self) -> int:
        return sum(self.predicted_daily)


@dataclass
class NotApplicable:
    model_version: str
    reason: str


ModelResult = ModelForecast | NotApplicable


def round_units(value: float) -> int:
    """Round half up, never below zero."""
    if value is None or math.isnan(value):
        return 0
    return max(0, int(math.floor(value + 0.5)))


def _flat_forecast(value: float, horizon_days: int) -> list[int]:
    return [round_units(value)] * max(horizon_days, 0)


def moving_average(series: Sequence[int], horizon_days: int, window: int) -> ModelResult:
    """
    Mean of the last ``min(len(series), window)`` days, repeated for the horizon.
    Shrinking the window to the available history keeps new products from
    being judged on whatever their last one or two days happened to be.
    """
    effective_window = min(len(series), max(window, 1))
    if effective_window == 0:
        return ModelForecast(MOVING_AVERAGE, _flat_forecast(0, horizon_days), {"window": 0, "avg": 0.0})

    recent = list(series)[-effective_window:]
    avg = sum(recent) / effective_window
    return ModelForecast(
        MOVING_AVERAGE,
        _flat_forecast(avg, horizon_days),
        {"window": effective_window, "avg": avg},
    )


def fit_linear_trend(values: Sequence[float]) -> tuple[float, float] | None:
    """
    Ordinary Least Squares on y = units, x = day index (0, 1, 2, ...).
    Returns (slope, intercept), or None with fewer than two points.
    """
    n = len(values)
    if n < 2:
        return None

    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_x2 = sum(x * x for x in xs)

    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return None

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def linear_regression(series: Sequence[int], horizon_days: int) -> ModelResult:
    fit = fit_linear_trend(series)
    if fit is None:
        return NotApplicable(LINEAR_REGRESSION, f"needs at least 2 data points, got {len(series)}")

    slope, intercept = fit
    n = len(series)
    predicted = [round_units(slope * (n + i) + intercept) for i in range(max(horizon_days, 0))]
    return ModelForecast(LINEAR_REGRESSION, predicted, {"slope": slope, "intercept": intercept})


def baseline_average(series: Sequence[int], horizon_days: int) -> ModelResult:
    """
    Total units over the calendar length of the window. ``series`` must be
    the zero-filled baseline window, so idle days pull the average down.
    """
    days = len(series)
    avg = sum(series) / days if days else 0.0
    return ModelForecast(
        BASELINE_AVERAGE,
        _flat_forecast(avg, horizon_days),
        {"avg": avg, "window_days": days},
    )


def run_classical_models(
    series: Sequence[int],
    horizon_days: int,
    window: int,
    baseline_series: Sequence[int] | None = None,
) -> tuple[dict[str, ModelForecast], list[NotApplicable]]:
    """
    Run the whole competition. The models share no state, so order is irrelevant.
    Returns ``(available, skipped)`` keyed by model version.
    """
    results: list[ModelResult] = [
        moving_average(series, horizon_days, window),
        linear_regression(series, horizon_days),
        baseline_average(series if baseline_series is None else baseline_series, horizon_days),
    ]

    available: dict[str, ModelForecast] = {}
    skipped: list[NotApplicable] = []
    for result in results:
        if isinstance(result, ModelForecast):
            available[result.model_version] = result
        else:
            skipped.append(result)
    return available, skipped
