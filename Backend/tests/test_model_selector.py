"""
Tests for picking the classical model from backtest history
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

from demand_forecast_agent.classical_models import BASELINE_AVERAGE, LINEAR_REGRESSION, MOVING_AVERAGE
from demand_forecast_agent.model_selector import load_model_metrics, rank_metrics, select_best_model
from models.prediction import ModelMetric

ALL_MODELS = {MOVING_AVERAGE, LINEAR_REGRESSION, BASELINE_AVERAGE}
T1 = datetime(2026, 10, 1, 3, 0)
T2 = datetime(2026, 10, 8, 3, 0)


def metric(model_version, mae, evaluated_at=T1):
    return SimpleNamespace(model_version=model_version, mae=mae, evaluated_at=evaluated_at)


class TestSelectBestModel:

    def test_lowest_mae_wins_and_newest_breaks_ties(self):
        metrics = [
            metric("model_a", 2.1),
            metric("model_b", 1.4, T1),
            metric("model_c", 1.4, T2),
        ]
        assert select_best_model(metrics, {"model_a", "model_b", "model_c"}) == "model_c"

    def test_no_history_means_moving_average(self):
        assert select_best_model([], {LINEAR_REGRESSION, BASELINE_AVERAGE}) == MOVING_AVERAGE

    def test_skips_models_that_did_not_run(self):
        metrics = [metric(LINEAR_REGRESSION, 0.5), metric(BASELINE_AVERAGE, 1.0)]
        assert select_best_model(metrics, {MOVING_AVERAGE, BASELINE_AVERAGE}) == BASELINE_AVERAGE

    def test_no_overlap_falls_back_to_default(self):
        metrics = [metric("prophet_v1", 0.2)]
        assert select_best_model(metrics, ALL_MODELS) == MOVING_AVERAGE

    def test_rows_without_mae_are_ignored(self):
        metrics = [metric(LINEAR_REGRESSION, None), metric(BASELINE_AVERAGE, 3.0)]
        assert [m.model_version for m in rank_metrics(metrics)] == [BASELINE_AVERAGE]
        assert select_best_model(metrics, ALL_MODELS) == BASELINE_AVERAGE


class TestLoadModelMetrics:

    def test_reads_only_this_products_rows(self, db, make_product, today):
        coffee = make_product("Coffee")
        tea = make_product("Tea")
        db.add_all([
            ModelMetric(model_version=BASELINE_AVERAGE, product_id=coffee.id, horizon=7,
                        mae=1.2, rmse=1.5, evaluation_date=today, evaluated_at=T2),
            ModelMetric(model_version=LINEAR_REGRESSION, product_id=coffee.id, horizon=7,
                        mae=0.8, rmse=1.0, evaluation_date=today - timedelta(days=7), evaluated_at=T1),
            ModelMetric(model_version=MOVING_AVERAGE, product_id=tea.id, horizon=7,
                        mae=0.1, rmse=0.1, evaluation_date=today, evaluated_at=T2),
        ])
        db.commit()

        metrics = load_model_metrics(db, coffee.id)

        assert [m.model_version for m in metrics] == [LINEAR_REGRESSION, BASELINE_AVERAGE]
        assert select_best_model(metrics, ALL_MODELS) == LINEAR_REGRESSION
