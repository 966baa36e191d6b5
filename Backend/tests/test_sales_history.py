"""
Tests for the daily sales series and calendar-aware averages
"""

from datetime import timedelta

import pytest

from demand_forecast_agent.sales_history import (
    DailySeries,
    average_daily_sales,
    average_daily_sales_by_product,
    build_daily_series,
    calendar_average,
)


class TestBuildDailySeries:

    @pytest.mark.parametrize("days", [0, 1, 7, 40, 90])
    def test_length_matches_window_with_no_sales(self, db, make_product, today, days):
        product = make_product()
        series = build_daily_series(db, product.id, days, today)
        assert len(series) == days
        assert series.values == [0] * days

    def test_zero_fills_missing_days_oldest_first(self, db, make_product, record_sale, today):
        product = make_product()
        record_sale(product, today - timedelta(days=3), 4)
        record_sale(product, today - timedelta(days=1), 2)
        record_sale(product, today - timedelta(days=1), 3)

        series = build_daily_series(db, product.id, 5, today)

        assert series.values == [0, 0, 4, 0, 5]
        assert series.start == today - timedelta(days=5)
        assert series.end == today - timedelta(days=1)
        assert series.days_with_sales == 2
        assert series.total == 9

    def test_excludes_today_and_days_before_window(self, db, make_product, record_sale, today):
        product = make_product()
        record_sale(product, today, 10)
        record_sale(product, today - timedelta(days=6), 7)

        series = build_daily_series(db, product.id, 5, today)

        assert series.values == [0, 0, 0, 0, 0]

    def test_ignores_other_products(self, db, make_product, record_sale, today):
        product = make_product("Coffee")
        other = make_product("Tea")
        record_sale(other, today - timedelta(days=1), 8)

        series = build_daily_series(db, product.id, 3, today)

        assert series.values == [0, 0, 0]

    def test_as_points_matches_dates(self, today):
        series = DailySeries(start=today - timedelta(days=2), values=[1, 0])
        assert series.as_points() == [
            {"ds": (today - timedelta(days=2)).isoformat(), "y": 1},
            {"ds": (today - timedelta(days=1)).isoformat(), "y": 0},
        ]


class TestAverageDailySales:

    def test_divides_by_calendar_days_not_selling_days(self, db, make_product, record_sale, today):
        product = make_product()
        for days_ago, qty in ((5, 10), (20, 12), (60, 8)):
            record_sale(product, today - timedelta(days=days_ago), qty)

        avg = average_daily_sales(db, product.id, 90, today)

        assert avg == pytest.approx(30 / 90)

    def test_no_sales_is_zero(self, db, make_product, today):
        product = make_product()
        assert average_daily_sales(db, product.id, 90, today) == 0.0

    def test_bulk_query_matches_single_product(self, db, make_product, record_sale, today):
        a = make_product("A")
        b = make_product("B")
        record_sale(a, today - timedelta(days=2), 9)
        record_sale(b, today - timedelta(days=10), 30)
        record_sale(b, today, 100)  # today is not part of the window

        velocities = average_daily_sales_by_product(db, 30, today)

        assert velocities[a.id] == pytest.approx(average_daily_sales(db, a.id, 30, today))
        assert velocities[b.id] == pytest.approx(1.0)

    def test_calendar_average_guards(self):
        assert calendar_average(10, 0) == 0.0
        assert calendar_average(None, 5) == 0.0
