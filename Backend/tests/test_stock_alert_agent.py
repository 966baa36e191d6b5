"""
Tests for reorder alert classification and the alert scan
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from models.stock_alert import AlertType, StockAlert
from stock_alert_agent.stock_alert_agent import (
    ALERT_SCAN_LOCK_KEY,
    _lock_alert_scan,
    classify_stock,
    days_until_stockout,
    list_open_alerts,
    run_stock_alerts,
)


class TestClassifyStock:

    def test_low_stock_wins_even_without_sales(self, today):
        decision = classify_stock(1, stock=5, reorder_threshold=10, velocity=0.0, today=today)
        assert decision.alert_type == AlertType.low_stock
        assert decision.severity == 3
        assert decision.days_until_stockout is None
        assert decision.predicted_out_date is None

    def test_stock_at_threshold_is_low_stock(self, today):
        decision = classify_stock(1, stock=10, reorder_threshold=10, velocity=1.0, today=today)
        assert decision.alert_type == AlertType.low_stock

    def test_will_stockout_within_a_week(self, today):
        decision = classify_stock(1, stock=50, reorder_threshold=5, velocity=10.0, today=today)
        assert decision.alert_type == AlertType.will_stockout
        assert decision.severity == 1
        assert decision.days_until_stockout == 5
        assert decision.predicted_out_date == today + timedelta(days=5)

    @pytest.mark.parametrize("stock, expected_days, expected_severity", [
        (9, 0, 3),
        (19, 1, 3),
        (20, 2, 2),
        (39, 3, 2),
        (40, 4, 1),
        (79, 7, 1),
    ])
    def test_severity_tiers(self, today, stock, expected_days, expected_severity):
        decision = classify_stock(1, stock=stock, reorder_threshold=0, velocity=10.0, today=today)
        assert decision.days_until_stockout == expected_days
        assert decision.severity == expected_severity

    def test_beyond_threshold_no_alert(self, today):
        assert classify_stock(1, stock=80, reorder_threshold=0, velocity=10.0, today=today) is None

    def test_threshold_is_configurable(self, today):
        assert classify_stock(1, stock=80, reorder_threshold=0, velocity=10.0, today=today, days_threshold=8)

    def test_no_sales_no_alert(self, today):
        assert classify_stock(1, stock=3, reorder_threshold=0, velocity=0.0, today=today) is None

    def test_days_until_stockout_floors(self):
        assert days_until_stockout(10, 3.0) == 3
        assert days_until_stockout(10, 0.0) is None


class TestRunStockAlerts:

    @pytest.fixture
    def catalogue(self, make_product, record_sale, today):
        low = make_product("Chips", stock=5, reorder_threshold=10)
        fast = make_product("Cola", stock=50, reorder_threshold=5)
        make_product("Candles", stock=1000, reorder_threshold=5)
        # 900 units over the 90-day window, 10 a day
        record_sale(fast, today - timedelta(days=1), 900)
        return low, fast

    def test_scan_flags_and_stores(self, db, settings, catalogue, today):
        low, fast = catalogue

        result = run_stock_alerts(db, settings=settings, today=today)

        assert result["status"] == "ok"
        assert result["products_evaluated"] == 3
        assert result["alerts_created"] == 2
        alerts = {a.product_id: a for a in db.query(StockAlert).all()}
        assert alerts[low.id].alert_type == AlertType.low_stock
        assert alerts[fast.id].alert_type == AlertType.will_stockout
        assert alerts[fast.id].days_until_stockout == 5
        assert alerts[fast.id].predicted_out_date == today + timedelta(days=5)
        assert not alerts[fast.id].resolved

    def test_rescan_does_not_duplicate(self, db, settings, catalogue, today):
        run_stock_alerts(db, settings=settings, today=today)
        result = run_stock_alerts(db, settings=settings, today=today)

        assert result["alerts_created"] == 0
        assert db.query(StockAlert).count() == 2

    def test_resolved_alert_does_not_block(self, db, settings, catalogue, today):
        low, _ = catalogue
        run_stock_alerts(db, settings=settings, today=today)
        db.query(StockAlert).filter(StockAlert.product_id == low.id).update({"resolved": True})
        db.commit()

        result = run_stock_alerts(db, settings=settings, today=today)

        assert result["alerts_created"] == 1
        assert db.query(StockAlert).count() == 3

    def test_changed_severity_adds_a_new_alert(self, db, settings, catalogue, today):
        _, fast = catalogue
        run_stock_alerts(db, settings=settings, today=today)
        fast.stock = 20
        db.commit()

        result = run_stock_alerts(db, settings=settings, today=today)

        assert result["alerts_created"] == 1
        severities = sorted(
            a.severity for a in db.query(StockAlert).filter(StockAlert.product_id == fast.id).all()
        )
        assert severities == [1, 2]

    def test_list_open_alerts(self, db, settings, catalogue, today):
        run_stock_alerts(db, settings=settings, today=today)

        alerts = list_open_alerts(db)

        assert [a["product_name"] for a in alerts] == ["Chips", "Cola"]
        assert alerts[0]["alert_type"] == "low_stock"
        assert alerts[0]["current_stock"] == 5


class RecordingSession:
    """Just enough of a Session to see what the scan lock issues."""

    def __init__(self, dialect_name):
        self.dialect_name = dialect_name
        self.statements = []

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name=self.dialect_name))

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))


class TestAlertScanLock:

    def test_postgres_scans_take_transaction_lock(self):
        session = RecordingSession("postgresql")
        assert _lock_alert_scan(session) is True
        assert session.statements == [
            ("SELECT pg_advisory_xact_lock(:key)", {"key": ALERT_SCAN_LOCK_KEY}),
        ]

    def test_sqlite_has_no_lock(self, db):
        assert _lock_alert_scan(db) is False

    def test_scan_runs_under_the_lock(self, db, settings, make_product, today, monkeypatch):
        make_product("Loose", stock=1, reorder_threshold=5)
        calls = []
        monkeypatch.setattr(
            "stock_alert_agent.stock_alert_agent._lock_alert_scan", lambda session: calls.append(session),
        )
        run_stock_alerts(db, settings=settings, today=today)
        assert calls == [db]
