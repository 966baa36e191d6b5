"""Nightly cron entry point: stock alert scan, then prediction backtest."""

from database import SessionLocal
from demand_forecast_agent.backtest import evaluate_sales_predictions
from stock_alert_agent.stock_alert_agent import run_stock_alerts


def main():
    db = SessionLocal()
    try:
        alerts = run_stock_alerts(db)
        print(f"Stock alerts: {alerts['alerts_created']} created, {alerts['products_evaluated']} products evaluated")

        backtest = evaluate_sales_predictions(db)
        print(f"Backtest: {backtest['message']}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
