"""
Simple migration script, creates missing tables and adds the columns and
indexes the forecasting core relies on to tables that predate it.
Safe to run multiple times (checks before altering).
"""

from sqlalchemy import text, inspect
from database import engine, Base

# Import all models so Base.metadata knows about them
from models.product import Product  # noqa: F401
from models.sale import Sale, SaleItem  # noqa: F401
from models.prediction import Prediction, ModelMetric  # noqa: F401
from models.stock_alert import StockAlert  # noqa: F401

# (table, column, DDL type) added when an older schema lacks them
COLUMN_MIGRATIONS = [
    ("products", "reorder_threshold", "INTEGER NOT NULL DEFAULT 0"),
    ("stock_alerts", "resolved", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("stock_alerts", "days_until_stockout", "INTEGER"),
    ("stock_alerts", "predicted_out_date", "DATE"),
    ("model_metrics", "evaluation_date", "DATE"),
]

# (index name, table, columns), unique keys the upserts depend on
UNIQUE_INDEXES = [
    ("uq_sales_predictions_key", "sales_predictions", "product_id, prediction_date, model_version"),
    ("uq_model_metrics_snapshot", "model_metrics", "model_version, product_id, horizon, evaluation_date"),
]


def get_existing_columns(conn, table_name: str) -> set:
    """Get the set of column names that already exist in a table."""
    insp = inspect(conn)
    if not insp.has_table(table_name):
        return set()
    return {col["name"] for col in insp.get_columns(table_name)}


def get_existing_indexes(conn, table_name: str) -> set:
    insp = inspect(conn)
    if not insp.has_table(table_name):
        return set()
    names = {ix["name"] for ix in insp.get_indexes(table_name)}
    names |= {uc["name"] for uc in insp.get_unique_constraints(table_name) if uc.get("name")}
    return names


def migrate():
    is_postgres = engine.dialect.name == "postgresql"
    with engine.connect() as conn:
        lock_acquired = True
        if is_postgres:
            # Prevent concurrent migration execution across multiple startup workers.
            lock_acquired = bool(conn.execute(text("SELECT pg_try_advisory_lock(824715309)")).scalar())
        if not lock_acquired:
            print("  · Migration skipped: another process is running migrations")
            return

        try:
            # 1. Create any tables that don't exist yet
            Base.metadata.create_all(bind=conn)
            conn.commit()
            print("  ✓ Tables created/verified")

            # 2. Late columns
            for table_name, col_name, col_type in COLUMN_MIGRATIONS:
                existing = get_existing_columns(conn, table_name)
                if col_name in existing:
                    continue
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {col_name} {col_type}"))
                conn.commit()
                print(f"  ✓ Added column: {table_name}.{col_name}")

            # 3. Natural-key indexes for upserts
            for index_name, table_name, columns in UNIQUE_INDEXES:
                if index_name in get_existing_indexes(conn, table_name):
                    continue
                conn.execute(text(f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} ON {table_name} ({columns})"))
                conn.commit()
                print(f"  ✓ Created unique index: {index_name}")
        finally:
            if is_postgres:
                conn.execute(text("SELECT pg_advisory_unlock(824715309)"))
                conn.commit()


if __name__ == "__main__":
    print("Running migrations...")
    migrate()
    print("Done.")
