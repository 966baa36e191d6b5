"""
Pytest configuration and shared fixtures.
In-memory SQLite database per test, plus helpers to create products and sales.
"""

import os
import sys
from datetime import date, datetime, time as dtime

import pytest

# Must be set before `database` is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LANGFUSE_PUBLIC_KEY"] = ""
os.environ["LANGFUSE_SECRET_KEY"] = ""

# Add Backend/ to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from langfuse.decorators import langfuse_context  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from config import ForecastSettings  # noqa: E402
from database import Base  # noqa: E402
from models import Product, Sale, SaleItem  # noqa: E402

langfuse_context.configure(enabled=False)

TODAY = date(2026, 10, 19)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def settings():
    """Defaults, Prophet switched off."""
    return ForecastSettings()


@pytest.fixture
def make_product(db):
    def _make(name="Test product", stock=100, reorder_threshold=0, price=10.0):
        product = Product(name=name, price=price, stock=stock, reorder_threshold=reorder_threshold)
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture
def record_sale(db):
    def _record(product, day: date, quantity: int):
        sale = Sale(
            sale_date=datetime.combine(day, dtime(12, 0)),
            total_amount=quantity * product.price,
            items=[SaleItem(product_id=product.id, quantity=quantity, price=product.price)],
        )
        db.add(sale)
        db.commit()
        return sale
    return _record
