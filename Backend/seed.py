"""Seed the database with demo products and ~60 days of sales history."""

import random
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from database import SessionLocal, Base, engine
from models.product import Product
from models.sale import Sale, SaleItem

PRODUCTS = [
    {"name": "Agua Natural 1L", "barcode": "7501000000011", "price": 12.0, "stock": 140, "reorder_threshold": 30},
    {"name": "Refresco Cola 600ml", "barcode": "7501000000028", "price": 18.0, "stock": 35, "reorder_threshold": 20},
    {"name": "Papas Sal 45g", "barcode": "7501000000035", "price": 16.5, "stock": 12, "reorder_threshold": 15},
    {"name": "Galletas Chocolate", "barcode": "7501000000042", "price": 22.0, "stock": 60, "reorder_threshold": 10},
    {"name": "Cafe Molido 250g", "barcode": "7501000000059", "price": 89.0, "stock": 8, "reorder_threshold": 3},
]

# Mean units per day for each product, same order as PRODUCTS
DAILY_DEMAND = [9, 6, 4, 2, 0.5]
HISTORY_DAYS = 60


def seed(db: Session, history_days: int = HISTORY_DAYS, rng: random.Random | None = None) -> int:
    """Insert demo data into an empty catalogue. Returns the number of sales created."""
    existing = db.query(Product).count()
    if existing > 0:
        print(f"Database already has {existing} products, skipping seed.")
        return 0

    rng = rng or random.Random(42)
    products = [Product(**p) for p in PRODUCTS]
    db.add_all(products)
    db.flush()

    today = datetime.now(timezone.utc).replace(hour=12, minute=0, second=0, microsecond=0)
    sales = 0
    for days_ago in range(history_days, 0, -1):
        sale_date = today - timedelta(days=days_ago)
        items = []
        for product, mean in zip(products, DAILY_DEMAND):
            qty = max(0, round(rng.gauss(mean, mean / 3 + 0.5)))
            if qty:
                items.append(SaleItem(product_id=product.id, quantity=qty, price=product.price))
        if not items:
            continue
        db.add(Sale(
            sale_date=sale_date,
            total_amount=sum(i.quantity * i.price for i in items),
            items=items,
        ))
        sales += 1

    db.commit()
    print(f"Seeded {len(products)} products and {sales} sales.")
    return sales


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed(session)
    finally:
        session.close()
