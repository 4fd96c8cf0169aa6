from datetime import date, datetime, time, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_ledger.database import Base, configure_sqlite_engine
from inventory_ledger.models import import_all_models
from inventory_ledger.models.daily_snapshot import DailySnapshot
from inventory_ledger.models.product import Product


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return configure_sqlite_engine(engine, memory=True)


def make_session_factory(engine=None):
    engine = engine if engine is not None else make_engine()
    import_all_models()
    Base.metadata.create_all(bind=engine)
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def add_product(db, sku: str, name: str = None) -> Product:
    product = Product(sku=sku, name=name or sku)
    db.add(product)
    db.commit()
    return product


def add_snapshot(db, product_id: int, day: date, qty: int, avg_cost: float = 0.0) -> DailySnapshot:
    now = datetime.now(timezone.utc)
    snapshot = DailySnapshot(
        product_id=product_id,
        date=day,
        available_qty=qty,
        avg_cost=avg_cost,
        created_at=now,
        updated_at=now,
    )
    db.add(snapshot)
    db.commit()
    return snapshot


def at(day: date, hour: int = 10) -> datetime:
    return datetime.combine(day, time(hour=hour))


def snapshot_values(db, product_id: int) -> dict:
    rows = db.execute(
        select(DailySnapshot.date, DailySnapshot.available_qty, DailySnapshot.avg_cost)
        .where(DailySnapshot.product_id == product_id)
        .order_by(DailySnapshot.date)
    ).all()
    return {row.date: (row.available_qty, round(row.avg_cost, 4)) for row in rows}
