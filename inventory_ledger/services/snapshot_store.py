from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from inventory_ledger.models.daily_snapshot import DailySnapshot

_ON_CONFLICT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def snapshot_row(product_id: int, day: date, qty: int, avg_cost: float, *, now: datetime, created_at=None) -> dict:
    return {
        "product_id": product_id,
        "date": day,
        "available_qty": int(qty or 0),
        "avg_cost": float(avg_cost or 0.0),
        "created_at": created_at or now,
        "updated_at": now,
    }


def upsert_snapshots(db: Session, rows: list[dict]) -> int:
    """Insert-or-update snapshot rows keyed on (product_id, date)."""
    if not rows:
        return 0

    dialect_insert = _ON_CONFLICT_INSERTS.get(db.get_bind().dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(DailySnapshot)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailySnapshot.product_id, DailySnapshot.date],
            set_={
                "available_qty": stmt.excluded.available_qty,
                "avg_cost": stmt.excluded.avg_cost,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        db.execute(stmt, rows)
        return len(rows)

    for row in rows:
        existing = db.execute(
            select(DailySnapshot).where(
                DailySnapshot.product_id == row["product_id"],
                DailySnapshot.date == row["date"],
            )
        ).scalar_one_or_none()
        if existing is None:
            db.add(DailySnapshot(**row))
        else:
            existing.available_qty = row["available_qty"]
            existing.avg_cost = row["avg_cost"]
            existing.updated_at = row["updated_at"]
    db.flush()
    return len(rows)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def position_as_of(db: Session, product_id: int, as_of: date) -> Optional[DailySnapshot]:
    """Quantity and average cost of a product as of a calendar day."""
    return db.execute(
        select(DailySnapshot)
        .where(DailySnapshot.product_id == product_id, DailySnapshot.date <= as_of)
        .order_by(DailySnapshot.date.desc(), DailySnapshot.updated_at.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def snapshots_for_date(db: Session, day: date) -> list[DailySnapshot]:
    rows = db.execute(
        select(DailySnapshot)
        .where(DailySnapshot.date == day)
        .order_by(DailySnapshot.product_id)
        .execution_options(populate_existing=True)
    ).scalars().all()
    return list(rows)


def snapshot_history(
    db: Session,
    *,
    product_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: int = 1000,
) -> list[DailySnapshot]:
    conditions = []
    if product_id is not None:
        conditions.append(DailySnapshot.product_id == product_id)
    if start is not None:
        conditions.append(DailySnapshot.date >= start)
    if end is not None:
        conditions.append(DailySnapshot.date <= end)

    stmt = select(DailySnapshot)
    if conditions:
        stmt = stmt.where(and_(*conditions))
    rows = db.execute(
        stmt.order_by(DailySnapshot.date.desc(), DailySnapshot.product_id)
        .limit(limit)
        .execution_options(populate_existing=True)
    ).scalars().all()
    return list(rows)


def low_stock(db: Session, threshold: int, day: date) -> list[DailySnapshot]:
    rows = db.execute(
        select(DailySnapshot)
        .where(DailySnapshot.date == day, DailySnapshot.available_qty < threshold)
        .order_by(DailySnapshot.available_qty.asc(), DailySnapshot.product_id)
        .execution_options(populate_existing=True)
    ).scalars().all()
    return list(rows)


__all__ = [
    "low_stock",
    "position_as_of",
    "snapshot_history",
    "snapshot_row",
    "snapshots_for_date",
    "upsert_snapshots",
    "utc_now",
]
