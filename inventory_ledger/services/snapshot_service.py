import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import and_, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_ledger.core.dates import ledger_today
from inventory_ledger.database import SessionLocal
from inventory_ledger.models.daily_snapshot import DailySnapshot
from inventory_ledger.models.product import Product
from inventory_ledger.services.snapshot_store import snapshot_row, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SnapshotRunResult:
    snapshot_date: date
    processed: int = 0
    skipped: int = 0

    def summary(self) -> str:
        return "date={} processed={} skipped={}".format(
            self.snapshot_date.isoformat(),
            self.processed,
            self.skipped,
        )


def closing_positions(db: Session, as_of: date) -> dict[int, tuple[int, float]]:
    """Latest (qty, avg_cost) per product on or before ``as_of``."""
    latest = (
        select(
            DailySnapshot.product_id.label("product_id"),
            func.max(DailySnapshot.date).label("latest_date"),
        )
        .where(DailySnapshot.date <= as_of)
        .group_by(DailySnapshot.product_id)
        .subquery()
    )
    rows = db.execute(
        select(
            DailySnapshot.product_id,
            DailySnapshot.available_qty,
            DailySnapshot.avg_cost,
        )
        .join(
            latest,
            and_(
                DailySnapshot.product_id == latest.c.product_id,
                DailySnapshot.date == latest.c.latest_date,
            ),
        )
        .order_by(DailySnapshot.product_id, DailySnapshot.updated_at.desc())
    ).all()

    positions: dict[int, tuple[int, float]] = {}
    for product_id, qty, avg_cost in rows:
        # Legacy tables without the unique key may hold duplicates; newest wins.
        positions.setdefault(product_id, (int(qty or 0), float(avg_cost or 0.0)))
    return positions


def carry_forward_snapshots(db: Session, *, today: Optional[date] = None) -> SnapshotRunResult:
    """Open today's row for every product with yesterday's closing values.

    Existing rows are never touched, so running twice a day is a no-op.
    """
    today = today or ledger_today()
    yesterday = today - timedelta(days=1)
    db.flush()

    product_ids = db.execute(select(Product.id).order_by(Product.id)).scalars().all()
    already_open = set(
        db.execute(
            select(DailySnapshot.product_id).where(DailySnapshot.date == today)
        ).scalars()
    )
    carried = closing_positions(db, yesterday)

    result = SnapshotRunResult(snapshot_date=today)
    now = utc_now()
    rows = []
    for product_id in product_ids:
        if product_id in already_open:
            result.skipped += 1
            continue
        qty, avg_cost = carried.get(product_id, (0, 0.0))
        rows.append(snapshot_row(product_id, today, qty, avg_cost, now=now))
        result.processed += 1

    if rows:
        db.execute(insert(DailySnapshot), rows)
    return result


def run_daily_snapshot(*, today: Optional[date] = None, session_factory=SessionLocal) -> SnapshotRunResult:
    db = session_factory()
    try:
        result = carry_forward_snapshots(db, today=today)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()

    logger.info("Daily stock snapshot completed: %s", result.summary())
    return result


__all__ = [
    "SnapshotRunResult",
    "carry_forward_snapshots",
    "closing_positions",
    "run_daily_snapshot",
]
