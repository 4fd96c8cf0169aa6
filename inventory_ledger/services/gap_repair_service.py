"""Forward-fill repair of missing calendar days in ``daily_stock``.

For every product the repair span runs from the start of its earliest gap
to today, or to its latest snapshot when that is post-dated. Existing rows in the span are captured, deleted and regenerated
for every calendar day: an exact row keeps its values, a missing day takes
the last value seen earlier in the span, and days before any value default
to zero. Everything the repair computes lives only inside one call.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_ledger.core.dates import iter_days, ledger_today
from inventory_ledger.database import SessionLocal
from inventory_ledger.models.daily_snapshot import DailySnapshot
from inventory_ledger.services.product_locks import lock_products
from inventory_ledger.services.snapshot_store import snapshot_row, upsert_snapshots, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotGap:
    product_id: int
    gap_start: date
    gap_end: date


@dataclass
class GapRepairResult:
    filled_rows: int = 0
    rewritten_rows: int = 0
    products_repaired: int = 0
    gaps_found: int = 0

    def summary(self) -> str:
        return "filled={} rewritten={} products={} gaps={}".format(
            self.filled_rows,
            self.rewritten_rows,
            self.products_repaired,
            self.gaps_found,
        )


@dataclass(frozen=True)
class FilledDay:
    day: date
    available_qty: int
    avg_cost: float
    existed: bool
    created_at: Optional[datetime] = None


def detect_gaps(dates_by_product: dict[int, list[date]], today: date) -> list[SnapshotGap]:
    """Interior gaps between consecutive dates plus a trailing gap up to today.

    Each date list must be sorted ascending.
    """
    gaps = []
    for product_id, dates in dates_by_product.items():
        if not dates:
            continue
        for current, following in zip(dates, dates[1:]):
            if (following - current).days > 1:
                gaps.append(SnapshotGap(product_id, current, following))
        if dates[-1] < today:
            gaps.append(SnapshotGap(product_id, dates[-1], today))
    return gaps


def repair_spans(gaps: Iterable[SnapshotGap]) -> dict[int, date]:
    spans: dict[int, date] = {}
    for gap in gaps:
        current = spans.get(gap.product_id)
        if current is None or gap.gap_start < current:
            spans[gap.product_id] = gap.gap_start
    return spans


def forward_fill(span_start: date, span_end: date, existing) -> list[FilledDay]:
    """Last observation carried forward over every day of the span.

    ``existing`` yields ``(day, available_qty, avg_cost, created_at)``
    tuples sorted by day.
    """
    observed = {row[0]: row for row in existing}
    filled = []
    last_qty, last_cost = 0, 0.0
    for day in iter_days(span_start, span_end):
        row = observed.get(day)
        if row is not None:
            last_qty, last_cost = int(row[1] or 0), float(row[2] or 0.0)
            filled.append(FilledDay(day, last_qty, last_cost, True, row[3]))
        else:
            filled.append(FilledDay(day, last_qty, last_cost, False))
    return filled


def _load_snapshot_dates(db: Session, product_id: Optional[int]) -> dict[int, list[date]]:
    stmt = select(DailySnapshot.product_id, DailySnapshot.date)
    if product_id is not None:
        stmt = stmt.where(DailySnapshot.product_id == product_id)
    stmt = stmt.order_by(DailySnapshot.product_id, DailySnapshot.date)

    dates_by_product: dict[int, list[date]] = {}
    for row_product_id, row_date in db.execute(stmt):
        dates_by_product.setdefault(row_product_id, []).append(row_date)
    return dates_by_product


def repair_gaps(
    db: Session,
    product_id: Optional[int] = None,
    *,
    today: Optional[date] = None,
) -> GapRepairResult:
    """Fill missing snapshot days; the caller owns the transaction."""
    today = today or ledger_today()
    db.flush()

    dates_by_product = _load_snapshot_dates(db, product_id)
    gaps = detect_gaps(dates_by_product, today)
    result = GapRepairResult(gaps_found=len(gaps))
    if not gaps:
        logger.debug("No snapshot gaps found (product=%s).", product_id)
        return result

    spans = repair_spans(gaps)
    lock_products(db, spans)
    now = utc_now()

    rows = []
    for span_product_id in sorted(spans):
        span_start = spans[span_product_id]
        # Post-dated rows extend the span past today.
        span_end = max(today, dates_by_product[span_product_id][-1])
        captured = db.execute(
            select(
                DailySnapshot.date,
                DailySnapshot.available_qty,
                DailySnapshot.avg_cost,
                DailySnapshot.created_at,
            )
            .where(
                DailySnapshot.product_id == span_product_id,
                DailySnapshot.date >= span_start,
                DailySnapshot.date <= span_end,
            )
            .order_by(DailySnapshot.date)
        ).all()

        db.execute(
            delete(DailySnapshot)
            .where(
                DailySnapshot.product_id == span_product_id,
                DailySnapshot.date >= span_start,
                DailySnapshot.date <= span_end,
            )
            .execution_options(synchronize_session=False)
        )

        for filled in forward_fill(span_start, span_end, captured):
            if not filled.existed:
                result.filled_rows += 1
            rows.append(
                snapshot_row(
                    span_product_id,
                    filled.day,
                    filled.available_qty,
                    filled.avg_cost,
                    now=now,
                    created_at=filled.created_at,
                )
            )

    result.rewritten_rows = upsert_snapshots(db, rows)
    result.products_repaired = len(spans)
    return result


def run_gap_repair(
    product_id: Optional[int] = None,
    *,
    today: Optional[date] = None,
    session_factory=SessionLocal,
) -> GapRepairResult:
    db = session_factory()
    try:
        result = repair_gaps(db, product_id, today=today)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()

    logger.info(
        "Gap repair completed (product=%s): %s",
        product_id if product_id is not None else "all",
        result.summary(),
    )
    return result


__all__ = [
    "FilledDay",
    "GapRepairResult",
    "SnapshotGap",
    "detect_gaps",
    "forward_fill",
    "repair_gaps",
    "repair_spans",
    "run_gap_repair",
]
