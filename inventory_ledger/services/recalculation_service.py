"""Weighted-average recalculation of a product's movement chain.

An edit or delete of a past invoice line invalidates every later movement of
the same product. The chain is walked again from the edited invoice in
canonical order ``(invoice_id, id)``, then the product's daily snapshots from
the invoice date onward are rebuilt from the latest movement of each day.
All of it runs inside one savepoint: the ledger is either fully rewritten or
left exactly as it was.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from inventory_ledger.config import get_settings
from inventory_ledger.core.constants import RecalcAction
from inventory_ledger.core.dates import ledger_today, movement_date
from inventory_ledger.core.exceptions import InvalidMovementError, MovementNotFoundError
from inventory_ledger.models.daily_snapshot import DailySnapshot
from inventory_ledger.models.stock_movement import StockMovement
from inventory_ledger.services.gap_repair_service import GapRepairResult, repair_gaps
from inventory_ledger.services.product_locks import lock_product
from inventory_ledger.services.snapshot_store import snapshot_row, upsert_snapshots, utc_now

logger = logging.getLogger(__name__)


@dataclass
class RecalculationResult:
    product_id: int
    invoice_id: int
    invoice_date: date
    movements_rewritten: int = 0
    snapshots_deleted: int = 0
    snapshots_rebuilt: int = 0
    gap_repair: Optional[GapRepairResult] = None


def next_position(
    quantity_before: int,
    avg_before: float,
    quantity_change: int,
    unit_cost: Optional[float],
) -> tuple[int, float]:
    """Quantity and weighted-average cost right after one movement.

    Only incoming stock with a known unit cost moves the average. A position
    landing exactly on zero keeps its previous average so the next purchase
    has a defined basis. A purchase that leaves the position still negative
    has no meaningful blend and takes the purchase cost.
    """
    quantity_after = quantity_before + quantity_change
    if quantity_change <= 0 or unit_cost is None:
        return quantity_after, avg_before
    if quantity_after == 0:
        return quantity_after, avg_before
    if quantity_after < 0:
        return quantity_after, float(unit_cost)
    blended = quantity_before * avg_before + quantity_change * float(unit_cost)
    return quantity_after, blended / quantity_after


def daily_closing_positions(rows: Iterable, from_date: date) -> dict[date, tuple[int, float]]:
    """Closing (qty, avg_cost) per day from movement rows.

    Rows expose ``id``, ``invoice_id``, ``invoice_date``, ``quantity_after``
    and ``avg_cost_after``. The latest movement of a day wins, ordered by
    invoice date, then invoice id, then row id.
    """
    latest: dict[date, tuple] = {}
    for row in rows:
        day = movement_date(row.invoice_date)
        if day < from_date:
            continue
        key = (row.invoice_date, row.invoice_id, row.id)
        current = latest.get(day)
        if current is None or key > current[0]:
            latest[day] = (key, row.quantity_after, row.avg_cost_after)
    return {
        day: (int(qty or 0), float(avg_cost or 0.0))
        for day, (_key, qty, avg_cost) in sorted(latest.items())
    }


def _baseline(db: Session, product_id: int, invoice_id: int) -> tuple[int, float]:
    row = db.execute(
        select(StockMovement.quantity_after, StockMovement.avg_cost_after)
        .where(
            StockMovement.product_id == product_id,
            StockMovement.invoice_id < invoice_id,
        )
        .order_by(StockMovement.invoice_id.desc(), StockMovement.id.desc())
        .limit(1)
    ).first()
    if row is None:
        return 0, 0.0
    return int(row.quantity_after or 0), float(row.avg_cost_after or 0.0)


def _rewrite_chain(db: Session, product_id: int, invoice_id: int) -> int:
    qty, avg_cost = _baseline(db, product_id, invoice_id)
    movements = db.execute(
        select(StockMovement)
        .where(
            StockMovement.product_id == product_id,
            StockMovement.invoice_id >= invoice_id,
        )
        .order_by(StockMovement.invoice_id, StockMovement.id)
    ).scalars().all()

    for movement in movements:
        movement.quantity_before = qty
        qty, avg_cost = next_position(qty, avg_cost, movement.quantity_change, movement.unit_cost)
        movement.quantity_after = qty
        movement.avg_cost_after = avg_cost
    db.flush()
    return len(movements)


def _rebuild_snapshots(db: Session, product_id: int, from_date: date) -> tuple[int, int]:
    deleted = db.execute(
        delete(DailySnapshot)
        .where(DailySnapshot.product_id == product_id, DailySnapshot.date >= from_date)
        .execution_options(synchronize_session=False)
    ).rowcount

    # One day of slack so timezone conversion cannot drop an edge movement.
    window_start = datetime.combine(from_date - timedelta(days=1), time.min)
    candidates = db.execute(
        select(
            StockMovement.id,
            StockMovement.invoice_id,
            StockMovement.invoice_date,
            StockMovement.quantity_after,
            StockMovement.avg_cost_after,
        ).where(
            StockMovement.product_id == product_id,
            StockMovement.invoice_date >= window_start,
        )
    ).all()

    now = utc_now()
    rows = [
        snapshot_row(product_id, day, qty, avg_cost, now=now)
        for day, (qty, avg_cost) in daily_closing_positions(candidates, from_date).items()
    ]
    rebuilt = upsert_snapshots(db, rows)
    return deleted or 0, rebuilt


def rebuild_chain(
    db: Session,
    product_id: int,
    invoice_id: int,
    from_date: date,
    *,
    today: Optional[date] = None,
    fill_gaps: Optional[bool] = None,
) -> RecalculationResult:
    """Recompute movements from ``invoice_id`` and snapshots from ``from_date``.

    Expects the product lock to be held and the caller to own the savepoint.
    """
    if fill_gaps is None:
        fill_gaps = get_settings().LEDGER_FILL_GAPS_AFTER_RECALC

    result = RecalculationResult(product_id=product_id, invoice_id=invoice_id, invoice_date=from_date)
    db.flush()
    result.movements_rewritten = _rewrite_chain(db, product_id, invoice_id)
    result.snapshots_deleted, result.snapshots_rebuilt = _rebuild_snapshots(db, product_id, from_date)
    if fill_gaps:
        result.gap_repair = repair_gaps(db, product_id, today=today or ledger_today())
    return result


def _find_target(
    db: Session,
    product_id: int,
    invoice_id: int,
    movement_id: Optional[int],
) -> StockMovement:
    stmt = select(StockMovement).where(
        StockMovement.product_id == product_id,
        StockMovement.invoice_id == invoice_id,
    )
    if movement_id is not None:
        stmt = stmt.where(StockMovement.id == movement_id)
    target = db.execute(
        stmt.order_by(StockMovement.id).limit(1)
    ).scalar_one_or_none()
    if target is None:
        raise MovementNotFoundError(product_id, invoice_id, movement_id)
    return target


def _coerce_action(action: Union[RecalcAction, str]) -> RecalcAction:
    try:
        return RecalcAction(action)
    except ValueError as exc:
        raise InvalidMovementError("Unknown recalculation action: {}".format(action)) from exc


def recalculate(
    db: Session,
    product_id: int,
    invoice_id: int,
    action: Union[RecalcAction, str],
    new_quantity_change: Optional[int] = None,
    new_unit_cost: Optional[float] = None,
    *,
    movement_id: Optional[int] = None,
    today: Optional[date] = None,
    fill_gaps: Optional[bool] = None,
) -> RecalculationResult:
    """Apply an invoice-line edit or delete and rebuild everything after it.

    Runs in a savepoint of the caller's transaction and never commits. On
    any error the savepoint is rolled back and the error propagates so the
    caller's invoice change aborts with it.

    For EDIT, ``None`` leaves the corresponding field unchanged. Without
    ``movement_id`` the first movement of the invoice for this product is
    targeted.
    """
    action = _coerce_action(action)
    if action is RecalcAction.EDIT:
        if new_quantity_change is not None and int(new_quantity_change) == 0:
            raise InvalidMovementError("quantity_change must be non-zero.")
        if new_unit_cost is not None and new_unit_cost < 0:
            raise InvalidMovementError("unit_cost must be non-negative.")

    with db.begin_nested():
        lock_product(db, product_id)
        target = _find_target(db, product_id, invoice_id, movement_id)
        from_date = movement_date(target.invoice_date)

        if action is RecalcAction.DELETE:
            db.delete(target)
        else:
            if new_quantity_change is not None:
                target.quantity_change = int(new_quantity_change)
            if new_unit_cost is not None:
                target.unit_cost = float(new_unit_cost)
        db.flush()

        result = rebuild_chain(
            db,
            product_id,
            invoice_id,
            from_date,
            today=today,
            fill_gaps=fill_gaps,
        )

    logger.info(
        "Recalculated product %s after %s of invoice %s: %d movement(s) rewritten, "
        "%d snapshot(s) rebuilt from %s",
        product_id,
        action.value,
        invoice_id,
        result.movements_rewritten,
        result.snapshots_rebuilt,
        from_date.isoformat(),
        extra={"product_id": product_id, "invoice_id": invoice_id},
    )
    return result


__all__ = [
    "RecalculationResult",
    "daily_closing_positions",
    "next_position",
    "rebuild_chain",
    "recalculate",
]
