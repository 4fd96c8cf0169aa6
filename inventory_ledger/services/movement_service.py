import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_ledger.core.constants import MAX_RECENT_MOVEMENTS
from inventory_ledger.core.dates import movement_date, to_ledger_time
from inventory_ledger.core.exceptions import InvalidMovementError
from inventory_ledger.models.stock_movement import StockMovement
from inventory_ledger.services.product_locks import lock_product
from inventory_ledger.services.recalculation_service import rebuild_chain

logger = logging.getLogger(__name__)


def record_movement(
    db: Session,
    product_id: int,
    invoice_id: int,
    invoice_date: datetime,
    quantity_change: int,
    unit_cost: Optional[float] = None,
    *,
    today: Optional[date] = None,
    fill_gaps: Optional[bool] = None,
) -> StockMovement:
    """Append the movement of a new stock-affecting invoice line.

    The chain is rebuilt from this invoice, which also covers back-dated
    invoices landing before existing movements. Does not commit.
    """
    if quantity_change is None or int(quantity_change) == 0:
        raise InvalidMovementError("quantity_change must be non-zero.")
    if unit_cost is not None and unit_cost < 0:
        raise InvalidMovementError("unit_cost must be non-negative.")
    if not isinstance(invoice_date, datetime):
        raise InvalidMovementError("invoice_date must be a datetime.")
    invoice_date = to_ledger_time(invoice_date)

    with db.begin_nested():
        lock_product(db, product_id)
        movement = StockMovement(
            product_id=product_id,
            invoice_id=invoice_id,
            invoice_date=invoice_date,
            quantity_before=0,
            quantity_change=int(quantity_change),
            quantity_after=0,
            unit_cost=float(unit_cost) if unit_cost is not None else None,
        )
        db.add(movement)
        db.flush()
        rebuild_chain(
            db,
            product_id,
            invoice_id,
            movement_date(movement.invoice_date),
            today=today,
            fill_gaps=fill_gaps,
        )

    logger.info(
        "Recorded movement %s for product %s (invoice %s): %+d -> qty %s, avg %.4f",
        movement.id,
        product_id,
        invoice_id,
        movement.quantity_change,
        movement.quantity_after,
        movement.avg_cost_after or 0.0,
    )
    return movement


def movements_for_product(db: Session, product_id: int) -> list[StockMovement]:
    """The product's chain in canonical order."""
    rows = db.execute(
        select(StockMovement)
        .where(StockMovement.product_id == product_id)
        .order_by(StockMovement.invoice_id, StockMovement.id)
        .execution_options(populate_existing=True)
    ).scalars().all()
    return list(rows)


def recent_movements(
    db: Session,
    limit: int,
    *,
    product_id: Optional[int] = None,
) -> list[StockMovement]:
    limit = max(1, min(int(limit), MAX_RECENT_MOVEMENTS))
    stmt = select(StockMovement)
    if product_id is not None:
        stmt = stmt.where(StockMovement.product_id == product_id)
    rows = db.execute(
        stmt.order_by(StockMovement.invoice_date.desc(), StockMovement.id.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    ).scalars().all()
    return list(rows)


def chain_breaks(db: Session, product_id: int) -> list[tuple[int, int]]:
    """Pairs of movement ids whose quantities do not link up."""
    breaks = []
    previous = None
    for movement in movements_for_product(db, product_id):
        if previous is not None and movement.quantity_before != previous.quantity_after:
            breaks.append((previous.id, movement.id))
        previous = movement
    return breaks


__all__ = [
    "chain_breaks",
    "movements_for_product",
    "recent_movements",
    "record_movement",
]
