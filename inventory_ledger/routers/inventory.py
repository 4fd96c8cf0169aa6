from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from inventory_ledger.core.dates import ledger_today
from inventory_ledger.dependencies import get_db
from inventory_ledger.models.product import Product
from inventory_ledger.schemas.ledger import (
    DailySnapshotRead,
    ProductPositionRead,
    SnapshotListRead,
)
from inventory_ledger.services.snapshot_store import (
    low_stock,
    position_as_of,
    snapshot_history,
    snapshots_for_date,
)

router = APIRouter(prefix="/inventory", tags=["Inventory"])


def _snapshot_list(rows, day: Optional[date] = None) -> SnapshotListRead:
    return SnapshotListRead(
        snapshot_date=day,
        snapshots=[DailySnapshotRead.model_validate(row) for row in rows],
    )


@router.get("/daily", response_model=SnapshotListRead)
def daily_snapshots(day: Optional[date] = Query(None, alias="date"), db: Session = Depends(get_db)):
    day = day or ledger_today()
    return _snapshot_list(snapshots_for_date(db, day), day)


@router.get("/today", response_model=SnapshotListRead)
def today_snapshots(db: Session = Depends(get_db)):
    day = ledger_today()
    return _snapshot_list(snapshots_for_date(db, day), day)


@router.get("/low-stock/{threshold}", response_model=SnapshotListRead)
def low_stock_snapshots(
    threshold: int,
    day: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
):
    day = day or ledger_today()
    return _snapshot_list(low_stock(db, threshold, day), day)


@router.get("/history", response_model=SnapshotListRead)
def history(
    product_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: int = Query(1000, ge=1, le=10000),
    db: Session = Depends(get_db),
):
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must be on or before end.")
    rows = snapshot_history(db, product_id=product_id, start=start, end=end, limit=limit)
    return _snapshot_list(rows)


@router.get("/products/{product_id}/position", response_model=ProductPositionRead)
def product_position(
    product_id: int,
    as_of: Optional[date] = None,
    db: Session = Depends(get_db),
):
    if db.get(Product, product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    as_of = as_of or ledger_today()
    snapshot = position_as_of(db, product_id, as_of)
    if snapshot is None:
        return ProductPositionRead(product_id=product_id, as_of=as_of)
    return ProductPositionRead(
        product_id=product_id,
        as_of=as_of,
        snapshot_date=snapshot.date,
        available_qty=snapshot.available_qty,
        avg_cost=snapshot.avg_cost,
    )


__all__ = ["router"]
