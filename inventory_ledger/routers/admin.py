import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_ledger.dependencies import get_db, require_auth
from inventory_ledger.models.product import Product
from inventory_ledger.schemas.ledger import (
    GapRepairRead,
    RecomputePositionsRequest,
    RecomputePositionsResponse,
    SnapshotRunRead,
)
from inventory_ledger.services.gap_repair_service import repair_gaps
from inventory_ledger.services.snapshot_service import carry_forward_snapshots

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/recompute-positions", response_model=RecomputePositionsResponse)
def recompute_positions(
    payload: RecomputePositionsRequest,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    if payload.product_id is not None and db.get(Product, payload.product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    try:
        result = repair_gaps(db, payload.product_id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Recompute positions failed (product=%s)", payload.product_id)
        raise HTTPException(status_code=500, detail="Recompute positions failed.") from exc

    scope = "product {}".format(payload.product_id) if payload.product_id is not None else "all products"
    return RecomputePositionsResponse(
        message="Positions recomputed for {} ({} day(s) filled).".format(scope, result.filled_rows),
        product_id=payload.product_id,
        result=GapRepairRead.model_validate(result),
    )


@router.post("/daily-snapshot", response_model=SnapshotRunRead)
def daily_snapshot(db: Session = Depends(get_db), _auth=Depends(require_auth)):
    try:
        result = carry_forward_snapshots(db)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Daily snapshot failed")
        raise HTTPException(status_code=500, detail="Daily snapshot failed.") from exc
    return SnapshotRunRead.model_validate(result)


__all__ = ["router"]
