import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_ledger.core.exceptions import (
    InvalidMovementError,
    LedgerError,
    MovementNotFoundError,
    ProductNotFoundError,
)
from inventory_ledger.dependencies import get_db, require_auth
from inventory_ledger.schemas.ledger import (
    MovementCreate,
    RecalculateRequest,
    RecalculationRead,
    StockMovementRead,
)
from inventory_ledger.services.movement_service import record_movement
from inventory_ledger.services.recalculation_service import recalculate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ledger", tags=["Ledger"])


def ledger_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (ProductNotFoundError, MovementNotFoundError)):
        return HTTPException(status_code=404, detail={"code": exc.code, "message": str(exc)})
    if isinstance(exc, InvalidMovementError):
        return HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)})
    if isinstance(exc, LedgerError):
        return HTTPException(status_code=409, detail={"code": exc.code, "message": str(exc)})
    return HTTPException(status_code=500, detail="Ledger update failed; no changes were saved.")


@router.post("/movements", response_model=StockMovementRead)
def create_movement(
    payload: MovementCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    try:
        movement = record_movement(
            db,
            payload.product_id,
            payload.invoice_id,
            payload.invoice_date,
            payload.quantity_change,
            payload.unit_cost,
        )
        db.commit()
    except (LedgerError, SQLAlchemyError) as exc:
        db.rollback()
        if isinstance(exc, SQLAlchemyError):
            logger.exception("Recording movement failed for product %s", payload.product_id)
        raise ledger_http_error(exc) from exc
    return movement


@router.post("/recalculate", response_model=RecalculationRead)
def recalculate_movement(
    payload: RecalculateRequest,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    try:
        result = recalculate(
            db,
            payload.product_id,
            payload.invoice_id,
            payload.action,
            payload.new_quantity_change,
            payload.new_unit_cost,
            movement_id=payload.movement_id,
        )
        db.commit()
    except (LedgerError, SQLAlchemyError) as exc:
        db.rollback()
        if isinstance(exc, SQLAlchemyError):
            logger.exception("Recalculation failed for product %s", payload.product_id)
        raise ledger_http_error(exc) from exc
    return result


__all__ = ["ledger_http_error", "router"]
