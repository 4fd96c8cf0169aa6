from typing import List, Optional

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from inventory_ledger.core.constants import DEFAULT_RECENT_MOVEMENTS, MAX_RECENT_MOVEMENTS
from inventory_ledger.dependencies import get_db
from inventory_ledger.schemas.ledger import StockMovementRead
from inventory_ledger.services.movement_service import recent_movements

router = APIRouter(prefix="/stock-movements", tags=["Stock Movements"])


@router.get("/recent", response_model=List[StockMovementRead])
def recent_default(product_id: Optional[int] = None, db: Session = Depends(get_db)):
    return recent_movements(db, DEFAULT_RECENT_MOVEMENTS, product_id=product_id)


@router.get("/recent/{limit}", response_model=List[StockMovementRead])
def recent(
    limit: int = Path(..., ge=1, le=MAX_RECENT_MOVEMENTS),
    product_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return recent_movements(db, limit, product_id=product_id)


__all__ = ["router"]
