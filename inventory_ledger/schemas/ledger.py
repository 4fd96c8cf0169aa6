from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from inventory_ledger.core.constants import RecalcAction


class StockMovementRead(BaseModel):
    id: int
    product_id: int
    invoice_id: int
    invoice_date: datetime
    quantity_before: int
    quantity_change: int
    quantity_after: int
    unit_cost: Optional[float] = None
    avg_cost_after: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class DailySnapshotRead(BaseModel):
    product_id: int
    date: date
    available_qty: int
    avg_cost: float
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MovementCreate(BaseModel):
    product_id: int
    invoice_id: int
    invoice_date: datetime
    quantity_change: int = Field(description="Signed; positive is stock in.")
    unit_cost: Optional[float] = Field(default=None, ge=0)


class RecalculateRequest(BaseModel):
    product_id: int
    invoice_id: int
    action: RecalcAction
    new_quantity_change: Optional[int] = None
    new_unit_cost: Optional[float] = Field(default=None, ge=0)
    movement_id: Optional[int] = None


class GapRepairRead(BaseModel):
    filled_rows: int
    rewritten_rows: int
    products_repaired: int
    gaps_found: int

    model_config = ConfigDict(from_attributes=True)


class RecalculationRead(BaseModel):
    product_id: int
    invoice_id: int
    invoice_date: date
    movements_rewritten: int
    snapshots_deleted: int
    snapshots_rebuilt: int
    gap_repair: Optional[GapRepairRead] = None

    model_config = ConfigDict(from_attributes=True)


class RecomputePositionsRequest(BaseModel):
    product_id: Optional[int] = None


class RecomputePositionsResponse(BaseModel):
    success: bool = True
    message: str
    product_id: Optional[int] = None
    result: GapRepairRead


class SnapshotRunRead(BaseModel):
    snapshot_date: date
    processed: int
    skipped: int

    model_config = ConfigDict(from_attributes=True)


class ProductPositionRead(BaseModel):
    product_id: int
    as_of: date
    snapshot_date: Optional[date] = None
    available_qty: int = 0
    avg_cost: float = 0.0


class SnapshotListRead(BaseModel):
    snapshot_date: Optional[date] = None
    snapshots: List[DailySnapshotRead] = Field(default_factory=list)
