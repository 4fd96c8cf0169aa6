from inventory_ledger.services.gap_repair_service import repair_gaps, run_gap_repair
from inventory_ledger.services.movement_service import record_movement
from inventory_ledger.services.recalculation_service import recalculate
from inventory_ledger.services.snapshot_service import carry_forward_snapshots, run_daily_snapshot
from inventory_ledger.services.snapshot_store import position_as_of

__all__ = [
    "carry_forward_snapshots",
    "position_as_of",
    "recalculate",
    "record_movement",
    "repair_gaps",
    "run_daily_snapshot",
    "run_gap_repair",
]
