import importlib

from inventory_ledger.models.daily_snapshot import DailySnapshot
from inventory_ledger.models.job_log import JobLog
from inventory_ledger.models.product import Product
from inventory_ledger.models.stock_movement import StockMovement


def import_all_models() -> None:
    for module_name in (
        "inventory_ledger.models.daily_snapshot",
        "inventory_ledger.models.job_log",
        "inventory_ledger.models.product",
        "inventory_ledger.models.stock_movement",
    ):
        importlib.import_module(module_name)


__all__ = [
    "DailySnapshot",
    "JobLog",
    "Product",
    "StockMovement",
    "import_all_models",
]
