from inventory_ledger.routers.admin import router as admin_router
from inventory_ledger.routers.health import router as health_router
from inventory_ledger.routers.inventory import router as inventory_router
from inventory_ledger.routers.ledger import router as ledger_router
from inventory_ledger.routers.movements import router as movements_router

__all__ = [
    "admin_router",
    "health_router",
    "inventory_router",
    "ledger_router",
    "movements_router",
]
