from fastapi import FastAPI

from inventory_ledger.config import Settings, get_settings
from inventory_ledger.core.logging import setup_logging
from inventory_ledger.database import Base, engine, ensure_sqlite_schema
from inventory_ledger.models import import_all_models
from inventory_ledger.routers import (
    admin_router,
    health_router,
    inventory_router,
    ledger_router,
    movements_router,
)

setup_logging()
settings: Settings = get_settings()

import_all_models()
Base.metadata.create_all(bind=engine)
ensure_sqlite_schema()

app = FastAPI(title=settings.APP_NAME)

app.include_router(health_router)
app.include_router(inventory_router)
app.include_router(movements_router)
app.include_router(ledger_router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {"app": settings.APP_NAME, "docs": "/docs", "health": "/health"}


__all__ = ["app", "root"]
