from datetime import datetime, timezone

from fastapi import APIRouter

from inventory_ledger.config import get_settings
from inventory_ledger.core.dates import ledger_today

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check():
    settings = get_settings()
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "time": datetime.now(timezone.utc).isoformat(),
        "ledger_date": ledger_today().isoformat(),
    }
