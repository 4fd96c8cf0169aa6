import json
import logging
from datetime import datetime, timezone
from typing import Optional

from inventory_ledger.config import get_settings

# Attributes passed through ``extra=`` that structured output keeps.
CONTEXT_FIELDS = ("job_name", "run_date", "product_id", "invoice_id")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = str(value) if field == "run_date" else value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once per process from settings."""
    settings = get_settings()
    level_name = (level or settings.LOG_LEVEL).upper()

    handler = logging.StreamHandler()
    if settings.LOG_JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s - %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)
    # Per-statement engine logging drowns the ledger logs.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
