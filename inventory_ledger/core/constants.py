from enum import Enum


class RecalcAction(str, Enum):
    EDIT = "edit"
    DELETE = "delete"


JOB_DAILY_SNAPSHOT = "daily-stock-snapshot"
JOB_GAP_REPAIR = "gap-repair"

DEFAULT_RECENT_MOVEMENTS = 50
MAX_RECENT_MOVEMENTS = 500
