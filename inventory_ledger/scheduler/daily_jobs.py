from typing import Optional

from inventory_ledger.config import Settings, get_settings
from inventory_ledger.core.constants import JOB_DAILY_SNAPSHOT, JOB_GAP_REPAIR
from inventory_ledger.database import SessionLocal
from inventory_ledger.scheduler.job_scheduler import (
    DailyJobScheduler,
    SchedulerConfig,
    parse_time,
)
from inventory_ledger.services.gap_repair_service import run_gap_repair
from inventory_ledger.services.snapshot_service import run_daily_snapshot


def _config(settings: Settings, job_name: str, run_after: str) -> SchedulerConfig:
    return SchedulerConfig(
        job_name=job_name,
        run_after_time=parse_time(run_after),
        poll_seconds=settings.SCHEDULER_POLL_SECONDS,
        heartbeat_seconds=settings.SCHEDULER_HEARTBEAT_SECONDS,
        stale_seconds=settings.SCHEDULER_STALE_SECONDS,
        retry_seconds=settings.SCHEDULER_RETRY_SECONDS,
        max_retries=settings.SCHEDULER_MAX_RETRIES,
        timezone_mode=settings.SCHEDULER_TZ,
    )


def build_schedulers(settings: Optional[Settings] = None, *, session_factory=SessionLocal) -> list[DailyJobScheduler]:
    """Carry-forward first, gap repair afterwards as the daily safety net."""
    settings = settings or get_settings()
    return [
        DailyJobScheduler(
            config=_config(settings, JOB_DAILY_SNAPSHOT, settings.SNAPSHOT_RUN_AFTER),
            job_func=lambda: run_daily_snapshot(session_factory=session_factory),
            session_factory=session_factory,
        ),
        DailyJobScheduler(
            config=_config(settings, JOB_GAP_REPAIR, settings.GAP_REPAIR_RUN_AFTER),
            job_func=lambda: run_gap_repair(session_factory=session_factory),
            session_factory=session_factory,
        ),
    ]

