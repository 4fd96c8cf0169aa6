import argparse
import logging

from inventory_ledger.config import get_settings
from inventory_ledger.core.logging import setup_logging
from inventory_ledger.scheduler.daily_jobs import build_schedulers
from inventory_ledger.scheduler.job_scheduler import ensure_scheduler_schema, run_all_forever

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Run the daily snapshot and gap repair jobs.")
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Run each due job once and exit.",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()
    settings = get_settings()

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled by SCHEDULER_ENABLED.")
        return

    ensure_scheduler_schema()
    schedulers = build_schedulers(settings)

    if args.run_once:
        for scheduler in schedulers:
            ran = scheduler.run_once()
            logger.info("Job %s %s.", scheduler.job_name, "ran" if ran else "skipped")
        return

    run_all_forever(schedulers, poll_seconds=settings.SCHEDULER_POLL_SECONDS)


if __name__ == "__main__":
    main()
