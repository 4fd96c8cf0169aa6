import argparse
import logging

from inventory_ledger.core.logging import setup_logging
from inventory_ledger.scheduler.job_scheduler import ensure_scheduler_schema
from inventory_ledger.services.gap_repair_service import run_gap_repair

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(
        description="Forward-fill missing daily stock rows and rebuild positions."
    )
    parser.add_argument(
        "--product-id",
        type=int,
        default=None,
        help="Limit the repair to one product (default: all products).",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()
    ensure_scheduler_schema()
    result = run_gap_repair(args.product_id)
    logger.info("Recompute positions finished: %s", result.summary())


if __name__ == "__main__":
    main()
