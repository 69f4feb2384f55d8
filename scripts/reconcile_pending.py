#!/usr/bin/env python3
"""Republish settlement messages for allocations stuck in pending.

Allocations stay pending when their settlement message could not be
published. Run this periodically (cron, a scheduler) against the
PostgreSQL store; connection settings come from the environment.
"""

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from split_engine.config import EngineConfig
from split_engine.distributor import TransactionDistributor
from split_engine.logging import setup_logging
from split_engine.publishers import KafkaPublisher
from split_engine.store.postgres import PostgresSplitStore

logger = logging.getLogger(__name__)


def main() -> int:
    """Run one reconciliation sweep; exit code 1 if any republish failed."""
    parser = argparse.ArgumentParser(description="Republish pending split allocations")
    parser.add_argument(
        "--older-than",
        type=float,
        default=None,
        help="Minimum age in seconds (default: RECONCILE_AFTER_SECONDS env)",
    )
    parser.add_argument(
        "--create-schema", action="store_true", help="Create the split tables first"
    )
    args = parser.parse_args()

    config = EngineConfig.from_env()
    setup_logging(config.log_level, config.log_format)

    older_than = timedelta(seconds=args.older_than) if args.older_than is not None else None

    store = PostgresSplitStore(config.postgres.connection_string)
    try:
        publisher = KafkaPublisher(
            config.kafka, timeout_seconds=config.settlement.publish_timeout_seconds
        )
        try:
            if args.create_schema:
                store.create_schema()
            distributor = TransactionDistributor(store, publisher, config.settlement)
            report = distributor.reconcile_pending(older_than=older_than)
        finally:
            publisher.close()
    finally:
        store.close()

    logger.info(
        "Republished %d of %d pending allocations", report.republished, report.scanned
    )
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
