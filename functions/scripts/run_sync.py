"""
Runs the Firestore <-> Sheets sync once or on an interval.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from dataclasses import asdict
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from agency.config import get_settings
from agency.dependencies import get_sync_service
from agency.sync import SYNC_TARGETS

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Agency Firestore/Sheets sync")
    parser.add_argument(
        "--target",
        choices=SYNC_TARGETS,
        default="full",
        help="Which sync step to run",
    )
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=settings.sync_interval_seconds,
        help="Seconds between sync runs",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    sync = get_sync_service()
    if args.once:
        result = sync.run_target(args.target)
        logger.info("Sync result: %s", asdict(result))
        return 0 if result.success else 1

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
    try:
        if args.target == "full":
            sync.run_forever(args.interval_seconds, stop_event)
        else:
            while not stop_event.is_set():
                result = sync.run_target(args.target)
                logger.info("Sync result: %s", asdict(result))
                stop_event.wait(args.interval_seconds)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
