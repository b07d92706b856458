"""
Validates a JSON file of streamers and prints the report.

The file holds either a list of streamer objects or {"streamers": [...]}.
Keys may be snake_case or camelCase. Exits with 1 when any streamer fails.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.json_utils import convert_keys
from shared.streamer_validator import generate_report, validate_many

logger = logging.getLogger(__name__)


def load_streamers(path: Path) -> list[dict]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("streamers", [])
    if not isinstance(payload, list):
        raise ValueError(f"{path} must contain a list of streamers")
    return [convert_keys(item, "camel_to_snake") for item in payload]


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate streamer records")
    parser.add_argument("path", type=Path, help="JSON file with streamers")
    parser.add_argument(
        "--indent", type=int, default=2, help="Indentation of the printed report"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    streamers = load_streamers(args.path)
    logger.info("Validating %d streamers from %s", len(streamers), args.path)
    batch = validate_many(streamers)
    print(json.dumps(generate_report(batch), indent=args.indent, ensure_ascii=False))
    return 1 if batch.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
