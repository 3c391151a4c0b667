#!/usr/bin/env python3
"""
LocalPing Retention Sweep
=========================

Runs one retention sweep (tiering, age cutoff, per-target cap) and prints
the summary as JSON. Intended for cron on installs that disable the
built-in schedule (RETENTION_SCHEDULE_ENABLED=false).

Usage:
    python scripts/run_retention.py                 # live sweep
    python scripts/run_retention.py --dry-run       # report only
    python scripts/run_retention.py --db sqlite:///./data/localping.db

Exit status is 1 when the sweep could not run or any target or step failed.

Requirements:
    Run from the backend/ directory (or set PYTHONPATH).
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

# ── Ensure we can import project modules ────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR))

from config import settings  # noqa: E402
from database import Database  # noqa: E402
from services.data_retention import RetentionOrchestrator  # noqa: E402
from utils.logging_utils import setup_logging, get_logger  # noqa: E402

logger = get_logger("run_retention")


async def run(db_url: str, dry_run: bool) -> int:
    db = Database(db_url)
    try:
        await db.create_all()
        result = await RetentionOrchestrator(db).run_retention_sweep(dry_run=dry_run)
    finally:
        await db.dispose()

    print(json.dumps(asdict(result), indent=2, default=str))

    if result.per_target_errors or result.step_errors:
        return 1
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one LocalPing retention sweep")
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Report what would be deleted without deleting anything",
    )
    parser.add_argument(
        "--db", default=settings.DATABASE_URL,
        help=f"Database URL (default: {settings.DATABASE_URL})",
    )
    args = parser.parse_args()

    # Logs on stderr so stdout carries only the JSON summary
    setup_logging(settings.LOG_LEVEL, stream=sys.stderr)

    try:
        return asyncio.run(run(args.db, args.dry_run))
    except Exception as e:
        logger.error(f"Retention sweep failed: {e}", exc_info=True)
        print(json.dumps({"error": str(e)}))
        return 1


if __name__ == "__main__":
    sys.exit(main())
