#!/usr/bin/env python3
"""Recalculate stored leave balance snapshots.

Walks every active employee (optionally within one entity), recomputes
accrual and usage per leave category and writes the snapshot rows. One
failing employee does not stop the run.

Usage:
    python scripts/recalculate_balances.py
    python scripts/recalculate_balances.py --entity-id 6f1c...   # one entity
    python scripts/recalculate_balances.py --as-of 2026-06-30    # balances at a date

Exit codes:
    0 = all employees recalculated
    1 = one or more employees failed
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Optional

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hris.database import session_scope  # noqa: E402
from hris.leave.balances import BalanceService, BatchProgress  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("recalculate_balances")


def _log_progress(progress: BatchProgress) -> None:
    logger.info(
        "Progress %d/%d (ok=%d failed=%d)",
        progress.processed, progress.total, progress.succeeded, progress.failed,
    )


async def run(entity_id: Optional[uuid.UUID], as_of: Optional[date]) -> int:
    async with session_scope() as session:
        result = await BalanceService.recalculate_all_balances_for_entity(
            session, entity_id, on_progress=_log_progress, as_of=as_of,
        )

    logger.info(
        "Recalculated %d of %d employees (%d failed)",
        result.processed, result.total, result.failed,
    )
    for error in result.errors:
        logger.error("  %s: %s", error.get("employee_id"), error.get("error"))
    return 0 if result.success else 1


def main():
    parser = argparse.ArgumentParser(
        description="Recalculate stored leave balances for active employees",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--entity-id", type=uuid.UUID,
                        help="Restrict to one company entity")
    parser.add_argument("--as-of", type=str,
                        help="Calculation date (YYYY-MM-DD, default: today)")
    args = parser.parse_args()

    as_of = datetime.strptime(args.as_of, "%Y-%m-%d").date() if args.as_of else None
    sys.exit(asyncio.run(run(args.entity_id, as_of)))


if __name__ == "__main__":
    main()
