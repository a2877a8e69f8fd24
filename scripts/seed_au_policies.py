#!/usr/bin/env python3
"""Seed the Australian NES system leave policies.

Creates the annual and personal/carer's leave policies for full-time and
part-time employees when they are missing. Existing policies are left
untouched, so the script can be re-run safely.

Usage:
    python scripts/seed_au_policies.py
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from hris.database import session_scope  # noqa: E402
from hris.leave.policies import PolicyService  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("seed_au_policies")


async def run() -> int:
    async with session_scope() as session:
        summary = await PolicyService.ensure_default_australian_leave_policies(session)

    logger.info("Created:  %s", ", ".join(summary["created"]) or "-")
    logger.info("Existing: %s", ", ".join(summary["existing"]) or "-")
    for error in summary["errors"]:
        logger.error("Failed:   %s", error)
    return 1 if summary["errors"] else 0


def main():
    argparse.ArgumentParser(
        description="Seed Australian NES system leave policies (idempotent)",
    ).parse_args()
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
