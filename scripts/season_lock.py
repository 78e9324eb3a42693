#!/usr/bin/env python3
"""
Lock, unlock or inspect a season's rating lock.

    python scripts/season_lock.py status --season-id 3
    python scripts/season_lock.py lock --season-id 3 --admin 1 --notes "Season final"
    python scripts/season_lock.py unlock --season-id 3 --admin 1
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from courtrank.config import settings
from courtrank.db import get_session
from courtrank.errors import CourtRankError
from courtrank.rating.locks import SeasonLockService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage season rating locks.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("action", choices=["lock", "unlock", "status"])
    parser.add_argument("--season-id", type=int, required=True)
    parser.add_argument("--admin", type=int, default=None, help="Admin user ID.")
    parser.add_argument("--notes", default=None)
    return parser


def main() -> int:
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    args = _build_parser().parse_args()

    try:
        with get_session() as session:
            locks = SeasonLockService(session)
            if args.action == "lock":
                locks.lock_season(args.season_id, args.admin, args.notes)
            elif args.action == "unlock":
                locks.unlock_season(args.season_id, args.admin, args.notes)
            status = locks.lock_status(args.season_id)
    except CourtRankError as exc:
        print(f"ERROR: {exc}")
        return 1

    state = "LOCKED" if status["is_locked"] else "unlocked"
    print(f"Season {args.season_id}: {state}")
    if status["locked_at"]:
        print(f"  locked at {status['locked_at']} by admin {status['locked_by']}")
    if status["notes"]:
        print(f"  notes: {status['notes']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
