#!/usr/bin/env python3
"""
Recalculate ratings by resetting a scope and replaying its matches.

Whole season:
    python scripts/recalculate_ratings.py --season-id 3

One division / player / match:
    python scripts/recalculate_ratings.py --season-id 3 --division-id 12
    python scripts/recalculate_ratings.py --season-id 3 --player-id 7
    python scripts/recalculate_ratings.py --season-id 3 --match-id 1042

Preview (projects the new ratings, writes nothing):
    python scripts/recalculate_ratings.py --season-id 3 --preview
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from courtrank.config import settings
from courtrank.db import get_session
from courtrank.errors import CourtRankError
from courtrank.rating.replay import SeasonReplayCoordinator


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reset and replay ratings for a season, division, player or match.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--season-id", type=int, required=True, help="Season to recalculate.")
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--division-id", type=int, default=None, help="Only this division.")
    scope.add_argument("--player-id", type=int, default=None, help="Only this player's ratings.")
    scope.add_argument("--match-id", type=int, default=None, help="Only this match's players.")
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Project the recalculation without writing anything.",
    )
    parser.add_argument("--admin", type=int, default=None, help="Admin user ID for the audit trail.")
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write a JSON summary to this path on completion.",
    )
    return parser


def _scope(args: argparse.Namespace) -> tuple[str, int]:
    if args.division_id is not None:
        return "division", args.division_id
    if args.player_id is not None:
        return "player", args.player_id
    if args.match_id is not None:
        return "match", args.match_id
    return "season", args.season_id


def main() -> int:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = _build_parser().parse_args()
    scope, target_id = _scope(args)

    print(f"RECALCULATE  scope={scope}  target={target_id}  preview={args.preview}  "
          f"started={_utc_now_iso()}")
    print("-" * 60)

    t_start = perf_counter()
    try:
        with get_session() as session:
            coordinator = SeasonReplayCoordinator(session)
            if args.preview:
                payload = coordinator.preview_recalculation(scope, target_id, season_id=args.season_id)
            else:
                payload = coordinator.recalculate(
                    scope, target_id, season_id=args.season_id, admin_id=args.admin
                ).to_dict()
    except CourtRankError as exc:
        print(f"ERROR: {exc}")
        return 1
    elapsed = perf_counter() - t_start

    print("-" * 60)
    if args.preview:
        print(f"Affected players:   {payload['affected_players']}")
        print(f"Affected matches:   {payload['affected_matches']}")
        for player in payload["players"]:
            print(
                f"  user {player['user_id']:>6} {player['game_type']:<8} "
                f"{player['current_rating']:>9} -> {player['projected_rating']:>9} "
                f"({player['delta']:+})"
            )
    else:
        print(f"Status:             {payload['status']}")
        print(f"Ratings reset:      {payload['ratings_reset']}")
        print(f"Matches processed:  {payload['matches_processed']}")
        print(f"Matches failed:     {payload['matches_failed']}")
        print(f"Rating updates:     {payload['ratings_updated']}")
        for failure in payload["failures"]:
            print(f"  match {failure['match_id']}: {failure['error']}")
    print(f"Elapsed:            {elapsed:.2f}s")

    if args.metrics_json:
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(
            json.dumps({**payload, "elapsed_s": round(elapsed, 3)}, indent=2, default=str) + "\n",
            encoding="utf-8",
        )

    if not args.preview and payload["status"] == "failed":
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
