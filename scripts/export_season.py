#!/usr/bin/env python3
"""
Export a season's ratings and standings.

    python scripts/export_season.py --season-id 3 --format csv
    python scripts/export_season.py --season-id 3 --format json --output exports/
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
from courtrank.rating.export import EXPORT_FORMATS, SeasonExporter


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export all ratings and standings of a season.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--season-id", type=int, required=True)
    parser.add_argument("--format", choices=EXPORT_FORMATS, default="csv")
    parser.add_argument(
        "--output",
        default=".",
        help="Directory (or file path) to write to. Default: current directory.",
    )
    return parser


def main() -> int:
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    args = _build_parser().parse_args()

    try:
        with get_session() as session:
            export = SeasonExporter(session).generate_season_export(args.season_id, args.format)
    except CourtRankError as exc:
        print(f"ERROR: {exc}")
        return 1

    target = Path(args.output)
    if target.is_dir() or not target.suffix:
        target.mkdir(parents=True, exist_ok=True)
        target = target / export.filename
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(export.data, encoding="utf-8")

    print(f"Wrote {target}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
