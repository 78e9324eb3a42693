"""
Season export - all ratings and standings of a season as one document.

CSV layout (two sections, each with its own header row):

    RATINGS
    userId,userName,email,division,gameType,currentRating,matchesPlayed,isProvisional,peakRating,lowestRating
    ...

    STANDINGS
    userId,userName,division,rank,wins,losses,totalPoints,setsWon,setsLost
    ...

JSON carries the same rows under "ratings" and "standings", plus the
season and the export timestamp.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from courtrank.db.models import Division, PlayerRating, User, utcnow
from courtrank.db.store import RatingStore
from courtrank.errors import SeasonNotFoundError

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")

RATING_COLUMNS = [
    "userId",
    "userName",
    "email",
    "division",
    "gameType",
    "currentRating",
    "matchesPlayed",
    "isProvisional",
    "peakRating",
    "lowestRating",
]

STANDING_COLUMNS = [
    "userId",
    "userName",
    "division",
    "rank",
    "wins",
    "losses",
    "totalPoints",
    "setsWon",
    "setsLost",
]


@dataclass
class SeasonExport:
    data: str
    filename: str
    content_type: str


def export_filename(season_name: str, fmt: str, when: datetime) -> str:
    """'Spring League 2026' -> 'Spring_League_2026_export_2026-04-01.csv'"""
    base = "_".join(season_name.split())
    return f"{base}_export_{when.strftime('%Y-%m-%d')}.{fmt}"


def _number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class SeasonExporter:
    """Builds season exports from the rating store."""

    def __init__(self, session: Session, store: Optional[RatingStore] = None):
        self.session = session
        self.store = store or RatingStore(session)

    def generate_season_export(
        self,
        season_id: int,
        fmt: str = "csv",
        now: Optional[datetime] = None,
    ) -> SeasonExport:
        """
        Export a season.

        Raises:
            SeasonNotFoundError: unknown season
            ValueError: unknown format
        """
        fmt = fmt.lower()
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"format must be one of {EXPORT_FORMATS}, got '{fmt}'")

        season = self.store.get_season(season_id)
        if season is None:
            raise SeasonNotFoundError(season_id)

        now = now or utcnow()
        ratings = self.rating_rows(season_id)
        standings = self.standing_rows(season_id)

        if fmt == "json":
            data = json.dumps(
                {
                    "season": {"id": season.id, "name": season.name},
                    "exportedAt": now.isoformat(),
                    "ratings": ratings,
                    "standings": standings,
                },
                indent=2,
            )
            content_type = "application/json"
        else:
            data = self._to_csv(ratings, standings)
            content_type = "text/csv"

        logger.info(
            "Exported season %s as %s (%d ratings, %d standings)",
            season_id,
            fmt,
            len(ratings),
            len(standings),
        )
        return SeasonExport(
            data=data,
            filename=export_filename(season.name, fmt, now),
            content_type=content_type,
        )

    def rating_rows(self, season_id: int) -> list[dict[str, Any]]:
        rows = (
            self.session.query(PlayerRating, User, Division)
            .join(User, User.id == PlayerRating.user_id)
            .outerjoin(Division, Division.id == PlayerRating.division_id)
            .filter(PlayerRating.season_id == season_id)
            .order_by(PlayerRating.game_type, PlayerRating.current_rating.desc(), PlayerRating.id)
            .all()
        )
        return [
            {
                "userId": user.id,
                "userName": user.name,
                "email": user.email,
                "division": division.name if division else None,
                "gameType": rating.game_type,
                "currentRating": _number(rating.current_rating),
                "matchesPlayed": rating.matches_played,
                "isProvisional": rating.is_provisional,
                "peakRating": _number(rating.peak_rating),
                "lowestRating": _number(rating.lowest_rating),
            }
            for rating, user, division in rows
        ]

    def standing_rows(self, season_id: int) -> list[dict[str, Any]]:
        return [
            {
                "userId": standing.user_id,
                "userName": standing.user.name if standing.user else None,
                "division": standing.division.name if standing.division else None,
                "rank": standing.rank,
                "wins": standing.wins,
                "losses": standing.losses,
                "totalPoints": standing.total_points,
                "setsWon": standing.sets_won,
                "setsLost": standing.sets_lost,
            }
            for standing in self.store.standings(season_id)
        ]

    @staticmethod
    def _to_csv(ratings: list[dict[str, Any]], standings: list[dict[str, Any]]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        buffer.write("RATINGS\n")
        writer.writerow(RATING_COLUMNS)
        for row in ratings:
            writer.writerow(["" if row[c] is None else row[c] for c in RATING_COLUMNS])

        buffer.write("\nSTANDINGS\n")
        writer.writerow(STANDING_COLUMNS)
        for row in standings:
            writer.writerow(["" if row[c] is None else row[c] for c in STANDING_COLUMNS])

        return buffer.getvalue()


def generate_season_export(session: Session, season_id: int, fmt: str = "csv") -> SeasonExport:
    return SeasonExporter(session).generate_season_export(season_id, fmt)
