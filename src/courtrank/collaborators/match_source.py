"""
Read-only access to league matches for the rating engine.

Replay correctness depends on ordering: completed matches are always
returned by completed_at ascending, ties broken by match id. Matches
without a completed_at sort last.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Protocol

from sqlalchemy.orm import Session, selectinload

from courtrank.db.models import LeagueMatch, MatchParticipant
from courtrank.statuses import FORMAT_ONE_SET, MATCH_COMPLETED, TEAM1, TEAM2


@dataclass(frozen=True)
class MatchRecord:
    """A league match as the rating engine sees it."""

    id: int
    season_id: int
    division_id: Optional[int]
    game_type: str
    is_one_set: bool
    is_walkover: bool
    outcome: Optional[str]
    completed_at: Optional[datetime]
    team1: tuple[int, ...]
    team2: tuple[int, ...]
    status: str = MATCH_COMPLETED

    @property
    def user_ids(self) -> tuple[int, ...]:
        return self.team1 + self.team2

    @classmethod
    def from_model(cls, match: LeagueMatch) -> "MatchRecord":
        participants = sorted(match.participants, key=lambda p: p.id or 0)
        return cls(
            id=match.id,
            season_id=match.season_id,
            division_id=match.division_id,
            game_type=match.match_type,
            is_one_set=match.format == FORMAT_ONE_SET,
            is_walkover=bool(match.is_walkover),
            outcome=match.outcome,
            completed_at=match.completed_at,
            team1=tuple(p.user_id for p in participants if p.team == TEAM1),
            team2=tuple(p.user_id for p in participants if p.team == TEAM2),
            status=match.status,
        )


class MatchSource(Protocol):
    """Where the replay coordinator reads matches from."""

    def completed_matches(
        self,
        season_id: int,
        division_id: Optional[int] = None,
        user_ids: Optional[Iterable[int]] = None,
    ) -> list[MatchRecord]:
        ...

    def get_match(self, match_id: int) -> Optional[MatchRecord]:
        ...

    def count_matches(
        self,
        season_id: int,
        statuses: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> int:
        ...


class SqlMatchSource:
    """MatchSource over the matches / match_participants tables."""

    def __init__(self, session: Session):
        self.session = session

    def completed_matches(
        self,
        season_id: int,
        division_id: Optional[int] = None,
        user_ids: Optional[Iterable[int]] = None,
    ) -> list[MatchRecord]:
        query = (
            self.session.query(LeagueMatch)
            .options(selectinload(LeagueMatch.participants))
            .filter(
                LeagueMatch.season_id == season_id,
                LeagueMatch.status == MATCH_COMPLETED,
            )
        )
        if division_id is not None:
            query = query.filter(LeagueMatch.division_id == division_id)
        if user_ids is not None:
            involved = (
                self.session.query(MatchParticipant.match_id)
                .filter(MatchParticipant.user_id.in_(list(user_ids)))
            )
            query = query.filter(LeagueMatch.id.in_(involved))

        query = query.order_by(
            LeagueMatch.completed_at.is_(None),
            LeagueMatch.completed_at.asc(),
            LeagueMatch.id.asc(),
        )
        return [MatchRecord.from_model(m) for m in query.all()]

    def get_match(self, match_id: int) -> Optional[MatchRecord]:
        match = self.session.get(LeagueMatch, match_id)
        if match is None:
            return None
        return MatchRecord.from_model(match)

    def count_matches(
        self,
        season_id: int,
        statuses: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> int:
        query = self.session.query(LeagueMatch).filter(LeagueMatch.season_id == season_id)
        if statuses is not None:
            query = query.filter(LeagueMatch.status.in_(list(statuses)))
        if exclude is not None:
            query = query.filter(LeagueMatch.status.notin_(list(exclude)))
        return query.count()
