"""
RatingStore - the repository the rating services persist through.

Wraps a Session with the handful of queries the rating, lock, replay and
export code share, so none of them build their own filters for
(user, season, game type) lookups.

The store never commits. Single-record mutations flush so that ids are
assigned and constraint errors surface early; the caller's session scope
decides when to commit.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from courtrank.db.models import (
    Division,
    DivisionStanding,
    PlayerRating,
    RatingHistory,
    RatingParameters,
    Season,
    SeasonLock,
    utcnow,
)


class RatingStore:
    """Repository for ratings, history, parameter versions and season locks."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # League context
    # ------------------------------------------------------------------

    def get_season(self, season_id: int) -> Optional[Season]:
        return self.session.get(Season, season_id)

    def get_division(self, division_id: int) -> Optional[Division]:
        return self.session.get(Division, division_id)

    def standings(
        self,
        season_id: int,
        division_id: Optional[int] = None,
    ) -> list[DivisionStanding]:
        """Standings for a season (or one division), best rank first."""
        query = self.session.query(DivisionStanding).filter(
            DivisionStanding.season_id == season_id
        )
        if division_id is not None:
            query = query.filter(DivisionStanding.division_id == division_id)
        return query.order_by(
            DivisionStanding.division_id,
            DivisionStanding.rank,
            DivisionStanding.id,
        ).all()

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def get_rating(
        self,
        user_id: int,
        season_id: int,
        game_type: str,
    ) -> Optional[PlayerRating]:
        return (
            self.session.query(PlayerRating)
            .filter(
                PlayerRating.user_id == user_id,
                PlayerRating.season_id == season_id,
                PlayerRating.game_type == game_type,
            )
            .first()
        )

    def ratings_for_season(
        self,
        season_id: int,
        *,
        division_id: Optional[int] = None,
        user_ids: Optional[Iterable[int]] = None,
        game_type: Optional[str] = None,
    ) -> list[PlayerRating]:
        """Ratings in a season, optionally narrowed, in stable id order."""
        query = self.session.query(PlayerRating).filter(PlayerRating.season_id == season_id)
        if division_id is not None:
            query = query.filter(PlayerRating.division_id == division_id)
        if user_ids is not None:
            query = query.filter(PlayerRating.user_id.in_(list(user_ids)))
        if game_type is not None:
            query = query.filter(PlayerRating.game_type == game_type)
        return query.order_by(PlayerRating.id).all()

    def add_rating(self, rating: PlayerRating) -> PlayerRating:
        self.session.add(rating)
        self.session.flush()
        return rating

    def append_history(
        self,
        rating: PlayerRating,
        *,
        rating_before: Decimal,
        rating_after: Decimal,
        rd_before: Decimal,
        rd_after: Decimal,
        reason: str,
        match_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> RatingHistory:
        """Append one ledger row. The delta is always after minus before."""
        entry = RatingHistory(
            player_rating_id=rating.id,
            match_id=match_id,
            rating_before=rating_before,
            rating_after=rating_after,
            delta=rating_after - rating_before,
            rd_before=rd_before,
            rd_after=rd_after,
            reason=reason,
            notes=notes,
            created_at=utcnow(),
        )
        self.session.add(entry)
        return entry

    def history(self, rating_id: int, limit: Optional[int] = None) -> list[RatingHistory]:
        """History rows for a rating, newest first."""
        query = (
            self.session.query(RatingHistory)
            .filter(RatingHistory.player_rating_id == rating_id)
            .order_by(RatingHistory.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def history_for_match(self, match_id: int) -> list[RatingHistory]:
        return (
            self.session.query(RatingHistory)
            .filter(RatingHistory.match_id == match_id)
            .order_by(RatingHistory.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Parameter versions
    # ------------------------------------------------------------------

    def active_parameters(self, season_id: int) -> Optional[RatingParameters]:
        return (
            self.session.query(RatingParameters)
            .filter(
                RatingParameters.season_id == season_id,
                RatingParameters.is_active.is_(True),
            )
            .order_by(RatingParameters.version.desc())
            .first()
        )

    def parameters_at(self, season_id: int, when: datetime) -> Optional[RatingParameters]:
        """Latest version created at or before ``when``."""
        return (
            self.session.query(RatingParameters)
            .filter(
                RatingParameters.season_id == season_id,
                RatingParameters.created_at <= when,
            )
            .order_by(RatingParameters.version.desc())
            .first()
        )

    def parameter_versions(self, season_id: int) -> list[RatingParameters]:
        return (
            self.session.query(RatingParameters)
            .filter(RatingParameters.season_id == season_id)
            .order_by(RatingParameters.version)
            .all()
        )

    def add_parameters(self, record: RatingParameters) -> RatingParameters:
        """Deactivate every version of the season, then insert ``record`` active."""
        self.session.query(RatingParameters).filter(
            RatingParameters.season_id == record.season_id,
            RatingParameters.is_active.is_(True),
        ).update({RatingParameters.is_active: False}, synchronize_session="fetch")
        record.is_active = True
        self.session.add(record)
        self.session.flush()
        return record

    # ------------------------------------------------------------------
    # Season locks
    # ------------------------------------------------------------------

    def get_lock(self, season_id: int, *, for_update: bool = False) -> Optional[SeasonLock]:
        """
        Fetch the season's lock row.

        With ``for_update`` the row is read with SELECT ... FOR UPDATE so a
        concurrent lock/unlock or guarded mutation waits for this
        transaction (a no-op on SQLite).
        """
        query = self.session.query(SeasonLock).filter(SeasonLock.season_id == season_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_or_create_lock(self, season_id: int) -> SeasonLock:
        lock = self.get_lock(season_id, for_update=True)
        if lock is None:
            lock = SeasonLock(season_id=season_id, is_locked=False)
            self.session.add(lock)
            self.session.flush()
        return lock
