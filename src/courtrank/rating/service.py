"""
Rating service - persists what the rating engine computes.

Every change to a PlayerRating goes through this module and leaves a
RatingHistory row behind, so a player's history always explains their
current rating:

    sum(history.delta) == current_rating - initial_rating

Mutations are guarded by the season lock and only flush; the caller's
session scope commits (or the replay coordinator, which commits per
match).

Usage:
    with get_session() as session:
        service = RatingService(session)
        service.create_initial_rating(user_id=7, season_id=3, game_type="SINGLES",
                                      estimate=score_tennis(answers))
        service.record_match(match_id=1042)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from courtrank.collaborators.match_source import MatchRecord, MatchSource, SqlMatchSource
from courtrank.collaborators.notifications import NotificationSink, notify_safely
from courtrank.db.models import PlayerRating, RatingHistory, utcnow
from courtrank.db.store import RatingStore
from courtrank.errors import (
    DivisionNotFoundError,
    MatchNotCompletedError,
    MatchNotFoundError,
    RatingNotFoundError,
)
from courtrank.rating.calculator import (
    MatchOutcome,
    MatchUpdate,
    RatingEngine,
    RatingSnapshot,
    to_decimal,
)
from courtrank.rating.locks import SeasonLockService
from courtrank.rating.params import RatingConfig, RatingParams
from courtrank.rating.questionnaire import SOURCE_DUPR, QuestionnaireEstimate, score_questionnaire
from courtrank.statuses import (
    MATCH_COMPLETED,
    REASON_INITIAL_PLACEMENT,
    REASON_MANUAL_ADJUSTMENT,
    REASON_MATCH_LOSS,
    REASON_MATCH_WIN,
    normalize_game_type,
)

logger = logging.getLogger(__name__)

MATCH_REASONS = (REASON_MATCH_WIN, REASON_MATCH_LOSS)


class RatingService:
    """Creates, updates, adjusts and reverses player ratings."""

    def __init__(
        self,
        session: Session,
        store: Optional[RatingStore] = None,
        config: Optional[RatingConfig] = None,
        engine: Optional[RatingEngine] = None,
        locks: Optional[SeasonLockService] = None,
        match_source: Optional[MatchSource] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.session = session
        self.store = store or RatingStore(session)
        self.match_source = match_source or SqlMatchSource(session)
        self.config = config or RatingConfig(session, self.store, self.match_source)
        self.engine = engine or RatingEngine()
        self.locks = locks or SeasonLockService(session, self.store, self.match_source)
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_initial_rating(
        self,
        user_id: int,
        season_id: int,
        game_type: str,
        estimate: Any = None,
        division_id: Optional[int] = None,
    ) -> PlayerRating:
        """
        Create a player's rating from a questionnaire estimate.

        Idempotent: an existing rating for (user, season, game type) is
        returned unchanged. The new rating gets an INITIAL_PLACEMENT
        history row from the season's initial rating to the placement.
        """
        game_type = normalize_game_type(game_type)
        existing = self.store.get_rating(user_id, season_id, game_type)
        if existing is not None:
            return existing

        if isinstance(estimate, QuestionnaireEstimate):
            estimate = estimate.for_game_type(game_type)

        self.locks.ensure_unlocked(season_id, "create ratings")
        params = self.config.get_active_parameters(season_id)
        placement = self.engine.initial_placement(estimate, params)
        baseline = to_decimal(params.initial_rating)
        baseline_rd = to_decimal(params.initial_rd)

        rating = self.store.add_rating(
            PlayerRating(
                user_id=user_id,
                season_id=season_id,
                division_id=division_id,
                game_type=game_type,
                current_rating=placement.rating,
                rating_deviation=placement.rd,
                matches_played=0,
                is_provisional=params.provisional_threshold > 0,
                peak_rating=placement.rating,
                peak_rating_date=utcnow(),
                lowest_rating=placement.rating,
            )
        )
        self.store.append_history(
            rating,
            rating_before=baseline,
            rating_after=placement.rating,
            rd_before=baseline_rd,
            rd_after=placement.rd,
            reason=REASON_INITIAL_PLACEMENT,
            notes=_placement_note(estimate),
        )
        self.session.flush()
        logger.info(
            "Initial %s rating %s (RD %s) for user %s in season %s",
            game_type,
            placement.rating,
            placement.rd,
            user_id,
            season_id,
        )
        return rating

    def create_rating_from_questionnaire(
        self,
        user_id: int,
        season_id: int,
        game_type: str,
        sport: str,
        answers: dict[str, Any],
        division_id: Optional[int] = None,
    ) -> PlayerRating:
        """
        Score an onboarding questionnaire for ``sport`` and place the player.

        Doubles ratings start from the sport's doubles estimate where it
        has one (pickleball).

        Raises:
            ValueError: If the sport has no questionnaire.
        """
        estimate = score_questionnaire(sport, answers)
        logger.debug(
            "%s questionnaire for user %s: %s (%s confidence, source %s)",
            sport,
            user_id,
            estimate.rating,
            estimate.confidence,
            estimate.source,
        )
        return self.create_initial_rating(
            user_id, season_id, game_type, estimate=estimate, division_id=division_id
        )

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def record_match(self, match_id: int) -> MatchUpdate:
        """
        Live flow: apply one just-completed match.

        Participants without a rating yet get a default placement first.
        Call once per match; use the replay coordinator to redo a match.
        """
        match = self.match_source.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        if match.status != MATCH_COMPLETED:
            raise MatchNotCompletedError(match_id)
        return self.apply_match(match, create_missing=True)

    def apply_match(
        self,
        match: MatchRecord,
        params: Optional[RatingParams] = None,
        *,
        create_missing: bool = False,
        guard: bool = True,
    ) -> MatchUpdate:
        """
        Compute and persist one completed match's rating changes.

        Uses the season's active parameters unless ``params`` is given.

        Raises:
            SeasonLockedError: the season is locked (when ``guard``)
            RatingNotFoundError: a participant has no rating and
                ``create_missing`` is False
            InvalidOutcomeError: the match has no clear winner
        """
        if guard:
            self.locks.ensure_unlocked(match.season_id)
        if params is None:
            params = self.config.get_active_parameters(match.season_id)

        rows: dict[int, PlayerRating] = {}
        for user_id in match.user_ids:
            row = self.store.get_rating(user_id, match.season_id, match.game_type)
            if row is None and create_missing:
                row = self.create_initial_rating(
                    user_id, match.season_id, match.game_type, division_id=match.division_id
                )
            if row is None:
                raise RatingNotFoundError(user_id, match.season_id, match.game_type)
            rows[user_id] = row

        update = self.engine.compute_match_update(
            MatchOutcome.from_record(match),
            [RatingSnapshot.from_model(rows[u]) for u in match.team1],
            [RatingSnapshot.from_model(rows[u]) for u in match.team2],
            params,
        )
        self.persist_match_update(match, update, rows)
        logger.debug("Applied match %s: %r", match.id, update)
        return update

    def persist_match_update(
        self,
        match: MatchRecord,
        update: MatchUpdate,
        rows: dict[int, PlayerRating],
    ) -> int:
        """
        Write a computed update onto rating rows, one history row each.

        Players of the match missing from ``rows`` are left untouched.
        Returns the number of ratings written.
        """
        when = match.completed_at or utcnow()
        written = 0
        for player_update in update.updates:
            row = rows.get(player_update.user_id)
            if row is None:
                continue
            row.current_rating = player_update.rating_after
            row.rating_deviation = player_update.rd_after
            row.matches_played = player_update.matches_played
            row.is_provisional = player_update.is_provisional
            row.peak_rating = player_update.peak_rating
            if player_update.new_peak:
                row.peak_rating_date = when
            row.lowest_rating = player_update.lowest_rating
            row.last_match_id = match.id
            row.last_updated_at = utcnow()

            self.store.append_history(
                row,
                rating_before=player_update.rating_before,
                rating_after=player_update.rating_after,
                rd_before=player_update.rd_before,
                rd_after=player_update.rd_after,
                reason=player_update.reason,
                match_id=match.id,
                notes="Walkover" if match.is_walkover else None,
            )
            written += 1

        self.session.flush()
        return written

    # ------------------------------------------------------------------
    # Admin corrections
    # ------------------------------------------------------------------

    def adjust_rating(
        self,
        user_id: int,
        season_id: int,
        game_type: str,
        new_rating,
        reason: str,
        admin_id: Optional[int] = None,
    ) -> PlayerRating:
        """
        Set a rating by hand, recording a MANUAL_ADJUSTMENT.

        Raises:
            SeasonLockedError: the season is locked
            RatingNotFoundError: the player has no such rating
        """
        game_type = normalize_game_type(game_type)
        self.locks.ensure_unlocked(season_id, "adjust ratings")

        rating = self.store.get_rating(user_id, season_id, game_type)
        if rating is None:
            raise RatingNotFoundError(user_id, season_id, game_type)

        before = to_decimal(rating.current_rating)
        after = to_decimal(new_rating)
        rd = to_decimal(rating.rating_deviation)

        self._set_rating(rating, after)
        self.store.append_history(
            rating,
            rating_before=before,
            rating_after=after,
            rd_before=rd,
            rd_after=rd,
            reason=REASON_MANUAL_ADJUSTMENT,
            notes=f"{reason} (admin {admin_id})" if admin_id is not None else reason,
        )
        self.session.flush()

        logger.info(
            "Admin %s adjusted %s rating of user %s in season %s: %s -> %s (%s)",
            admin_id,
            game_type,
            user_id,
            season_id,
            before,
            after,
            reason,
        )
        notify_safely(
            self.notifier,
            [user_id],
            "Rating adjusted",
            f"Your {game_type.lower()} rating was adjusted from {before} to {after}: {reason}",
        )
        return rating

    def reverse_match(
        self,
        match_id: int,
        admin_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> list[RatingHistory]:
        """
        Restore every rating a match touched to its pre-match values.

        Appends a MANUAL_ADJUSTMENT row per rating; the original match
        rows stay untouched. A match that is already reversed is a no-op.
        Ratings are restored, not replayed: matches applied after this one
        keep their effect only through a recalculation.

        Raises:
            MatchNotFoundError: unknown match
            SeasonLockedError: the match's season is locked
        """
        match = self.match_source.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        self.locks.ensure_unlocked(match.season_id, "reverse matches")

        latest: dict[int, RatingHistory] = {}
        for entry in self.store.history_for_match(match_id):
            latest[entry.player_rating_id] = entry

        reversals = []
        for entry in latest.values():
            if entry.reason not in MATCH_REASONS:
                # Last row for this match is already a reversal
                continue
            rating = entry.player_rating
            before = to_decimal(rating.current_rating)
            rd_before = to_decimal(rating.rating_deviation)

            rating.current_rating = entry.rating_before
            rating.rating_deviation = entry.rd_before
            rating.matches_played = max(0, rating.matches_played - 1)
            params = self.config.get_active_parameters(match.season_id)
            rating.is_provisional = (
                rating.is_provisional or rating.matches_played < params.provisional_threshold
            )
            rating.lowest_rating = min(to_decimal(rating.lowest_rating), entry.rating_before)
            rating.last_updated_at = utcnow()

            reversals.append(
                self.store.append_history(
                    rating,
                    rating_before=before,
                    rating_after=to_decimal(entry.rating_before),
                    rd_before=rd_before,
                    rd_after=to_decimal(entry.rd_before),
                    reason=REASON_MANUAL_ADJUSTMENT,
                    match_id=match_id,
                    notes=f"Reversal of match {match_id}" + (f": {reason}" if reason else ""),
                )
            )

        self.session.flush()
        if reversals:
            logger.info(
                "Admin %s reversed match %s (%d ratings restored)",
                admin_id,
                match_id,
                len(reversals),
            )
        else:
            logger.warning("Match %s has no rating changes to reverse", match_id)
        return reversals

    def reset_rating(
        self,
        rating: PlayerRating,
        params: RatingParams,
        reason: str,
        notes: Optional[str] = None,
    ) -> RatingHistory:
        """
        Put a rating back to the season's starting values.

        The history row captures the pre-reset value so the reset is
        auditable. Not lock-guarded; the replay coordinator guards once
        for the whole scope.
        """
        before = to_decimal(rating.current_rating)
        rd_before = to_decimal(rating.rating_deviation)
        initial = to_decimal(params.initial_rating)
        initial_rd = to_decimal(params.initial_rd)

        rating.current_rating = initial
        rating.rating_deviation = initial_rd
        rating.matches_played = 0
        rating.is_provisional = params.provisional_threshold > 0
        rating.peak_rating = initial
        rating.peak_rating_date = None
        rating.lowest_rating = initial
        rating.last_match_id = None
        rating.last_updated_at = utcnow()

        return self.store.append_history(
            rating,
            rating_before=before,
            rating_after=initial,
            rd_before=rd_before,
            rd_after=initial_rd,
            reason=reason,
            notes=notes,
        )

    def _set_rating(self, rating: PlayerRating, value: Decimal) -> None:
        rating.current_rating = value
        if value > to_decimal(rating.peak_rating):
            rating.peak_rating = value
            rating.peak_rating_date = utcnow()
        if value < to_decimal(rating.lowest_rating):
            rating.lowest_rating = value
        rating.last_updated_at = utcnow()

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def get_rating(self, user_id: int, season_id: int, game_type: str) -> PlayerRating:
        game_type = normalize_game_type(game_type)
        rating = self.store.get_rating(user_id, season_id, game_type)
        if rating is None:
            raise RatingNotFoundError(user_id, season_id, game_type)
        return rating

    def get_history(
        self,
        user_id: int,
        season_id: int,
        game_type: str,
        limit: Optional[int] = 50,
    ) -> list[RatingHistory]:
        """History of a rating, newest first."""
        rating = self.get_rating(user_id, season_id, game_type)
        return self.store.history(rating.id, limit=limit)

    def division_player_ratings(
        self,
        division_id: int,
        game_type: Optional[str] = None,
    ) -> list[PlayerRating]:
        """Ratings of a division, highest first."""
        division = self.store.get_division(division_id)
        if division is None:
            raise DivisionNotFoundError(division_id)
        ratings = self.store.ratings_for_season(
            division.season_id,
            division_id=division_id,
            game_type=normalize_game_type(game_type) if game_type else None,
        )
        return sorted(ratings, key=lambda r: (-to_decimal(r.current_rating), r.id))

    def division_summary(self, division_id: int) -> dict[str, Any]:
        """Aggregate rating figures for a division."""
        ratings = self.division_player_ratings(division_id)
        if not ratings:
            return {
                "division_id": division_id,
                "total_players": 0,
                "average_rating": None,
                "highest_rating": None,
                "lowest_rating": None,
                "provisional_players": 0,
            }
        values = [to_decimal(r.current_rating) for r in ratings]
        return {
            "division_id": division_id,
            "total_players": len(ratings),
            "average_rating": to_decimal(sum(values) / len(values)),
            "highest_rating": max(values),
            "lowest_rating": min(values),
            "provisional_players": sum(1 for r in ratings if r.is_provisional),
        }


def _placement_note(estimate: Any) -> str:
    if estimate is None:
        return "Default placement"
    if isinstance(estimate, QuestionnaireEstimate) and estimate.source == SOURCE_DUPR:
        return "DUPR placement"
    return "Questionnaire placement"
