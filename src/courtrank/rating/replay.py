"""
Season replay - recalculate ratings from scratch for a scope.

Every scope runs the same two steps:

1. Reset the ratings in scope to the season's initial rating/RD, with a
   history row capturing each pre-reset value (ADMIN_RESET for a whole
   season, RECALCULATION otherwise).
2. Replay the completed matches that touch those ratings, strictly by
   completed_at (ties by match id). K-factor and provisional status depend
   on matches played so far, so order changes results.

Both steps use the season's active parameters, so recalculating after a
parameter change applies the new values to every match already played.

Scopes:
- season: every rating and every completed match of the season
- division: the division's ratings and its matches
- player: all of one player's ratings in the season and their matches
- match: the match participants' ratings (for the match's game type)
  and every completed match involving them; a match voided since it was
  applied drops out of their ratings this way

Only ratings in scope are written. An opponent outside the scope is read
as they were before that match (from their history row for the match), so
a narrow replay never double-counts a result for them.

Transactions: the reset commits, then every match commits on its own. A
failing match is rolled back, recorded on the result and skipped; the
rest of the scope still replays. A crash mid-replay leaves a partial
state that a re-run repairs, since the reset starts over.

Usage:
    coordinator = SeasonReplayCoordinator(session)
    result = coordinator.recalculate_season(season_id=3, admin_id=1)
    if result.status != "success":
        print(result.failures)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from sqlalchemy.orm import Session

from courtrank.collaborators.match_source import MatchRecord, MatchSource, SqlMatchSource
from courtrank.db.models import PlayerRating, utcnow
from courtrank.db.store import RatingStore
from courtrank.errors import (
    DivisionNotFoundError,
    MatchNotFoundError,
    RatingNotFoundError,
    SeasonNotFoundError,
)
from courtrank.rating.calculator import MatchOutcome, RatingEngine, RatingSnapshot, to_decimal
from courtrank.rating.locks import SeasonLockService
from courtrank.rating.params import RatingConfig, RatingParams
from courtrank.rating.service import MATCH_REASONS, RatingService
from courtrank.statuses import REASON_ADMIN_RESET, REASON_MANUAL_ADJUSTMENT, REASON_RECALCULATION

logger = logging.getLogger(__name__)

ReplayScope = Literal["season", "division", "player", "match"]
ReplayStatus = Literal["success", "partial", "failed"]
REPLAY_SCOPES: tuple[str, ...] = ("season", "division", "player", "match")

# Ratings are keyed by (user_id, game_type) within one season
RatingKey = tuple[int, str]


@dataclass
class ReplayResult:
    """Normalized result of a recalculation."""

    scope: str
    target_id: int
    season_id: int
    started_at: datetime
    ended_at: Optional[datetime] = None
    ratings_reset: int = 0
    matches_processed: int = 0
    ratings_updated: int = 0
    failures: list[tuple[int, str]] = field(default_factory=list)

    @property
    def status(self) -> ReplayStatus:
        if not self.failures:
            return "success"
        if self.matches_processed == 0:
            return "failed"
        return "partial"

    @property
    def matches_failed(self) -> int:
        return len(self.failures)

    @property
    def duration_s(self) -> float:
        end = self.ended_at or self.started_at
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "target_id": self.target_id,
            "season_id": self.season_id,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_s": self.duration_s,
            "ratings_reset": self.ratings_reset,
            "matches_processed": self.matches_processed,
            "matches_failed": self.matches_failed,
            "ratings_updated": self.ratings_updated,
            "failures": [{"match_id": m, "error": e} for m, e in self.failures],
        }


@dataclass
class ReplayPlan:
    """What a scope resets and replays."""

    scope: str
    target_id: int
    season_id: int
    ratings: list[PlayerRating]
    matches: list[MatchRecord]
    reason: str

    @property
    def keys(self) -> set[RatingKey]:
        return {(r.user_id, r.game_type) for r in self.ratings}


class SeasonReplayCoordinator:
    """Resets and replays ratings for a season, division, player or match."""

    def __init__(
        self,
        session: Session,
        store: Optional[RatingStore] = None,
        match_source: Optional[MatchSource] = None,
        config: Optional[RatingConfig] = None,
        locks: Optional[SeasonLockService] = None,
        service: Optional[RatingService] = None,
        engine: Optional[RatingEngine] = None,
    ):
        self.session = session
        self.store = store or RatingStore(session)
        self.match_source = match_source or SqlMatchSource(session)
        self.config = config or RatingConfig(session, self.store, self.match_source)
        self.locks = locks or SeasonLockService(session, self.store, self.match_source)
        self.engine = engine or RatingEngine()
        self.service = service or RatingService(
            session,
            store=self.store,
            config=self.config,
            engine=self.engine,
            locks=self.locks,
            match_source=self.match_source,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def recalculate_season(self, season_id: int, admin_id: Optional[int] = None) -> ReplayResult:
        return self._run(self._plan("season", season_id), admin_id)

    def recalculate_division(self, division_id: int, admin_id: Optional[int] = None) -> ReplayResult:
        return self._run(self._plan("division", division_id), admin_id)

    def recalculate_player(
        self,
        user_id: int,
        season_id: int,
        admin_id: Optional[int] = None,
    ) -> ReplayResult:
        return self._run(self._plan("player", user_id, season_id=season_id), admin_id)

    def recalculate_match(self, match_id: int, admin_id: Optional[int] = None) -> ReplayResult:
        return self._run(self._plan("match", match_id), admin_id)

    def recalculate(
        self,
        scope: str,
        target_id: int,
        season_id: Optional[int] = None,
        admin_id: Optional[int] = None,
    ) -> ReplayResult:
        """Dispatch by scope name (used by the CLI)."""
        return self._run(self._plan(scope, target_id, season_id=season_id), admin_id)

    def preview_recalculation(
        self,
        scope: str,
        target_id: int,
        season_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Project a recalculation without writing anything.

        Replays the scope on in-memory snapshots and reports, per rating,
        the current and projected values.
        """
        plan = self._plan(scope, target_id, season_id=season_id)
        params = self.config.get_active_parameters(plan.season_id)
        initial = self._initial_snapshot(params)

        projected: dict[RatingKey, RatingSnapshot] = {
            key: initial(key[0]) for key in plan.keys
        }
        failures: list[tuple[int, str]] = []
        replayed = 0
        for match in plan.matches:
            try:
                live = {
                    user_id: projected[(user_id, match.game_type)]
                    for user_id in match.user_ids
                    if (user_id, match.game_type) in projected
                }
                update = self._compute(match, live, params)
            except Exception as exc:
                failures.append((match.id, str(exc)))
                continue
            for player_update in update.updates:
                key = (player_update.user_id, match.game_type)
                if key in projected:
                    projected[key] = projected[key].after(player_update)
            replayed += 1

        players = []
        for rating in plan.ratings:
            current = to_decimal(rating.current_rating)
            after = projected[(rating.user_id, rating.game_type)]
            players.append({
                "user_id": rating.user_id,
                "game_type": rating.game_type,
                "current_rating": current,
                "projected_rating": after.rating,
                "delta": after.rating - current,
                "projected_matches_played": after.matches_played,
            })

        return {
            "scope": plan.scope,
            "target_id": plan.target_id,
            "season_id": plan.season_id,
            "projected": True,
            "affected_players": len({r.user_id for r in plan.ratings}),
            "affected_ratings": len(plan.ratings),
            "affected_matches": len(plan.matches),
            "matches_replayable": replayed,
            "failures": [{"match_id": m, "error": e} for m, e in failures],
            "players": players,
        }

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _plan(self, scope: str, target_id: int, season_id: Optional[int] = None) -> ReplayPlan:
        if scope == "season":
            if self.store.get_season(target_id) is None:
                raise SeasonNotFoundError(target_id)
            return ReplayPlan(
                scope=scope,
                target_id=target_id,
                season_id=target_id,
                ratings=self.store.ratings_for_season(target_id),
                matches=self.match_source.completed_matches(target_id),
                reason=REASON_ADMIN_RESET,
            )

        if scope == "division":
            division = self.store.get_division(target_id)
            if division is None:
                raise DivisionNotFoundError(target_id)
            return ReplayPlan(
                scope=scope,
                target_id=target_id,
                season_id=division.season_id,
                ratings=self.store.ratings_for_season(division.season_id, division_id=target_id),
                matches=self.match_source.completed_matches(
                    division.season_id, division_id=target_id
                ),
                reason=REASON_RECALCULATION,
            )

        if scope == "player":
            if season_id is None:
                raise ValueError("season_id is required for a player recalculation")
            if self.store.get_season(season_id) is None:
                raise SeasonNotFoundError(season_id)
            ratings = self.store.ratings_for_season(season_id, user_ids=[target_id])
            return self._narrow_plan(scope, target_id, season_id, ratings)

        if scope == "match":
            match = self.match_source.get_match(target_id)
            if match is None:
                raise MatchNotFoundError(target_id)
            ratings = self.store.ratings_for_season(
                match.season_id,
                user_ids=match.user_ids,
                game_type=match.game_type,
            )
            return self._narrow_plan(scope, target_id, match.season_id, ratings)

        raise ValueError(f"scope must be one of {REPLAY_SCOPES}, got '{scope}'")

    def _narrow_plan(
        self,
        scope: str,
        target_id: int,
        season_id: int,
        ratings: list[PlayerRating],
    ) -> ReplayPlan:
        keys = {(r.user_id, r.game_type) for r in ratings}
        candidates = self.match_source.completed_matches(
            season_id, user_ids={user_id for user_id, _ in keys}
        )
        matches = [
            m for m in candidates
            if any((user_id, m.game_type) in keys for user_id in m.user_ids)
        ]
        return ReplayPlan(
            scope=scope,
            target_id=target_id,
            season_id=season_id,
            ratings=ratings,
            matches=matches,
            reason=REASON_RECALCULATION,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run(self, plan: ReplayPlan, admin_id: Optional[int]) -> ReplayResult:
        self.locks.ensure_unlocked(plan.season_id, "recalculate ratings")

        result = ReplayResult(
            scope=plan.scope,
            target_id=plan.target_id,
            season_id=plan.season_id,
            started_at=utcnow(),
        )
        logger.info(
            "Recalculating %s %s (season %s): %d ratings, %d matches, admin %s",
            plan.scope,
            plan.target_id,
            plan.season_id,
            len(plan.ratings),
            len(plan.matches),
            admin_id,
        )

        params = self.config.get_active_parameters(plan.season_id)
        notes = f"Reset for {plan.scope} recalculation ({plan.scope} {plan.target_id})"
        if admin_id is not None:
            notes += f" by admin {admin_id}"
        for rating in plan.ratings:
            self.service.reset_rating(rating, params, plan.reason, notes)
        self.session.commit()
        result.ratings_reset = len(plan.ratings)

        rows: dict[RatingKey, PlayerRating] = {
            (r.user_id, r.game_type): r for r in plan.ratings
        }
        for match in plan.matches:
            try:
                live = {
                    user_id: rows[(user_id, match.game_type)]
                    for user_id in match.user_ids
                    if (user_id, match.game_type) in rows
                }
                update = self._compute(
                    match,
                    {u: RatingSnapshot.from_model(r) for u, r in live.items()},
                    params,
                )
                written = self.service.persist_match_update(match, update, live)
                self.session.commit()
            except Exception as exc:
                self.session.rollback()
                result.failures.append((match.id, str(exc)))
                logger.error(
                    "Replay of match %s failed (season %s): %s",
                    match.id,
                    plan.season_id,
                    exc,
                )
                continue
            result.matches_processed += 1
            result.ratings_updated += written

        result.ended_at = utcnow()
        logger.info(
            "Recalculated %s %s: %s, %d matches processed, %d failed, %d rating updates",
            plan.scope,
            plan.target_id,
            result.status,
            result.matches_processed,
            result.matches_failed,
            result.ratings_updated,
        )
        return result

    def _compute(
        self,
        match: MatchRecord,
        live: dict[int, RatingSnapshot],
        params: RatingParams,
    ):
        """
        Compute one match's update.

        ``live`` holds the snapshots of in-scope players; everyone else is
        read as they were just before this match.
        """
        def snapshot(user_id: int) -> Optional[RatingSnapshot]:
            if user_id in live:
                return live[user_id]
            return self._historical_snapshot(user_id, match, params)

        return self.engine.compute_match_update(
            MatchOutcome.from_record(match),
            [snapshot(u) for u in match.team1],
            [snapshot(u) for u in match.team2],
            params,
        )

    def _historical_snapshot(
        self,
        user_id: int,
        match: MatchRecord,
        params: RatingParams,
    ) -> RatingSnapshot:
        rating = self.store.get_rating(user_id, match.season_id, match.game_type)
        if rating is None:
            raise RatingNotFoundError(user_id, match.season_id, match.game_type)

        applied = [
            h for h in self.store.history_for_match(match.id)
            if h.player_rating_id == rating.id and h.reason in MATCH_REASONS
        ]
        if not applied:
            return RatingSnapshot.from_model(rating)
        before = applied[-1]
        played = self._matches_played_before(rating, before.id)
        return RatingSnapshot(
            user_id=user_id,
            rating=to_decimal(before.rating_before),
            rd=to_decimal(before.rd_before),
            matches_played=played,
            is_provisional=played < params.provisional_threshold,
        )

    def _matches_played_before(self, rating: PlayerRating, history_id: int) -> int:
        """Matches counted on ``rating`` just before history row ``history_id``."""
        played = 0
        for entry in reversed(self.store.history(rating.id)):
            if entry.id >= history_id:
                break
            if entry.reason in MATCH_REASONS:
                played += 1
            elif entry.reason in (REASON_ADMIN_RESET, REASON_RECALCULATION):
                played = 0
            elif entry.reason == REASON_MANUAL_ADJUSTMENT and entry.match_id is not None:
                # Reversal of a match
                played = max(0, played - 1)
        return played

    @staticmethod
    def _initial_snapshot(params: RatingParams):
        def build(user_id: int) -> RatingSnapshot:
            initial = to_decimal(params.initial_rating)
            return RatingSnapshot(
                user_id=user_id,
                rating=initial,
                rd=to_decimal(params.initial_rd),
                matches_played=0,
                is_provisional=params.provisional_threshold > 0,
                peak_rating=initial,
                lowest_rating=initial,
            )

        return build
