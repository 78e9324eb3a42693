"""
Rating calculator for league matches.

Implements an Elo update with a Glicko-1 expected score:
- Per-player K-factor (new vs established players)
- Game-type and format weights (doubles, one-set matches)
- Fixed deltas for walkovers
- Rating deviation (RD) that shrinks with every match
- Proper decimal handling for accuracy

The formulas:
  Expected score: E_A = 1 / (1 + 10^(-g(RD_c) * (R_A - R_B) / 400))
  Combined RD:    RD_c = sqrt(RD_A^2 + RD_B^2)
  New rating:     R'_A = R_A + weight * K_A * (actual - expected)
  New RD:         RD'  = max(50, RD * 0.9)

For doubles, each side's rating is the mean of its two players and its RD
the root-mean-square of theirs. Every player still gets their own K, so a
new player paired with an established one moves further.

Everything here is pure: no session, no clock. Given the same snapshots,
outcome and parameters the result is always identical.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from courtrank.errors import InvalidOutcomeError, RatingNotFoundError
from courtrank.rating import constants as C
from courtrank.rating.params import RatingParams
from courtrank.statuses import (
    DOUBLES,
    GAME_TYPES,
    REASON_MATCH_LOSS,
    REASON_MATCH_WIN,
    TEAM1,
    TEAM2,
    TEAM_SIZE,
)

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert to a 2-dp Decimal, the storage precision of ratings."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RatingSnapshot:
    """Pre-match state of one player's rating."""

    user_id: int
    rating: Decimal
    rd: Decimal
    matches_played: int = 0
    is_provisional: bool = True
    peak_rating: Optional[Decimal] = None
    lowest_rating: Optional[Decimal] = None

    @classmethod
    def from_model(cls, rating) -> "RatingSnapshot":
        return cls(
            user_id=rating.user_id,
            rating=to_decimal(rating.current_rating),
            rd=to_decimal(rating.rating_deviation),
            matches_played=rating.matches_played,
            is_provisional=rating.is_provisional,
            peak_rating=to_decimal(rating.peak_rating),
            lowest_rating=to_decimal(rating.lowest_rating),
        )

    def after(self, update: "PlayerUpdate") -> "RatingSnapshot":
        """Snapshot with a computed update applied."""
        return RatingSnapshot(
            user_id=self.user_id,
            rating=update.rating_after,
            rd=update.rd_after,
            matches_played=update.matches_played,
            is_provisional=update.is_provisional,
            peak_rating=update.peak_rating,
            lowest_rating=update.lowest_rating,
        )


@dataclass(frozen=True)
class MatchOutcome:
    """What the calculator needs to know about a finished match."""

    winner: Optional[str]  # 'team1' or 'team2'
    game_type: str
    is_one_set: bool = False
    is_walkover: bool = False
    match_id: Optional[int] = None

    @classmethod
    def from_record(cls, record) -> "MatchOutcome":
        return cls(
            winner=record.outcome,
            game_type=record.game_type,
            is_one_set=record.is_one_set,
            is_walkover=record.is_walkover,
            match_id=record.id,
        )


@dataclass(frozen=True)
class PlayerUpdate:
    """Post-match state of one player plus how it was reached."""

    user_id: int
    team: str
    rating_before: Decimal
    rating_after: Decimal
    rd_before: Decimal
    rd_after: Decimal
    matches_played: int
    is_provisional: bool
    peak_rating: Decimal
    lowest_rating: Decimal
    new_peak: bool
    reason: str
    k_factor: float
    expected_score: Decimal

    @property
    def delta(self) -> Decimal:
        return self.rating_after - self.rating_before

    @property
    def won(self) -> bool:
        return self.reason == REASON_MATCH_WIN


@dataclass
class MatchUpdate:
    """
    Result of a match calculation.

    Contains all the information needed to update the database
    and understand what happened in the calculation.
    """

    outcome: MatchOutcome
    weight: float
    expected_team1: Decimal
    team1: list[PlayerUpdate] = field(default_factory=list)
    team2: list[PlayerUpdate] = field(default_factory=list)

    @property
    def updates(self) -> list[PlayerUpdate]:
        return self.team1 + self.team2

    def for_user(self, user_id: int) -> PlayerUpdate:
        for update in self.updates:
            if update.user_id == user_id:
                return update
        raise KeyError(user_id)

    @property
    def was_upset(self) -> bool:
        """Whether the side that was expected to lose won."""
        if self.outcome.winner == TEAM1:
            return self.expected_team1 < Decimal("0.5")
        return self.expected_team1 > Decimal("0.5")

    def __repr__(self) -> str:
        parts = ", ".join(f"{u.user_id}: {u.delta:+}" for u in self.updates)
        return f"<MatchUpdate(winner={self.outcome.winner}, {parts})>"


# =============================================================================
# Formula pieces
# =============================================================================

def g(rd: float) -> float:
    """Glicko attenuation factor for a rating deviation."""
    return 1.0 / math.sqrt(1.0 + 3.0 * C.GLICKO_Q ** 2 * rd ** 2 / math.pi ** 2)


def expected_score(rating_a: float, rating_b: float, rd_a: float = 0.0, rd_b: float = 0.0) -> float:
    """Expected score of A against B, in (0, 1)."""
    combined_rd = math.sqrt(rd_a ** 2 + rd_b ** 2)
    exponent = -g(combined_rd) * (rating_a - rating_b) / C.GLICKO_SCALE
    try:
        return 1.0 / (1.0 + 10.0 ** exponent)
    except OverflowError:
        return 0.0 if exponent > 0 else 1.0


def k_factor_for(matches_played: int, params: RatingParams) -> float:
    """K_new while matches_played < threshold, else K_established."""
    if matches_played < params.k_factor_threshold:
        return params.k_factor_new
    return params.k_factor_established


def match_weight(game_type: str, is_one_set: bool, params: RatingParams) -> float:
    weight = params.doubles_weight if game_type == DOUBLES else params.singles_weight
    if is_one_set:
        weight *= params.one_set_match_weight
    return weight


def next_rd(rd: Decimal) -> Decimal:
    """RD after one more match. Monotonic, floored at MIN_RD."""
    return to_decimal(max(float(C.MIN_RD), float(rd) * C.RD_DECAY))


def team_rating(side: Sequence[RatingSnapshot]) -> tuple[float, float]:
    """(mean rating, root-mean-square RD) of a side."""
    ratings = [float(s.rating) for s in side]
    rds = [float(s.rd) for s in side]
    mean = sum(ratings) / len(ratings)
    rms = math.sqrt(sum(rd ** 2 for rd in rds) / len(rds))
    return mean, rms


# =============================================================================
# Calculator
# =============================================================================

class RatingEngine:
    """
    League rating engine: match updates and initial placement.

    Usage:
        engine = RatingEngine()

        update = engine.compute_match_update(
            MatchOutcome(winner="team1", game_type="SINGLES"),
            [RatingSnapshot(user_id=1, rating=Decimal("1500"), rd=Decimal("350"))],
            [RatingSnapshot(user_id=2, rating=Decimal("1600"), rd=Decimal("200"))],
            RatingParams(),
        )
        print(update.for_user(1).delta)
    """

    def compute_match_update(
        self,
        outcome: MatchOutcome,
        side_a: Sequence[Optional[RatingSnapshot]],
        side_b: Sequence[Optional[RatingSnapshot]],
        params: RatingParams,
    ) -> MatchUpdate:
        """
        Compute every participant's post-match rating.

        ``side_a`` is team1 and ``side_b`` is team2.

        Raises:
            InvalidOutcomeError: no (or an unknown) winner, wrong side sizes
                or a player on both sides
            RatingNotFoundError: a side slot has no rating snapshot
        """
        self._validate(outcome, side_a, side_b)

        weight = match_weight(outcome.game_type, outcome.is_one_set, params)
        rating_a, rd_a = team_rating(side_a)
        rating_b, rd_b = team_rating(side_b)
        exp_a = expected_score(rating_a, rating_b, rd_a, rd_b)

        a_won = outcome.winner == TEAM1
        result = MatchUpdate(
            outcome=outcome,
            weight=weight,
            expected_team1=Decimal(str(exp_a)).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP),
        )
        result.team1 = [
            self._player_update(s, TEAM1, a_won, exp_a, weight, outcome, params) for s in side_a
        ]
        result.team2 = [
            self._player_update(s, TEAM2, not a_won, 1.0 - exp_a, weight, outcome, params)
            for s in side_b
        ]
        return result

    def initial_placement(self, estimate, params: RatingParams):
        """Starting rating and RD for a player (see placement.py)."""
        from courtrank.rating.placement import initial_placement

        return initial_placement(estimate, params)

    def win_probability(
        self,
        rating_a: Decimal,
        rating_b: Decimal,
        rd_a: Decimal = Decimal("0"),
        rd_b: Decimal = Decimal("0"),
    ) -> Decimal:
        """Probability of A beating B, to 4 decimal places."""
        prob = expected_score(float(rating_a), float(rating_b), float(rd_a), float(rd_b))
        return Decimal(str(prob)).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)

    def _validate(self, outcome, side_a, side_b) -> None:
        if outcome.winner not in (TEAM1, TEAM2):
            raise InvalidOutcomeError(
                f"Match {outcome.match_id} has no valid winner (outcome={outcome.winner!r})"
            )
        if outcome.game_type not in GAME_TYPES:
            raise InvalidOutcomeError(
                f"Match {outcome.match_id} has unknown game type {outcome.game_type!r}"
            )

        size = TEAM_SIZE[outcome.game_type]
        for side in (side_a, side_b):
            if len(side) != size:
                raise InvalidOutcomeError(
                    f"Match {outcome.match_id}: {outcome.game_type} needs {size} player(s) "
                    f"per side, got {len(side)}"
                )
            for snapshot in side:
                if snapshot is None:
                    raise RatingNotFoundError(None, None, outcome.game_type)

        overlap = {s.user_id for s in side_a} & {s.user_id for s in side_b}
        if overlap:
            raise InvalidOutcomeError(
                f"Match {outcome.match_id}: user(s) {sorted(overlap)} on both sides"
            )

    def _player_update(
        self,
        snapshot: RatingSnapshot,
        team: str,
        won: bool,
        expected: float,
        weight: float,
        outcome: MatchOutcome,
        params: RatingParams,
    ) -> PlayerUpdate:
        k = k_factor_for(snapshot.matches_played, params)

        if outcome.is_walkover:
            # No rally was played: fixed impact, no weights
            delta = to_decimal(params.walkover_win_impact if won else -params.walkover_loss_impact)
        else:
            actual = 1.0 if won else 0.0
            delta = to_decimal(weight * k * (actual - expected))

        rating_after = snapshot.rating + delta
        matches_played = snapshot.matches_played + 1
        # Once established, a player stays established
        is_provisional = snapshot.is_provisional and matches_played < params.provisional_threshold

        previous_peak = snapshot.peak_rating if snapshot.peak_rating is not None else snapshot.rating
        previous_low = snapshot.lowest_rating if snapshot.lowest_rating is not None else snapshot.rating

        return PlayerUpdate(
            user_id=snapshot.user_id,
            team=team,
            rating_before=snapshot.rating,
            rating_after=rating_after,
            rd_before=snapshot.rd,
            rd_after=next_rd(snapshot.rd),
            matches_played=matches_played,
            is_provisional=is_provisional,
            peak_rating=max(previous_peak, rating_after),
            lowest_rating=min(previous_low, rating_after),
            new_peak=rating_after > previous_peak,
            reason=REASON_MATCH_WIN if won else REASON_MATCH_LOSS,
            k_factor=k,
            expected_score=Decimal(str(expected)).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP),
        )


def compute_match_update(
    outcome: MatchOutcome,
    side_a: Sequence[Optional[RatingSnapshot]],
    side_b: Sequence[Optional[RatingSnapshot]],
    params: RatingParams,
) -> MatchUpdate:
    """Convenience wrapper around RatingEngine.compute_match_update."""
    return RatingEngine().compute_match_update(outcome, side_a, side_b, params)
