"""
Error taxonomy for the rating and bracket engine.

Three kinds of failure, each with the HTTP-equivalent status the (external)
API layer should answer with:

- NotFoundError (404): the season, division, rating, bracket... doesn't exist.
  Never retried.
- PreconditionFailedError (400): the state doesn't allow the operation
  (season locked, bracket published, not enough players...). The caller must
  change state first.
- InvariantViolationError (422): the input contradicts the data (winner who
  didn't play, match without an outcome). Logged with full context.

Partial failures inside a season replay are not exceptions; they are
reported on ReplayResult (see rating/replay.py).
"""

from __future__ import annotations


class CourtRankError(Exception):
    """Base class for all engine errors."""

    status_code: int = 500


# =============================================================================
# Not found
# =============================================================================

class NotFoundError(CourtRankError):
    status_code = 404


class SeasonNotFoundError(NotFoundError):
    def __init__(self, season_id: int):
        super().__init__(f"Season {season_id} not found")
        self.season_id = season_id


class DivisionNotFoundError(NotFoundError):
    def __init__(self, division_id: int):
        super().__init__(f"Division {division_id} not found")
        self.division_id = division_id


class MatchNotFoundError(NotFoundError):
    def __init__(self, match_id: int):
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id


class BracketNotFoundError(NotFoundError):
    def __init__(self, bracket_id: int):
        super().__init__(f"Bracket {bracket_id} not found")
        self.bracket_id = bracket_id


class BracketMatchNotFoundError(NotFoundError):
    def __init__(self, bracket_match_id: int):
        super().__init__(f"Bracket match {bracket_match_id} not found")
        self.bracket_match_id = bracket_match_id


# =============================================================================
# Precondition failed
# =============================================================================

class PreconditionFailedError(CourtRankError):
    status_code = 400


class SeasonLockedError(PreconditionFailedError):
    def __init__(self, season_id: int, action: str = "modify ratings"):
        super().__init__(f"Season {season_id} is locked. Cannot {action}.")
        self.season_id = season_id


class SeasonAlreadyLockedError(PreconditionFailedError):
    def __init__(self, season_id: int):
        super().__init__(f"Season {season_id} is already locked")
        self.season_id = season_id


class SeasonNotLockedError(PreconditionFailedError):
    def __init__(self, season_id: int):
        super().__init__(f"Season {season_id} is not locked")
        self.season_id = season_id


class PendingMatchesError(PreconditionFailedError):
    def __init__(self, season_id: int, pending: int):
        super().__init__(f"Cannot lock season {season_id}: {pending} matches are still pending")
        self.season_id = season_id
        self.pending = pending


class MatchNotCompletedError(PreconditionFailedError):
    def __init__(self, match_id: int):
        super().__init__(f"Match {match_id} is not completed")
        self.match_id = match_id


class BracketLockedError(PreconditionFailedError):
    def __init__(self, bracket_id: int, action: str = "be reseeded"):
        super().__init__(f"Bracket {bracket_id} is locked and cannot {action}")
        self.bracket_id = bracket_id


class BracketStatusError(PreconditionFailedError):
    """Bracket (or bracket match) is not in a status that allows the operation."""


class InsufficientPlayersError(PreconditionFailedError):
    def __init__(self, found: int):
        super().__init__(f"Not enough players to seed bracket (found {found}, need 2)")
        self.found = found


class DuplicateBracketError(PreconditionFailedError):
    def __init__(self, season_id: int, division_id: int):
        super().__init__(
            f"A bracket already exists for division {division_id} in season {season_id}"
        )
        self.season_id = season_id
        self.division_id = division_id


# =============================================================================
# Invariant violations
# =============================================================================

class InvariantViolationError(CourtRankError):
    status_code = 422


class InvalidWinnerError(InvariantViolationError):
    def __init__(self, winner_id: int, bracket_match_id: int):
        super().__init__(
            f"Winner {winner_id} is not a participant of bracket match {bracket_match_id}"
        )
        self.winner_id = winner_id
        self.bracket_match_id = bracket_match_id


class InvalidOutcomeError(InvariantViolationError):
    """Match outcome is ambiguous (no winner, wrong team sizes...)."""


class RatingNotFoundError(NotFoundError, InvariantViolationError):
    """No PlayerRating row for (user, season, game type)."""

    status_code = 404

    def __init__(self, user_id: int | None, season_id: int | None, game_type: str | None):
        super().__init__(
            f"No rating found for user {user_id} in season {season_id} for {game_type}"
        )
        self.user_id = user_id
        self.season_id = season_id
        self.game_type = game_type
