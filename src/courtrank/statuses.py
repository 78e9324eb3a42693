"""Shared status and enum-like string definitions.

This module is the single source of truth for the string values stored in
status/type columns and accepted by the service layer.
"""

from __future__ import annotations

# Game types a rating is kept for.
SINGLES = "SINGLES"
DOUBLES = "DOUBLES"
GAME_TYPES: tuple[str, ...] = (SINGLES, DOUBLES)

# Players per side for each game type.
TEAM_SIZE: dict[str, int] = {SINGLES: 1, DOUBLES: 2}

# Match formats. ONE_SET matches carry less rating weight.
FORMAT_STANDARD = "STANDARD"
FORMAT_ONE_SET = "ONE_SET"
MATCH_FORMATS: tuple[str, ...] = (FORMAT_STANDARD, FORMAT_ONE_SET)

# League match lifecycle.
MATCH_SCHEDULED = "SCHEDULED"
MATCH_ONGOING = "ONGOING"
MATCH_COMPLETED = "COMPLETED"
MATCH_CANCELLED = "CANCELLED"
MATCH_VOID = "VOID"
ALL_MATCH_STATUSES: tuple[str, ...] = (
    MATCH_SCHEDULED,
    MATCH_ONGOING,
    MATCH_COMPLETED,
    MATCH_CANCELLED,
    MATCH_VOID,
)

# Statuses that allow a season to be locked.
LOCKABLE_MATCH_STATUSES: tuple[str, ...] = (MATCH_COMPLETED, MATCH_CANCELLED, MATCH_VOID)

# Match outcome values (which team won).
TEAM1 = "team1"
TEAM2 = "team2"
OUTCOMES: tuple[str, ...] = (TEAM1, TEAM2)

# Rating history reasons.
REASON_INITIAL_PLACEMENT = "INITIAL_PLACEMENT"
REASON_MATCH_WIN = "MATCH_WIN"
REASON_MATCH_LOSS = "MATCH_LOSS"
REASON_MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
REASON_RECALCULATION = "RECALCULATION"
REASON_ADMIN_RESET = "ADMIN_RESET"
HISTORY_REASONS: tuple[str, ...] = (
    REASON_INITIAL_PLACEMENT,
    REASON_MATCH_WIN,
    REASON_MATCH_LOSS,
    REASON_MANUAL_ADJUSTMENT,
    REASON_RECALCULATION,
    REASON_ADMIN_RESET,
)

# Bracket lifecycle: DRAFT -> SEEDED -> PUBLISHED -> IN_PROGRESS -> COMPLETED
BRACKET_DRAFT = "DRAFT"
BRACKET_SEEDED = "SEEDED"
BRACKET_PUBLISHED = "PUBLISHED"
BRACKET_IN_PROGRESS = "IN_PROGRESS"
BRACKET_COMPLETED = "COMPLETED"
BRACKET_STATUSES: tuple[str, ...] = (
    BRACKET_DRAFT,
    BRACKET_SEEDED,
    BRACKET_PUBLISHED,
    BRACKET_IN_PROGRESS,
    BRACKET_COMPLETED,
)

# Statuses in which (re)seeding is allowed.
SEEDABLE_BRACKET_STATUSES: tuple[str, ...] = (BRACKET_DRAFT, BRACKET_SEEDED)

# Statuses in which results may be recorded.
PLAYABLE_BRACKET_STATUSES: tuple[str, ...] = (BRACKET_PUBLISHED, BRACKET_IN_PROGRESS)

SINGLE_ELIMINATION = "SINGLE_ELIMINATION"
BRACKET_TYPES: tuple[str, ...] = (SINGLE_ELIMINATION,)

SEEDING_STANDINGS = "STANDINGS"
SEEDING_RATING = "RATING"
SEEDING_MANUAL = "MANUAL"
SEEDING_SOURCES: tuple[str, ...] = (SEEDING_STANDINGS, SEEDING_RATING, SEEDING_MANUAL)

BRACKET_MATCH_PENDING = "PENDING"
BRACKET_MATCH_BYE = "BYE"
BRACKET_MATCH_COMPLETED = "COMPLETED"
BRACKET_MATCH_STATUSES: tuple[str, ...] = (
    BRACKET_MATCH_PENDING,
    BRACKET_MATCH_BYE,
    BRACKET_MATCH_COMPLETED,
)


def normalize_game_type(raw: str | None, *, default: str = SINGLES) -> str:
    """Normalize a game type string, raising ValueError for unknown values."""
    if raw is None:
        return default
    value = raw.strip().upper()
    if value not in GAME_TYPES:
        raise ValueError(f"game_type must be one of {GAME_TYPES}, got '{raw}'")
    return value
