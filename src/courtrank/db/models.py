"""
SQLAlchemy ORM models for courtrank.

This module defines the tables the rating and bracket engine owns, plus
the small slice of league tables (users, seasons, divisions, matches,
standings) it reads from.

Key design decisions:
- Ratings are kept per (user, season, game type) - exactly one row each
- Rating history is an append-only ledger; a row is never edited
- Rating parameters are versioned per season; old versions stay for replay
- Rating values are Numeric(8, 2) so that before + delta == after exactly
- A bracket is a tree of rounds and matches stored as plain rows

Tables:
- users, seasons, divisions: league context
- matches, match_participants: league matches (read by the match source)
- division_standings: computed standings (read for seeding and export)
- rating_parameters: versioned per-season rating parameters
- player_ratings: current rating per (user, season, game type)
- rating_history: ledger of every rating change
- season_locks: finalization gate per season
- brackets, bracket_rounds, bracket_matches: finals brackets
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column here."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# League Context
# =============================================================================

class User(Base):
    """A league player (or admin). Only the fields the engine reads."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name='{self.name}')>"


class Season(Base):
    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    divisions: Mapped[list["Division"]] = relationship(back_populates="season")

    def __repr__(self) -> str:
        return f"<Season(id={self.id}, name='{self.name}')>"


class Division(Base):
    """
    A division of a season. Players are grouped into divisions by level;
    ratings and brackets can be scoped to one.
    """
    __tablename__ = "divisions"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # 'SINGLES' or 'DOUBLES' - which rating pool the division plays in
    game_type: Mapped[str] = mapped_column(String(10), nullable=False, default="SINGLES")

    season: Mapped["Season"] = relationship(back_populates="divisions")

    __table_args__ = (
        Index("idx_divisions_season", "season_id"),
    )

    def __repr__(self) -> str:
        return f"<Division(id={self.id}, name='{self.name}')>"


class LeagueMatch(Base):
    """
    A league match.

    Only COMPLETED matches feed the rating engine. A match is decided by
    ``outcome`` ('team1' or 'team2'); participants carry their team label.

    Status lifecycle:
    - 'SCHEDULED' -> 'ONGOING' -> 'COMPLETED'
    - 'CANCELLED': never played
    - 'VOID': result annulled by an admin
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    division_id: Mapped[Optional[int]] = mapped_column(ForeignKey("divisions.id"), nullable=True)

    # 'SINGLES' or 'DOUBLES'
    match_type: Mapped[str] = mapped_column(String(10), nullable=False, default="SINGLES")
    # 'STANDARD' or 'ONE_SET'
    format: Mapped[str] = mapped_column(String(20), nullable=False, default="STANDARD")

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="SCHEDULED")
    is_walkover: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    outcome: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Replay order. Ties are broken by id.
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    participants: Mapped[list["MatchParticipant"]] = relationship(
        back_populates="match", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_matches_season_status", "season_id", "status"),
        Index("idx_matches_completed_at", "completed_at"),
    )

    def __repr__(self) -> str:
        return f"<LeagueMatch(id={self.id}, status='{self.status}', outcome={self.outcome})>"


class MatchParticipant(Base):
    __tablename__ = "match_participants"

    id: Mapped[int] = mapped_column(primary_key=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    team: Mapped[str] = mapped_column(String(10), nullable=False)  # 'team1' / 'team2'

    match: Mapped["LeagueMatch"] = relationship(back_populates="participants")

    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name="uq_match_participant"),
    )


class DivisionStanding(Base):
    """Computed division standings. Written elsewhere, read for seeding and export."""
    __tablename__ = "division_standings"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    division_id: Mapped[int] = mapped_column(ForeignKey("divisions.id"), nullable=False)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sets_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sets_lost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped[Optional["User"]] = relationship()
    division: Mapped["Division"] = relationship()

    __table_args__ = (
        Index("idx_standings_division_rank", "division_id", "rank"),
    )


# =============================================================================
# Rating Models
# =============================================================================

class RatingParameters(Base):
    """
    One version of a season's rating parameters.

    Versions are append-only: changing parameters deactivates the current
    version and inserts version + 1. At most one version per season is
    active. Superseded versions are kept so a replay can see the
    parameters as they were.
    """
    __tablename__ = "rating_parameters"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    initial_rating: Mapped[float] = mapped_column(Float, nullable=False)
    initial_rd: Mapped[float] = mapped_column(Float, nullable=False)
    k_factor_new: Mapped[float] = mapped_column(Float, nullable=False)
    k_factor_established: Mapped[float] = mapped_column(Float, nullable=False)
    k_factor_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    singles_weight: Mapped[float] = mapped_column(Float, nullable=False)
    doubles_weight: Mapped[float] = mapped_column(Float, nullable=False)
    one_set_match_weight: Mapped[float] = mapped_column(Float, nullable=False)
    walkover_win_impact: Mapped[float] = mapped_column(Float, nullable=False)
    walkover_loss_impact: Mapped[float] = mapped_column(Float, nullable=False)
    provisional_threshold: Mapped[int] = mapped_column(Integer, nullable=False)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("season_id", "version", name="uq_rating_parameters_season_version"),
        Index("idx_rating_parameters_active", "season_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<RatingParameters(season_id={self.season_id}, version={self.version}, "
            f"active={self.is_active})>"
        )


class PlayerRating(Base):
    """
    Current rating of a player for one (season, game type).

    Created once - on questionnaire placement or first match - and then
    only updated. The history ledger explains every change.
    """
    __tablename__ = "player_ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    division_id: Mapped[Optional[int]] = mapped_column(ForeignKey("divisions.id"), nullable=True)
    game_type: Mapped[str] = mapped_column(String(10), nullable=False)

    current_rating: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    rating_deviation: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_provisional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    peak_rating: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    peak_rating_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    lowest_rating: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)

    last_match_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped["User"] = relationship()
    division: Mapped[Optional["Division"]] = relationship()
    history: Mapped[list["RatingHistory"]] = relationship(
        back_populates="player_rating",
        order_by="RatingHistory.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "season_id", "game_type", name="uq_player_rating_scope"),
        CheckConstraint("matches_played >= 0", name="ck_player_rating_matches_played"),
        Index("idx_player_ratings_season", "season_id", "game_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerRating(user_id={self.user_id}, season_id={self.season_id}, "
            f"{self.game_type}={self.current_rating})>"
        )


class RatingHistory(Base):
    """
    One immutable rating change.

    rating_after - rating_before == delta always holds; summing the deltas
    of a rating's history gives current_rating minus the season's initial
    rating.
    """
    __tablename__ = "rating_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_rating_id: Mapped[int] = mapped_column(
        ForeignKey("player_ratings.id", ondelete="CASCADE"), nullable=False
    )
    match_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    rating_before: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    rating_after: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    delta: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    rd_before: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    rd_after: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)

    # See statuses.HISTORY_REASONS
    reason: Mapped[str] = mapped_column(String(30), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    player_rating: Mapped["PlayerRating"] = relationship(back_populates="history")

    __table_args__ = (
        Index("idx_rating_history_rating", "player_rating_id", "id"),
        Index("idx_rating_history_match", "match_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<RatingHistory(rating_id={self.player_rating_id}, reason='{self.reason}', "
            f"delta={self.delta})>"
        )


class SeasonLock(Base):
    """Finalization gate. While is_locked, no rating or parameter may change."""
    __tablename__ = "season_locks"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False, unique=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    locked_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SeasonLock(season_id={self.season_id}, locked={self.is_locked})>"


# =============================================================================
# Bracket Models
# =============================================================================

class Bracket(Base):
    """
    Finals bracket for one division of one season.

    Status lifecycle (see bracket/engine.py):
    DRAFT -> SEEDED (repeatable) -> PUBLISHED -> IN_PROGRESS -> COMPLETED
    Publishing locks the bracket: seeding can no longer change.
    """
    __tablename__ = "brackets"

    id: Mapped[int] = mapped_column(primary_key=True)
    season_id: Mapped[int] = mapped_column(ForeignKey("seasons.id"), nullable=False)
    division_id: Mapped[int] = mapped_column(ForeignKey("divisions.id"), nullable=False)
    bracket_name: Mapped[str] = mapped_column(String(255), nullable=False)

    bracket_type: Mapped[str] = mapped_column(String(30), nullable=False, default="SINGLE_ELIMINATION")
    seeding_source: Mapped[str] = mapped_column(String(20), nullable=False, default="STANDINGS")
    num_players: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    published_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    rounds: Mapped[list["BracketRound"]] = relationship(
        back_populates="bracket",
        order_by="BracketRound.round_number",
        cascade="all, delete-orphan",
    )
    matches: Mapped[list["BracketMatch"]] = relationship(
        back_populates="bracket",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("season_id", "division_id", name="uq_bracket_season_division"),
    )

    def __repr__(self) -> str:
        return f"<Bracket(id={self.id}, name='{self.bracket_name}', status='{self.status}')>"


class BracketRound(Base):
    __tablename__ = "bracket_rounds"

    id: Mapped[int] = mapped_column(primary_key=True)
    bracket_id: Mapped[int] = mapped_column(ForeignKey("brackets.id", ondelete="CASCADE"))
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    round_name: Mapped[str] = mapped_column(String(50), nullable=False)

    bracket: Mapped["Bracket"] = relationship(back_populates="rounds")
    matches: Mapped[list["BracketMatch"]] = relationship(
        back_populates="round",
        order_by="BracketMatch.match_number",
    )

    __table_args__ = (
        UniqueConstraint("bracket_id", "round_number", name="uq_bracket_round_number"),
    )

    def __repr__(self) -> str:
        return f"<BracketRound(number={self.round_number}, name='{self.round_name}')>"


class BracketMatch(Base):
    """
    One slot-pair of a bracket round.

    Winner of match m in round r goes to match ceil(m/2) of round r+1:
    odd m fills player1, even m fills player2.
    """
    __tablename__ = "bracket_matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    bracket_id: Mapped[int] = mapped_column(ForeignKey("brackets.id", ondelete="CASCADE"))
    round_id: Mapped[int] = mapped_column(ForeignKey("bracket_rounds.id", ondelete="CASCADE"))
    match_number: Mapped[int] = mapped_column(Integer, nullable=False)

    seed1: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    seed2: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player1_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    player2_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    winner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    # League match that decided this bracket match, if recorded through one
    match_id: Mapped[Optional[int]] = mapped_column(ForeignKey("matches.id"), nullable=True)
    scheduled_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    court_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    bracket: Mapped["Bracket"] = relationship(back_populates="matches")
    round: Mapped["BracketRound"] = relationship(back_populates="matches")

    __table_args__ = (
        UniqueConstraint("round_id", "match_number", name="uq_bracket_match_position"),
    )

    @property
    def participants(self) -> tuple[Optional[int], Optional[int]]:
        return (self.player1_id, self.player2_id)

    def __repr__(self) -> str:
        return (
            f"<BracketMatch(id={self.id}, number={self.match_number}, "
            f"{self.player1_id} v {self.player2_id}, status='{self.status}')>"
        )
