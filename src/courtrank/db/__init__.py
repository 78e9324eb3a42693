"""
Database module for courtrank.

Provides SQLAlchemy ORM models, session management, and the RatingStore
repository.

Usage:
    from courtrank.db import get_session, PlayerRating

    with get_session() as session:
        ratings = session.query(PlayerRating).all()
"""

from courtrank.db.models import (
    Base,
    User,
    Season,
    Division,
    LeagueMatch,
    MatchParticipant,
    DivisionStanding,
    RatingParameters,
    PlayerRating,
    RatingHistory,
    SeasonLock,
    Bracket,
    BracketRound,
    BracketMatch,
)
from courtrank.db.session import get_session, get_engine, SessionLocal
from courtrank.db.store import RatingStore

__all__ = [
    # Base
    "Base",
    # Models
    "User",
    "Season",
    "Division",
    "LeagueMatch",
    "MatchParticipant",
    "DivisionStanding",
    "RatingParameters",
    "PlayerRating",
    "RatingHistory",
    "SeasonLock",
    "Bracket",
    "BracketRound",
    "BracketMatch",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
    # Repository
    "RatingStore",
]
