"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from courtrank.db.models import (
    Base,
    Division,
    DivisionStanding,
    LeagueMatch,
    MatchParticipant,
    Season,
    User,
    utcnow,
)
from courtrank.statuses import FORMAT_STANDARD, MATCH_COMPLETED, SINGLES, TEAM1, TEAM2


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features. Every test gets a fresh database because
    the replay coordinator commits as it goes.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    """Create a database session for a test."""
    Session = sessionmaker(bind=test_engine, autoflush=False)
    session = Session()

    yield session

    session.close()


class RecordingNotificationSink:
    """Keeps every notification so tests can assert on it."""

    def __init__(self):
        self.sent = []

    def notify(self, user_ids, title, message):
        self.sent.append((tuple(sorted(set(user_ids))), title, message))


@pytest.fixture
def sink():
    """Notification sink that records instead of delivering."""
    return RecordingNotificationSink()


class LeagueFactory:
    """Small builders for the league tables the engine reads."""

    def __init__(self, session):
        self.session = session
        # Matches were played in the past, before any parameter version a
        # test creates
        self.clock = utcnow() - timedelta(days=30)

    def season(self, name="Spring League 2026"):
        season = Season(name=name)
        self.session.add(season)
        self.session.flush()
        return season

    def division(self, season, name="Division A", game_type=SINGLES):
        division = Division(season_id=season.id, name=name, game_type=game_type)
        self.session.add(division)
        self.session.flush()
        return division

    def users(self, count, prefix="Player"):
        users = []
        for _ in range(count):
            user = User()
            self.session.add(user)
            self.session.flush()
            user.name = f"{prefix} {user.id}"
            user.email = f"player{user.id}@example.com"
            users.append(user)
        self.session.flush()
        return users

    def match(
        self,
        season,
        team1,
        team2,
        winner=TEAM1,
        division=None,
        game_type=SINGLES,
        match_format=FORMAT_STANDARD,
        status=MATCH_COMPLETED,
        is_walkover=False,
        completed_at=None,
    ):
        """
        Create a match between two lists of users.

        Without ``completed_at`` each completed match lands one hour after
        the previous one, so creation order is replay order.
        """
        if completed_at is None and status == MATCH_COMPLETED:
            self.clock += timedelta(hours=1)
            completed_at = self.clock
        match = LeagueMatch(
            season_id=season.id,
            division_id=division.id if division is not None else None,
            match_type=game_type,
            format=match_format,
            status=status,
            is_walkover=is_walkover,
            outcome=winner if status == MATCH_COMPLETED else None,
            completed_at=completed_at,
        )
        for user in team1:
            match.participants.append(MatchParticipant(user_id=user.id, team=TEAM1))
        for user in team2:
            match.participants.append(MatchParticipant(user_id=user.id, team=TEAM2))
        self.session.add(match)
        self.session.flush()
        return match

    def standing(self, season, division, user, rank, wins=0, losses=0):
        standing = DivisionStanding(
            season_id=season.id,
            division_id=division.id,
            user_id=user.id,
            rank=rank,
            wins=wins,
            losses=losses,
            total_points=wins * 3,
            sets_won=wins * 2,
            sets_lost=losses * 2,
        )
        self.session.add(standing)
        self.session.flush()
        return standing


@pytest.fixture
def league(db_session):
    """Factory for seasons, divisions, users, matches and standings."""
    return LeagueFactory(db_session)
