"""
Finals bracket engine.

Builds a single-elimination bracket for one division, seeds it, publishes
it and advances winners round by round until a champion is produced.

Status lifecycle:

    DRAFT -> SEEDED -> PUBLISHED -> IN_PROGRESS -> COMPLETED
             ^    |
             +----+   (reseeding allowed until published)

Publishing locks the bracket: seeding and players can no longer change.

Rounds are created with the bracket, sized for the next power of two of
num_players. Seeding sizes the draw for the players actually seeded, so a
half-empty division still gets a playable draw, and recreates the rounds
when their number changes. It also (re)creates every match: first-round
matches follow the standard seed order (see draw.py), a first-round match
with a single player is a BYE, and later-round matches start empty and
are played once both players have advanced. A BYE's lone player advances
when its result is recorded, like any other match.

Usage:
    engine = BracketEngine(session, notifier=LoggingNotificationSink())
    bracket = engine.create_bracket(season_id=3, division_id=12, num_players=8)
    engine.seed_bracket(bracket.id, seeding_source="RATING")
    engine.publish_bracket(bracket.id, admin_id=1)
    engine.record_match_result(bracket_match_id=41, winner_id=7)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from courtrank.bracket.draw import (
    PLAYER1,
    build_first_round_pairings,
    get_next_match_number,
    get_round_names,
    next_power_of_two,
    rounds_for_players,
    slot_for_match_number,
)
from courtrank.collaborators.notifications import NotificationSink, notify_safely
from courtrank.config import settings
from courtrank.db.models import (
    Bracket,
    BracketMatch,
    BracketRound,
    Division,
    DivisionStanding,
    PlayerRating,
    utcnow,
)
from courtrank.errors import (
    BracketLockedError,
    BracketMatchNotFoundError,
    BracketNotFoundError,
    BracketStatusError,
    DivisionNotFoundError,
    DuplicateBracketError,
    InsufficientPlayersError,
    InvalidWinnerError,
    PreconditionFailedError,
)
from courtrank.statuses import (
    BRACKET_COMPLETED,
    BRACKET_DRAFT,
    BRACKET_IN_PROGRESS,
    BRACKET_MATCH_BYE,
    BRACKET_MATCH_COMPLETED,
    BRACKET_MATCH_PENDING,
    BRACKET_PUBLISHED,
    BRACKET_SEEDED,
    BRACKET_TYPES,
    GAME_TYPES,
    PLAYABLE_BRACKET_STATUSES,
    SEEDABLE_BRACKET_STATUSES,
    SEEDING_MANUAL,
    SEEDING_RATING,
    SEEDING_SOURCES,
    SEEDING_STANDINGS,
    SINGLE_ELIMINATION,
    SINGLES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeededPlayer:
    seed: int
    user_id: int


@dataclass
class SeedingResult:
    bracket: Bracket
    seeded_players: list[SeededPlayer] = field(default_factory=list)


class BracketEngine:
    """Creates, seeds, publishes and plays out finals brackets."""

    def __init__(self, session: Session, notifier: Optional[NotificationSink] = None):
        self.session = session
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_bracket(self, bracket_id: int) -> Bracket:
        bracket = self.session.get(Bracket, bracket_id)
        if bracket is None:
            raise BracketNotFoundError(bracket_id)
        return bracket

    def get_brackets_for_season(self, season_id: int) -> list[Bracket]:
        return (
            self.session.query(Bracket)
            .filter(Bracket.season_id == season_id)
            .order_by(Bracket.division_id, Bracket.id)
            .all()
        )

    def get_bracket_match(self, bracket_match_id: int) -> BracketMatch:
        match = self.session.get(BracketMatch, bracket_match_id)
        if match is None:
            raise BracketMatchNotFoundError(bracket_match_id)
        return match

    def find_match(self, bracket_id: int, round_number: int, match_number: int) -> Optional[BracketMatch]:
        return (
            self.session.query(BracketMatch)
            .join(BracketRound, BracketRound.id == BracketMatch.round_id)
            .filter(
                BracketMatch.bracket_id == bracket_id,
                BracketRound.round_number == round_number,
                BracketMatch.match_number == match_number,
            )
            .first()
        )

    def get_champion(self, bracket_id: int) -> Optional[int]:
        """Winner of the final, or None while the bracket is unfinished."""
        bracket = self.get_bracket(bracket_id)
        if not bracket.rounds:
            return None
        final = self.find_match(bracket_id, bracket.rounds[-1].round_number, 1)
        return final.winner_id if final is not None else None

    # ------------------------------------------------------------------
    # Creation and seeding
    # ------------------------------------------------------------------

    def create_bracket(
        self,
        season_id: int,
        division_id: int,
        num_players: Optional[int] = None,
        bracket_name: Optional[str] = None,
        bracket_type: str = SINGLE_ELIMINATION,
        seeding_source: str = SEEDING_STANDINGS,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Bracket:
        """
        Create an empty bracket with its rounds.

        Raises:
            DivisionNotFoundError: unknown division
            PreconditionFailedError: the division is not part of the season
            DuplicateBracketError: the division already has a bracket
            ValueError: bad player count, type or seeding source
        """
        num_players = num_players or settings.default_bracket_size
        num_rounds = rounds_for_players(num_players)
        if bracket_type not in BRACKET_TYPES:
            raise ValueError(f"bracket_type must be one of {BRACKET_TYPES}, got '{bracket_type}'")
        if seeding_source not in SEEDING_SOURCES:
            raise ValueError(f"seeding_source must be one of {SEEDING_SOURCES}, got '{seeding_source}'")

        division = self.session.get(Division, division_id)
        if division is None:
            raise DivisionNotFoundError(division_id)
        if division.season_id != season_id:
            raise PreconditionFailedError(
                f"Division {division_id} does not belong to season {season_id}"
            )

        existing = (
            self.session.query(Bracket)
            .filter(Bracket.season_id == season_id, Bracket.division_id == division_id)
            .first()
        )
        if existing is not None:
            raise DuplicateBracketError(season_id, division_id)

        bracket = Bracket(
            season_id=season_id,
            division_id=division_id,
            bracket_name=bracket_name or f"{division.name} Finals",
            bracket_type=bracket_type,
            seeding_source=seeding_source,
            num_players=num_players,
            status=BRACKET_DRAFT,
            is_locked=False,
            start_date=start_date,
            end_date=end_date,
        )
        for number, name in enumerate(get_round_names(num_rounds), start=1):
            bracket.rounds.append(BracketRound(round_number=number, round_name=name))
        self.session.add(bracket)
        self.session.flush()

        logger.info(
            "Bracket %s created for division %s (%d players, %d rounds)",
            bracket.id,
            division_id,
            num_players,
            num_rounds,
        )
        return bracket

    def seed_bracket(
        self,
        bracket_id: int,
        seeding_source: Optional[str] = None,
        manual_seeds: Optional[Iterable[tuple[int, int]]] = None,
        admin_id: Optional[int] = None,
    ) -> SeedingResult:
        """
        (Re)seed a bracket, replacing every match it had.

        ``manual_seeds`` is a list of (seed, user_id) pairs; when given it
        wins over ``seeding_source``.

        Raises:
            BracketLockedError: the bracket is published
            BracketStatusError: not DRAFT or SEEDED
            InsufficientPlayersError: fewer than 2 seeded players
            ValueError: duplicate seeds or players, seeds out of range
        """
        bracket = self.get_bracket(bracket_id)
        if bracket.is_locked:
            raise BracketLockedError(bracket_id)
        if bracket.status not in SEEDABLE_BRACKET_STATUSES:
            raise BracketStatusError(
                f"Cannot seed bracket {bracket_id} in status {bracket.status}"
            )

        capacity = next_power_of_two(bracket.num_players)
        manual = list(manual_seeds or [])
        if manual:
            source = SEEDING_MANUAL
            seeded = self._manual_seeds(manual, capacity)
        else:
            source = seeding_source or bracket.seeding_source
            if source == SEEDING_RATING:
                seeded = self._rating_seeds(bracket)
            elif source == SEEDING_STANDINGS:
                seeded = self._standing_seeds(bracket)
            else:
                raise ValueError(f"Seeding source {source} needs manual_seeds")

        if len(seeded) < 2:
            raise InsufficientPlayersError(len(seeded))

        # The draw is sized for the players actually seeded, not the capacity
        size = next_power_of_two(max(len(seeded), seeded[-1].seed))
        pairings = build_first_round_pairings([p.seed for p in seeded], size)
        by_seed = {p.seed: p.user_id for p in seeded}
        for number, (seed1, seed2) in enumerate(pairings, start=1):
            if by_seed.get(seed1) is None and by_seed.get(seed2) is None:
                raise ValueError(f"Seeding leaves first-round match {number} without players")

        self._clear_matches(bracket)
        self._fit_rounds(bracket, rounds_for_players(size))

        rounds = bracket.rounds
        for number, (seed1, seed2) in enumerate(pairings, start=1):
            player1 = by_seed.get(seed1)
            player2 = by_seed.get(seed2)
            if player1 is None:
                # Lone player always sits in player1
                player1, player2 = player2, None
                seed1, seed2 = seed2, seed1
            self.session.add(
                BracketMatch(
                    bracket_id=bracket.id,
                    round_id=rounds[0].id,
                    match_number=number,
                    seed1=seed1,
                    seed2=seed2 if player2 is not None else None,
                    player1_id=player1,
                    player2_id=player2,
                    status=BRACKET_MATCH_PENDING if player2 is not None else BRACKET_MATCH_BYE,
                )
            )

        matches_in_round = len(pairings)
        for bracket_round in rounds[1:]:
            matches_in_round //= 2
            for number in range(1, matches_in_round + 1):
                self.session.add(
                    BracketMatch(
                        bracket_id=bracket.id,
                        round_id=bracket_round.id,
                        match_number=number,
                        status=BRACKET_MATCH_PENDING,
                    )
                )

        bracket.status = BRACKET_SEEDED
        bracket.seeding_source = source
        bracket.updated_at = utcnow()
        self.session.flush()
        self.session.expire(bracket, ["matches"])
        for bracket_round in rounds:
            self.session.expire(bracket_round, ["matches"])

        logger.info(
            "Bracket %s seeded from %s with %d players by admin %s",
            bracket_id,
            source,
            len(seeded),
            admin_id,
        )
        return SeedingResult(bracket=bracket, seeded_players=seeded)

    def _clear_matches(self, bracket: Bracket) -> None:
        """Delete every match of a bracket so reseeding leaves no orphans."""
        for match in list(bracket.matches):
            self.session.delete(match)
        self.session.flush()
        self.session.expire(bracket, ["matches"])
        for bracket_round in bracket.rounds:
            self.session.expire(bracket_round, ["matches"])

    def _fit_rounds(self, bracket: Bracket, num_rounds: int) -> None:
        """Recreate the rounds when the draw needs a different number of them."""
        if len(bracket.rounds) == num_rounds:
            return
        bracket.rounds.clear()
        self.session.flush()
        for number, name in enumerate(get_round_names(num_rounds), start=1):
            bracket.rounds.append(BracketRound(round_number=number, round_name=name))
        self.session.flush()
        logger.info("Bracket %s resized to %d rounds", bracket.id, num_rounds)

    def _manual_seeds(self, manual: list[tuple[int, int]], size: int) -> list[SeededPlayer]:
        seeds = [int(seed) for seed, _ in manual]
        users = [int(user_id) for _, user_id in manual]
        if len(set(seeds)) != len(seeds):
            raise ValueError("Manual seeding lists a seed more than once")
        if len(set(users)) != len(users):
            raise ValueError("Manual seeding lists a player more than once")
        out_of_range = [s for s in seeds if s < 1 or s > size]
        if out_of_range:
            raise ValueError(f"Seeds {sorted(out_of_range)} are outside 1..{size}")
        return sorted(
            (SeededPlayer(seed=s, user_id=u) for s, u in zip(seeds, users)),
            key=lambda p: p.seed,
        )

    def _rating_seeds(self, bracket: Bracket) -> list[SeededPlayer]:
        """Highest current rating first, in the division's game type."""
        division = self.session.get(Division, bracket.division_id)
        game_type = division.game_type if division and division.game_type in GAME_TYPES else SINGLES
        ratings = (
            self.session.query(PlayerRating)
            .filter(
                PlayerRating.season_id == bracket.season_id,
                PlayerRating.division_id == bracket.division_id,
                PlayerRating.game_type == game_type,
            )
            .order_by(PlayerRating.current_rating.desc(), PlayerRating.id)
            .limit(bracket.num_players)
            .all()
        )
        return [SeededPlayer(seed=i, user_id=r.user_id) for i, r in enumerate(ratings, start=1)]

    def _standing_seeds(self, bracket: Bracket) -> list[SeededPlayer]:
        """Best standing first. Seeds are renumbered 1..n in rank order."""
        standings = (
            self.session.query(DivisionStanding)
            .filter(
                DivisionStanding.season_id == bracket.season_id,
                DivisionStanding.division_id == bracket.division_id,
                DivisionStanding.user_id.isnot(None),
            )
            .order_by(DivisionStanding.rank, DivisionStanding.id)
            .limit(bracket.num_players)
            .all()
        )
        return [SeededPlayer(seed=i, user_id=s.user_id) for i, s in enumerate(standings, start=1)]

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_bracket(
        self,
        bracket_id: int,
        admin_id: Optional[int] = None,
        notify_players: Optional[bool] = None,
    ) -> Bracket:
        """
        Lock seeding and open the bracket for results.

        Raises:
            BracketStatusError: already published, not seeded, or no
                first-round match has a player
        """
        bracket = self.get_bracket(bracket_id)
        if bracket.status in (BRACKET_PUBLISHED, BRACKET_IN_PROGRESS, BRACKET_COMPLETED):
            raise BracketStatusError(f"Bracket {bracket_id} is already published")
        if bracket.status != BRACKET_SEEDED:
            raise BracketStatusError(f"Bracket {bracket_id} must be seeded before publishing")

        first_round = bracket.rounds[0]
        if not any(m.player1_id or m.player2_id for m in first_round.matches):
            raise BracketStatusError(f"Bracket {bracket_id} has no seeded matches")

        bracket.is_locked = True
        bracket.status = BRACKET_PUBLISHED
        bracket.published_at = utcnow()
        bracket.published_by = admin_id
        self.session.flush()
        logger.info("Bracket %s published by admin %s", bracket_id, admin_id)

        if notify_players is None:
            notify_players = settings.notify_on_publish
        if notify_players:
            player_ids = {
                pid
                for m in bracket.matches
                for pid in (m.player1_id, m.player2_id)
                if pid is not None
            }
            notify_safely(
                self.notifier,
                player_ids,
                "Finals Bracket Published",
                f"The finals bracket for {bracket.bracket_name} has been published. "
                "Check your matches!",
            )
        return bracket

    def update_bracket_match(
        self,
        bracket_match_id: int,
        scheduled_time: Optional[datetime] = None,
        court_location: Optional[str] = None,
        player1_id: Optional[int] = None,
        player2_id: Optional[int] = None,
    ) -> BracketMatch:
        """
        Update schedule, court or (before publishing) players of a match.

        Raises:
            BracketLockedError: changing players of a published bracket
        """
        match = self.get_bracket_match(bracket_match_id)
        if (player1_id or player2_id) and match.bracket.is_locked:
            raise BracketLockedError(match.bracket_id, "change players")

        if scheduled_time is not None:
            match.scheduled_time = scheduled_time
        if court_location is not None:
            match.court_location = court_location
        if player1_id:
            match.player1_id = player1_id
        if player2_id:
            match.player2_id = player2_id
        if match.player1_id and match.player2_id and match.status == BRACKET_MATCH_BYE:
            match.status = BRACKET_MATCH_PENDING
        self.session.flush()
        return match

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def record_match_result(
        self,
        bracket_match_id: int,
        winner_id: int,
        match_id: Optional[int] = None,
    ) -> BracketMatch:
        """
        Complete a bracket match and advance its winner.

        The winner fills player1 of the successor for an odd match number,
        player2 for an even one, carrying their seed. Completing the final
        completes the bracket.

        Raises:
            BracketStatusError: bracket not PUBLISHED/IN_PROGRESS, the match
                is already completed, or a non-BYE match lacks a player
            InvalidWinnerError: winner is not one of the match's players
        """
        match = self.get_bracket_match(bracket_match_id)
        bracket = match.bracket
        if bracket.status not in PLAYABLE_BRACKET_STATUSES:
            raise BracketStatusError(
                f"Cannot record results on bracket {bracket.id} in status {bracket.status}"
            )
        if match.status == BRACKET_MATCH_COMPLETED:
            raise BracketStatusError(f"Bracket match {bracket_match_id} is already completed")
        if match.status != BRACKET_MATCH_BYE and (match.player1_id is None or match.player2_id is None):
            raise BracketStatusError(
                f"Bracket match {bracket_match_id} is still waiting for its players"
            )
        if winner_id is None or winner_id not in (match.player1_id, match.player2_id):
            raise InvalidWinnerError(winner_id, bracket_match_id)

        match.status = BRACKET_MATCH_COMPLETED
        match.winner_id = winner_id
        if match_id is not None:
            match.match_id = match_id

        round_number = match.round.round_number
        winner_seed = match.seed1 if winner_id == match.player1_id else match.seed2
        successor = self.find_match(
            bracket.id, round_number + 1, get_next_match_number(match.match_number)
        )
        if successor is not None:
            if slot_for_match_number(match.match_number) == PLAYER1:
                successor.player1_id = winner_id
                successor.seed1 = winner_seed
            else:
                successor.player2_id = winner_id
                successor.seed2 = winner_seed
            bracket.status = BRACKET_IN_PROGRESS
        else:
            bracket.status = BRACKET_COMPLETED
        bracket.updated_at = utcnow()
        self.session.flush()

        logger.info(
            "Bracket %s: match %s (round %d) won by %s%s",
            bracket.id,
            match.match_number,
            round_number,
            winner_id,
            " - bracket completed" if successor is None else "",
        )
        return match
