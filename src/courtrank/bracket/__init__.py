"""
Finals brackets: pure draw math and the bracket engine.
"""

from courtrank.bracket.draw import (
    build_first_round_pairings,
    get_bracket_order,
    get_feeder_match_numbers,
    get_next_match_number,
    get_round_name,
    get_round_names,
    next_power_of_two,
    rounds_for_players,
    slot_for_match_number,
)
from courtrank.bracket.engine import BracketEngine, SeededPlayer, SeedingResult

__all__ = [
    "build_first_round_pairings",
    "get_bracket_order",
    "get_feeder_match_numbers",
    "get_next_match_number",
    "get_round_name",
    "get_round_names",
    "next_power_of_two",
    "rounds_for_players",
    "slot_for_match_number",
    "BracketEngine",
    "SeededPlayer",
    "SeedingResult",
]
