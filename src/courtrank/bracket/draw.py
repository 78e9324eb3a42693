"""
Draw bracket utility functions.

Provides positional math for single-elimination brackets. Match numbers
are 1-indexed within each round and follow standard bracket progression:

    Round r, match m  ->  Round r+1, match ceil(m/2)

So matches 1 and 2 of the first round feed match 1 of the second round,
matches 3 and 4 feed match 2, etc. An odd match number fills the
successor's player1 slot, an even one fills player2.

First-round pairings use the standard tournament seed order, which keeps
the top seeds apart until the latest possible round:

    2 slots: [1, 2]
    4 slots: [1, 4, 2, 3]
    8 slots: [1, 8, 4, 5, 2, 7, 3, 6]

Everything here is pure and has no I/O.
"""

import math
from typing import Optional

PLAYER1 = "player1"
PLAYER2 = "player2"


def next_power_of_two(n: int) -> int:
    """
    Smallest power of two >= n (and >= 2).

    Examples:
        >>> next_power_of_two(5)
        8
        >>> next_power_of_two(8)
        8
    """
    size = 2
    while size < n:
        size *= 2
    return size


def rounds_for_players(num_players: int) -> int:
    """
    Number of rounds needed for a bracket: ceil(log2(num_players)).

    Examples:
        >>> rounds_for_players(8)
        3
        >>> rounds_for_players(6)
        3
        >>> rounds_for_players(2)
        1
    """
    if num_players < 2:
        raise ValueError(f"A bracket needs at least 2 players, got {num_players}")
    return math.ceil(math.log2(num_players))


def get_bracket_order(num_slots: int) -> list[int]:
    """
    Standard seed order for a power-of-two number of slots.

    Built by interleaving the order for half the slots with each seed's
    complement (num_slots + 1 - seed).

    Examples:
        >>> get_bracket_order(2)
        [1, 2]
        >>> get_bracket_order(8)
        [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if num_slots < 2 or num_slots & (num_slots - 1):
        raise ValueError(f"num_slots must be a power of two >= 2, got {num_slots}")
    if num_slots == 2:
        return [1, 2]

    order = []
    for seed in get_bracket_order(num_slots // 2):
        order.append(seed)
        order.append(num_slots + 1 - seed)
    return order


def get_round_name(rounds_from_final: int) -> str:
    """
    Human name of a round by its distance from the final.

    Examples:
        >>> get_round_name(1)
        'Finals'
        >>> get_round_name(3)
        'Quarter-Finals'
        >>> get_round_name(4)
        'Round of 16'
    """
    if rounds_from_final == 1:
        return "Finals"
    if rounds_from_final == 2:
        return "Semi-Finals"
    if rounds_from_final == 3:
        return "Quarter-Finals"
    return f"Round of {2 ** rounds_from_final}"


def get_round_names(num_rounds: int) -> list[str]:
    """
    Names for rounds 1..num_rounds, first round first.

    Examples:
        >>> get_round_names(3)
        ['Quarter-Finals', 'Semi-Finals', 'Finals']
    """
    return [get_round_name(num_rounds - i) for i in range(num_rounds)]


def get_next_match_number(match_number: int) -> int:
    """
    Match number of the successor in the next round.

    Examples:
        >>> get_next_match_number(1)
        1
        >>> get_next_match_number(4)
        2
    """
    return math.ceil(match_number / 2)


def get_feeder_match_numbers(match_number: int) -> tuple[int, int]:
    """
    The two previous-round matches feeding this match.

    Examples:
        >>> get_feeder_match_numbers(1)
        (1, 2)
        >>> get_feeder_match_numbers(3)
        (5, 6)
    """
    return (2 * match_number - 1, 2 * match_number)


def slot_for_match_number(match_number: int) -> str:
    """Which successor slot the winner of ``match_number`` fills."""
    return PLAYER1 if match_number % 2 == 1 else PLAYER2


def build_first_round_pairings(
    seeds: list[int],
    bracket_size: Optional[int] = None,
) -> list[tuple[Optional[int], Optional[int]]]:
    """
    Pair seeds for the first round.

    ``seeds`` lists the seed numbers actually filled (normally 1..n).
    Slots whose seed is not filled are byes (None). Returns one
    (seed1, seed2) tuple per first-round match, in match-number order.

    Examples:
        >>> build_first_round_pairings([1, 2, 3, 4])
        [(1, 4), (2, 3)]
        >>> build_first_round_pairings([1, 2, 3])
        [(1, None), (2, 3)]
    """
    filled = set(seeds)
    if len(filled) != len(seeds):
        raise ValueError("Duplicate seed numbers")
    size = bracket_size or next_power_of_two(max(len(seeds), max(seeds, default=0)))
    if size < 2 or size & (size - 1):
        raise ValueError(f"bracket_size must be a power of two >= 2, got {size}")

    order = [seed if seed in filled else None for seed in get_bracket_order(size)]
    return [(order[i], order[i + 1]) for i in range(0, len(order), 2)]
