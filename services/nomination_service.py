"""
Nomination tally: guilty / innocent majority rule

Pure calculation. Unlike game voting there is no tiebreaker:
a tie (including 0-0) means innocent.
"""
from typing import Any, Sequence, Tuple


def tally_nomination_votes(votes: Sequence[Any]) -> Tuple[int, int]:
    """
    Count guilty (True) and innocent (False) votes

    Args:
        votes: objects with a boolean `vote` attribute

    Returns:
        (votes_for, votes_against)
    """
    votes_for = sum(1 for v in votes if v.vote is True)
    votes_against = sum(1 for v in votes if v.vote is False)
    return votes_for, votes_against


def is_guilty(votes_for: int, votes_against: int) -> bool:
    """Strict majority of cast votes"""
    return votes_for > votes_against


def punishment_notes(votes_for: int, votes_against: int) -> str:
    return f"Voted guilty by {votes_for} to {votes_against}"
