from types import SimpleNamespace

import pytest

from services.nomination_service import is_guilty, punishment_notes, tally_nomination_votes


def ballots(*values):
    return [SimpleNamespace(vote=v) for v in values]


def test_tally_splits_guilty_and_innocent():
    assert tally_nomination_votes(ballots(True, True, False)) == (2, 1)


def test_tally_of_nothing():
    assert tally_nomination_votes([]) == (0, 0)


@pytest.mark.parametrize(
    "votes_for, votes_against, expected",
    [
        (3, 1, True),
        (1, 0, True),
        (2, 3, False),
        (2, 2, False),
        (0, 0, False),
    ],
)
def test_guilty_needs_strict_majority(votes_for, votes_against, expected):
    assert is_guilty(votes_for, votes_against) is expected


def test_notes_carry_the_tally():
    assert punishment_notes(3, 1) == "Voted guilty by 3 to 1"
