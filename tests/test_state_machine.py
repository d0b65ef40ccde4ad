import pytest

from models import LanpaStatus, NominationStatus
from core.state_machine import LanpaStateMachine, NominationStateMachine
from core.exceptions import InvalidStateTransition, NominationAlreadyFinalized

S = LanpaStatus

ALLOWED = {
    (S.DRAFT, S.VOTING_GAMES),
    (S.DRAFT, S.IN_PROGRESS),
    (S.VOTING_GAMES, S.VOTING_ACTIVE),
    (S.VOTING_GAMES, S.DRAFT),
    (S.VOTING_ACTIVE, S.IN_PROGRESS),
    (S.VOTING_ACTIVE, S.VOTING_GAMES),
    (S.IN_PROGRESS, S.COMPLETED),
}


@pytest.mark.parametrize("current", list(S))
@pytest.mark.parametrize("target", list(S))
def test_only_table_edges_are_allowed(current, target):
    expected = (current, target) in ALLOWED
    assert LanpaStateMachine.can_transition(current, target) is expected

    if expected:
        LanpaStateMachine.validate_transition(current, target)
    else:
        with pytest.raises(InvalidStateTransition):
            LanpaStateMachine.validate_transition(current, target)


def test_completed_is_terminal():
    assert LanpaStateMachine.allowed_targets(S.COMPLETED) == frozenset()


def test_accepts_raw_values():
    assert LanpaStateMachine.can_transition("draft", "voting_games")


def test_error_message_names_both_states():
    with pytest.raises(InvalidStateTransition) as exc_info:
        LanpaStateMachine.validate_transition(S.COMPLETED, S.DRAFT)
    assert str(exc_info.value) == "Cannot transition from completed to draft"


def test_only_closing_the_vote_selects_a_game():
    assert LanpaStateMachine.selects_game(S.VOTING_ACTIVE, S.IN_PROGRESS)
    assert not LanpaStateMachine.selects_game(S.DRAFT, S.IN_PROGRESS)


def test_nomination_resolution():
    assert NominationStateMachine.resolve(True) == NominationStatus.APPROVED
    assert NominationStateMachine.resolve(False) == NominationStatus.REJECTED

    NominationStateMachine.validate_pending(NominationStatus.PENDING)
    for status in (NominationStatus.APPROVED, NominationStatus.REJECTED):
        with pytest.raises(NominationAlreadyFinalized):
            NominationStateMachine.validate_pending(status)
