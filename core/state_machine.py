"""
State machines: every status change is validated here

Lanpa lifecycle:

    DRAFT          -> VOTING_GAMES, IN_PROGRESS
    VOTING_GAMES   -> VOTING_ACTIVE, DRAFT
    VOTING_ACTIVE  -> IN_PROGRESS, VOTING_GAMES
    IN_PROGRESS    -> COMPLETED
    COMPLETED      -> (terminal)

Nomination:

    PENDING -> APPROVED | REJECTED   (exactly once, then immutable)
"""
from typing import Dict, FrozenSet

from models import LanpaStatus, NominationStatus
from core.exceptions import InvalidStateTransition, NominationAlreadyFinalized


class LanpaStateMachine:
    """Lanpa lifecycle transition table"""

    VALID_TRANSITIONS: Dict[LanpaStatus, FrozenSet[LanpaStatus]] = {
        LanpaStatus.DRAFT: frozenset({LanpaStatus.VOTING_GAMES, LanpaStatus.IN_PROGRESS}),
        LanpaStatus.VOTING_GAMES: frozenset({LanpaStatus.VOTING_ACTIVE, LanpaStatus.DRAFT}),
        LanpaStatus.VOTING_ACTIVE: frozenset({LanpaStatus.IN_PROGRESS, LanpaStatus.VOTING_GAMES}),
        LanpaStatus.IN_PROGRESS: frozenset({LanpaStatus.COMPLETED}),
        LanpaStatus.COMPLETED: frozenset(),
    }

    @classmethod
    def allowed_targets(cls, current: LanpaStatus) -> FrozenSet[LanpaStatus]:
        return cls.VALID_TRANSITIONS[LanpaStatus(current)]

    @classmethod
    def can_transition(cls, current: LanpaStatus, target: LanpaStatus) -> bool:
        return LanpaStatus(target) in cls.allowed_targets(current)

    @classmethod
    def validate_transition(cls, current: LanpaStatus, target: LanpaStatus) -> None:
        """
        Raises:
            InvalidStateTransition: target not reachable from current
        """
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(current, target)

    @staticmethod
    def selects_game(current: LanpaStatus, target: LanpaStatus) -> bool:
        """Closing the game vote is the only edge that runs the resolver."""
        return current == LanpaStatus.VOTING_ACTIVE and target == LanpaStatus.IN_PROGRESS


class NominationStateMachine:
    """PENDING is the only non-terminal nomination status"""

    @staticmethod
    def resolve(is_guilty: bool) -> NominationStatus:
        return NominationStatus.APPROVED if is_guilty else NominationStatus.REJECTED

    @staticmethod
    def validate_pending(status: NominationStatus) -> None:
        if status != NominationStatus.PENDING:
            raise NominationAlreadyFinalized("Nomination has already been finalized")
