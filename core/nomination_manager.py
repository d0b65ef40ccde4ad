"""
Nomination Manager: punishment nominations, votes and finalization

Lifecycle of a nomination:
    create (PENDING, voting_ends_at = now + voting_hours)
      -> members vote guilty / innocent until voting_ends_at
      -> finalize once: APPROVED (+ UserPunishment) or REJECTED

finalize() writes the status with a compare-and-swap on PENDING, so two
concurrent finalize requests can not both succeed.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models import (
    Lanpa,
    LanpaMember,
    NominationStatus,
    NotificationType,
    Punishment,
    PunishmentNomination,
    PunishmentVote,
    UserPunishment,
    ACTIVE_MEMBER_STATUSES,
    as_utc,
    utcnow,
)
from core.state_machine import NominationStateMachine
from core.locks import with_nomination_lock, compare_and_set_status, upsert_statement
from core.permissions import is_lanpa_member, require_member
from core.exceptions import (
    DuplicateNomination,
    InvalidNomination,
    LanpaNotFound,
    NominationNotFound,
    PunishmentNotFound,
    SelfVoteNotAllowed,
    VotingClosed,
    VotingStillOpen,
)
from services.nomination_service import is_guilty, punishment_notes, tally_nomination_votes
from services.notification_service import NotificationDispatcher, build_payload
from database import transactional

logger = logging.getLogger(__name__)

DUPLICATE_NOMINATION_MESSAGE = "A pending nomination already exists for this user and punishment"


class NominationManager:
    """Punishment nomination manager"""

    @staticmethod
    @transactional
    def create_nomination(
        db: Session,
        requester_id: UUID,
        lanpa_id: UUID,
        punishment_id: UUID,
        nominated_user_id: UUID,
        reason: str,
        voting_hours: int,
        now: Optional[datetime] = None
    ) -> PunishmentNomination:
        """
        Open a punishment vote against a member

        Raises:
            LanpaNotFound: lanpa does not exist
            NotLanpaMember: requester is not a member
            InvalidNomination: self-nomination, or nominated user is not a member
            PunishmentNotFound: punishment does not exist
            DuplicateNomination: a PENDING nomination already exists for
                (lanpa, punishment, nominated user)
        """
        now = now or utcnow()

        lanpa = db.query(Lanpa).filter(Lanpa.id == lanpa_id).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)

        require_member(db, requester_id, lanpa, "Only lanpa members can nominate")

        if nominated_user_id == requester_id:
            raise InvalidNomination("You cannot nominate yourself")

        if not is_lanpa_member(db, nominated_user_id, lanpa):
            raise InvalidNomination("Nominated user is not a member of this lanpa")

        if not db.query(Punishment.id).filter(Punishment.id == punishment_id).first():
            raise PunishmentNotFound(punishment_id)

        if NominationManager._pending_nomination_exists(db, lanpa_id, punishment_id, nominated_user_id):
            raise DuplicateNomination(DUPLICATE_NOMINATION_MESSAGE)

        nomination = PunishmentNomination(
            lanpa_id=lanpa_id,
            punishment_id=punishment_id,
            nominated_user_id=nominated_user_id,
            nominated_by=requester_id,
            reason=reason,
            status=NominationStatus.PENDING,
            voting_ends_at=now + timedelta(hours=voting_hours)
        )
        db.add(nomination)
        try:
            db.flush()
        except IntegrityError:
            # a concurrent request won the uq_pending_nomination index
            raise DuplicateNomination(DUPLICATE_NOMINATION_MESSAGE)

        logger.info(
            f"Nomination {nomination.id} opened in lanpa {lanpa_id}: "
            f"{nominated_user_id} for punishment {punishment_id}, {voting_hours}h"
        )
        return nomination

    @staticmethod
    def get_nomination_by_id(db: Session, nomination_id: UUID) -> PunishmentNomination:
        nomination = db.query(PunishmentNomination).filter(
            PunishmentNomination.id == nomination_id
        ).first()
        if not nomination:
            raise NominationNotFound(nomination_id)
        return nomination

    @staticmethod
    def get_nomination(db: Session, nomination_id: UUID, requester_id: UUID) -> PunishmentNomination:
        nomination = NominationManager.get_nomination_by_id(db, nomination_id)
        lanpa = db.query(Lanpa).filter(Lanpa.id == nomination.lanpa_id).first()
        require_member(db, requester_id, lanpa, "You do not have access to this nomination")
        return nomination

    @staticmethod
    def list_lanpa_nominations(db: Session, lanpa_id: UUID, requester_id: UUID) -> List[PunishmentNomination]:
        lanpa = db.query(Lanpa).filter(Lanpa.id == lanpa_id).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)
        require_member(db, requester_id, lanpa, "Only lanpa members can view nominations")

        return db.query(PunishmentNomination).filter(
            PunishmentNomination.lanpa_id == lanpa_id
        ).order_by(PunishmentNomination.created_at.desc()).all()

    # ============ applied punishments ============

    @staticmethod
    def list_user_punishments(db: Session, user_id: UUID) -> Tuple[List[UserPunishment], int]:
        """
        Punishment history of one user, newest first

        Visible to any authenticated user.

        Returns:
            (UserPunishment rows with their punishment loaded, sum of point_impact)
        """
        rows = db.query(UserPunishment).options(
            joinedload(UserPunishment.punishment)
        ).filter(
            UserPunishment.user_id == user_id
        ).order_by(UserPunishment.applied_at.desc()).all()

        total_point_impact = db.query(
            func.coalesce(func.sum(Punishment.point_impact), 0)
        ).join(
            UserPunishment, UserPunishment.punishment_id == Punishment.id
        ).filter(UserPunishment.user_id == user_id).scalar()

        return rows, int(total_point_impact)

    @staticmethod
    def list_lanpa_punishments(db: Session, lanpa_id: UUID, requester_id: UUID) -> List[UserPunishment]:
        lanpa = db.query(Lanpa).filter(Lanpa.id == lanpa_id).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)
        require_member(db, requester_id, lanpa, "Only members can view lanpa punishments")

        return db.query(UserPunishment).options(
            joinedload(UserPunishment.punishment)
        ).filter(
            UserPunishment.lanpa_id == lanpa_id
        ).order_by(UserPunishment.applied_at.desc()).all()

    @staticmethod
    @transactional
    def cast_vote(
        db: Session,
        nomination_id: UUID,
        voter_id: UUID,
        vote: bool,
        now: Optional[datetime] = None
    ) -> Tuple[PunishmentVote, bool]:
        """
        Vote guilty (True) or innocent (False); voting again overwrites

        Returns:
            (PunishmentVote, created_new)

        Raises:
            NominationNotFound: nomination does not exist
            NotLanpaMember: voter is not a member of the nomination's lanpa
            SelfVoteNotAllowed: voter is the nominated user
            VotingClosed: nomination finalized or voting_ends_at passed
        """
        now = now or utcnow()

        nomination = with_nomination_lock(nomination_id, db).first()
        if not nomination:
            raise NominationNotFound(nomination_id)

        lanpa = db.query(Lanpa).filter(Lanpa.id == nomination.lanpa_id).first()
        require_member(db, voter_id, lanpa, "Only lanpa members can vote")

        if nomination.nominated_user_id == voter_id:
            raise SelfVoteNotAllowed("You cannot vote on your own nomination")

        if nomination.status != NominationStatus.PENDING:
            raise VotingClosed("Voting for this nomination has ended")

        if now >= as_utc(nomination.voting_ends_at):
            raise VotingClosed("Voting period has expired")

        created_new = NominationManager._find_vote(db, nomination_id, voter_id) is None

        stmt = upsert_statement(db, PunishmentVote).values(
            nomination_id=nomination_id,
            user_id=voter_id,
            vote=vote,
            created_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["nomination_id", "user_id"],
            set_={"vote": stmt.excluded.vote, "created_at": now}
        )
        db.execute(stmt)

        record = db.query(PunishmentVote).filter(
            PunishmentVote.nomination_id == nomination_id,
            PunishmentVote.user_id == voter_id
        ).populate_existing().one()

        logger.info(
            f"Nomination {nomination_id}: {voter_id} voted "
            f"{'guilty' if vote else 'innocent'} ({'new' if created_new else 'changed'})"
        )
        return record, created_new

    @staticmethod
    def tally(db: Session, nomination_id: UUID) -> Tuple[int, int]:
        votes = db.query(PunishmentVote).filter(PunishmentVote.nomination_id == nomination_id).all()
        return tally_nomination_votes(votes)

    @staticmethod
    @transactional
    def finalize(
        db: Session,
        nomination_id: UUID,
        requester_id: UUID,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Close the vote exactly once

        Flow:
        1. lock the nomination, must be PENDING and past voting_ends_at
        2. tally votes; guilty only on a strict majority (ties are innocent)
        3. CAS PENDING -> APPROVED / REJECTED
        4. APPROVED: create UserPunishment in the same transaction

        Returns:
            {nomination_id, status, votes_for, votes_against, punishment_applied}

        Raises:
            NominationNotFound: nomination does not exist
            NominationAlreadyFinalized: status is not PENDING
            VotingStillOpen: voting_ends_at not reached yet
            ConcurrentModification: another request finalized it first
        """
        now = now or utcnow()

        # 1. lock + preconditions
        nomination = with_nomination_lock(nomination_id, db).first()
        if not nomination:
            raise NominationNotFound(nomination_id)

        NominationStateMachine.validate_pending(nomination.status)

        if now < as_utc(nomination.voting_ends_at):
            raise VotingStillOpen("Voting period has not ended yet")

        # 2. tally
        votes_for, votes_against = NominationManager.tally(db, nomination_id)
        guilty = is_guilty(votes_for, votes_against)
        new_status = NominationStateMachine.resolve(guilty)

        # 3. CAS
        compare_and_set_status(
            db, PunishmentNomination, nomination_id, NominationStatus.PENDING,
            {"status": new_status}
        )

        # 4. apply
        if guilty:
            db.add(UserPunishment(
                user_id=nomination.nominated_user_id,
                punishment_id=nomination.punishment_id,
                lanpa_id=nomination.lanpa_id,
                nomination_id=nomination_id,
                notes=punishment_notes(votes_for, votes_against)
            ))
        db.flush()

        logger.info(
            f"Nomination {nomination_id} finalized by {requester_id}: "
            f"{new_status.value} ({votes_for} for, {votes_against} against)"
        )

        return {
            "nomination_id": nomination_id,
            "status": new_status,
            "votes_for": votes_for,
            "votes_against": votes_against,
            "punishment_applied": guilty,
        }

    # ============ notifications (after commit, best effort) ============

    @staticmethod
    def notify_nomination_created(db: Session, nomination: PunishmentNomination) -> int:
        try:
            lanpa = db.query(Lanpa).filter(Lanpa.id == nomination.lanpa_id).first()
            punishment = db.query(Punishment).filter(Punishment.id == nomination.punishment_id).first()
            rows = db.query(LanpaMember.user_id).filter(
                LanpaMember.lanpa_id == nomination.lanpa_id,
                LanpaMember.status.in_(ACTIVE_MEMBER_STATUSES),
                LanpaMember.user_id != nomination.nominated_user_id
            ).all()
            member_ids = [row.user_id for row in rows]
            if lanpa.admin_id != nomination.nominated_user_id and lanpa.admin_id not in member_ids:
                member_ids.append(lanpa.admin_id)
            data = {"nomination_id": nomination.id, "lanpa_id": nomination.lanpa_id}
            to_nominee = build_payload(
                NotificationType.PUNISHMENT_NOMINATION,
                "Punishment Nomination",
                f'You have been nominated for "{punishment.name}" in {lanpa.name}',
                data
            )
            to_members = build_payload(
                NotificationType.PUNISHMENT_NOMINATION,
                "New Punishment Vote",
                f"A punishment nomination is open for voting in {lanpa.name}",
                data
            )
        except Exception as e:
            logger.error(f"Failed to prepare nomination notifications for {nomination.id}: {e}", exc_info=True)
            db.rollback()
            return 0

        dispatcher = NotificationDispatcher(db)
        delivered = int(dispatcher.notify(nomination.nominated_user_id, to_nominee))
        return delivered + dispatcher.notify_many(member_ids, to_members)

    @staticmethod
    def notify_outcome(db: Session, nomination_id: UUID, approved: bool) -> bool:
        try:
            nomination = NominationManager.get_nomination_by_id(db, nomination_id)
            if approved:
                title = "Punishment Applied"
                body = f'The community voted: you received the "{nomination.punishment.name}" punishment'
            else:
                title = "Punishment Rejected"
                body = "The community voted: you were found innocent"
            payload = build_payload(
                NotificationType.PUNISHMENT_VOTING_ENDED,
                title,
                body,
                {"nomination_id": nomination.id, "lanpa_id": nomination.lanpa_id}
            )
        except Exception as e:
            logger.error(f"Failed to prepare outcome notification for {nomination_id}: {e}", exc_info=True)
            db.rollback()
            return False

        return NotificationDispatcher(db).notify(nomination.nominated_user_id, payload)

    # ============ helpers ============

    @staticmethod
    def _pending_nomination_exists(
        db: Session,
        lanpa_id: UUID,
        punishment_id: UUID,
        nominated_user_id: UUID
    ) -> bool:
        existing = db.query(PunishmentNomination.id).filter(
            PunishmentNomination.lanpa_id == lanpa_id,
            PunishmentNomination.punishment_id == punishment_id,
            PunishmentNomination.nominated_user_id == nominated_user_id,
            PunishmentNomination.status == NominationStatus.PENDING
        ).first()
        return existing is not None

    @staticmethod
    def _find_vote(db: Session, nomination_id: UUID, voter_id: UUID) -> Optional[PunishmentVote]:
        return db.query(PunishmentVote).filter(
            PunishmentVote.nomination_id == nomination_id,
            PunishmentVote.user_id == voter_id
        ).first()
