"""
Lanpa Manager: lifecycle and game voting for one lanpa

Responsibilities:
1. create, list, edit and delete lanpas; manage membership
2. lifecycle transitions (validated by LanpaStateMachine, written with CAS)
3. game suggestions, game votes and results
4. admin override of the selected game

Every mutating operation is @transactional; notifications are sent by the
caller after commit through notify_status_change().
"""
import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    Game,
    GameSuggestion,
    GameVote,
    Lanpa,
    LanpaMember,
    LanpaStatus,
    MemberStatus,
    NotificationType,
    PunishmentNomination,
    PunishmentVote,
    User,
    UserPunishment,
    ACTIVE_MEMBER_STATUSES,
    utcnow,
)
from core.state_machine import LanpaStateMachine
from core.locks import with_lanpa_lock, compare_and_set_status, upsert_statement
from core.permissions import is_lanpa_admin, require_admin, require_member
from core.exceptions import (
    AlreadyMember,
    BadRequest,
    DuplicateSuggestion,
    Forbidden,
    GameNotFound,
    GameNotSuggested,
    LanpaNotFound,
    MemberNotFound,
    UserNotFound,
    VotingClosed,
)
from services.game_vote_service import resolve_game_votes, winning_game_id
from services.notification_service import NotificationDispatcher, build_payload, build_status_notification
from database import transactional

logger = logging.getLogger(__name__)

# fields PATCH /api/lanpas/{id} may change
EDITABLE_FIELDS = ("name", "description", "scheduled_date", "actual_date")

# lanpas listed for a user: pending invitations show up too
LISTED_MEMBER_STATUSES = (MemberStatus.INVITED, MemberStatus.CONFIRMED, MemberStatus.ATTENDED)

# statuses a member (or the admin) may set after the invitation
ANSWER_STATUSES = (MemberStatus.CONFIRMED, MemberStatus.DECLINED, MemberStatus.ATTENDED)


class LanpaManager:
    """Lanpa lifecycle manager"""

    # ============ Lanpas & members ============

    @staticmethod
    @transactional
    def create_lanpa(
        db: Session,
        admin_id: UUID,
        name: str,
        description: Optional[str] = None,
        scheduled_date: Optional[datetime] = None
    ) -> Lanpa:
        """New lanpas always start in DRAFT, owned by their creator."""
        lanpa = Lanpa(
            name=name,
            description=description,
            admin_id=admin_id,
            scheduled_date=scheduled_date,
            status=LanpaStatus.DRAFT
        )
        db.add(lanpa)
        db.flush()

        logger.info(f"Created lanpa {lanpa.id} ({name}) by {admin_id}")
        return lanpa

    @staticmethod
    def get_lanpa_by_id(db: Session, lanpa_id: UUID) -> Lanpa:
        """
        Raises:
            LanpaNotFound: lanpa does not exist
        """
        lanpa = db.query(Lanpa).filter(Lanpa.id == lanpa_id).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)
        return lanpa

    @staticmethod
    def get_lanpa(db: Session, lanpa_id: UUID, requester_id: UUID) -> Lanpa:
        """
        Member-only read of one lanpa

        Raises:
            LanpaNotFound: lanpa does not exist
            NotLanpaMember: requester is neither admin nor confirmed/attended member
        """
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        require_member(db, requester_id, lanpa, "You do not have access to this lanpa")
        return lanpa

    @staticmethod
    def list_lanpas(
        db: Session,
        user_id: UUID,
        statuses: Optional[List[LanpaStatus]] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Lanpa], int]:
        """
        Lanpas the user administers or belongs to (invited included), newest first

        Returns:
            (page of lanpas, total matching)
        """
        member_of = select(LanpaMember.lanpa_id).where(
            LanpaMember.user_id == user_id,
            LanpaMember.status.in_(LISTED_MEMBER_STATUSES)
        )
        query = db.query(Lanpa).filter(
            or_(Lanpa.admin_id == user_id, Lanpa.id.in_(member_of))
        )
        if statuses:
            query = query.filter(Lanpa.status.in_(statuses))

        total = query.count()
        lanpas = query.order_by(Lanpa.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return lanpas, total

    @staticmethod
    @transactional
    def update_lanpa(db: Session, lanpa_id: UUID, requester_id: UUID, changes: Dict[str, Any]) -> Lanpa:
        """
        Edit name / description / dates (admin only); status has its own endpoint

        Raises:
            LanpaNotFound, NotLanpaAdmin
        """
        lanpa = with_lanpa_lock(lanpa_id, db).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)
        require_admin(requester_id, lanpa, "Only the admin can update this lanpa")

        for field, value in changes.items():
            if field in EDITABLE_FIELDS:
                setattr(lanpa, field, value)
        lanpa.updated_at = utcnow()
        db.flush()

        logger.info(f"Lanpa {lanpa_id} updated by {requester_id}: {sorted(changes)}")
        return lanpa

    @staticmethod
    def notify_lanpa_updated(db: Session, lanpa: Lanpa) -> int:
        """Tell confirmed/attended members about an edit; best effort, never raises"""
        try:
            rows = db.query(LanpaMember.user_id).filter(
                LanpaMember.lanpa_id == lanpa.id,
                LanpaMember.status.in_(ACTIVE_MEMBER_STATUSES)
            ).all()
            payload = build_payload(
                NotificationType.LANPA_UPDATED,
                "Lanpa Updated",
                f"{lanpa.name} has been updated",
                {"lanpa_id": lanpa.id}
            )
        except Exception as e:
            logger.error(f"Failed to prepare update notification for lanpa {lanpa.id}: {e}", exc_info=True)
            db.rollback()
            return 0

        return NotificationDispatcher(db).notify_many([row.user_id for row in rows], payload)

    @staticmethod
    @transactional
    def delete_lanpa(db: Session, lanpa_id: UUID, requester_id: UUID) -> None:
        """
        Delete a lanpa and everything hanging off it (admin only)

        Applied punishments survive as history, detached from the lanpa.

        Raises:
            LanpaNotFound, NotLanpaAdmin
        """
        lanpa = with_lanpa_lock(lanpa_id, db).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)
        require_admin(requester_id, lanpa, "Only the admin can delete this lanpa")

        nomination_ids = select(PunishmentNomination.id).where(
            PunishmentNomination.lanpa_id == lanpa_id
        )
        db.query(PunishmentVote).filter(
            PunishmentVote.nomination_id.in_(nomination_ids)
        ).delete(synchronize_session=False)
        db.query(UserPunishment).filter(
            UserPunishment.lanpa_id == lanpa_id
        ).update({"lanpa_id": None, "nomination_id": None}, synchronize_session=False)
        for model in (PunishmentNomination, GameVote, GameSuggestion):
            db.query(model).filter(model.lanpa_id == lanpa_id).delete(synchronize_session=False)

        # members go with the lanpa through the relationship cascade
        db.delete(lanpa)
        db.flush()

        logger.info(f"Lanpa {lanpa_id} deleted by {requester_id}")

    @staticmethod
    @transactional
    def add_member(
        db: Session,
        lanpa_id: UUID,
        user_id: UUID,
        requester_id: UUID,
        status: MemberStatus = MemberStatus.INVITED
    ) -> LanpaMember:
        """
        Invite a user (admin only)

        Raises:
            LanpaNotFound, NotLanpaAdmin, UserNotFound, AlreadyMember
        """
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        require_admin(requester_id, lanpa, "Only the admin can add members")

        if not db.query(User.id).filter(User.id == user_id).first():
            raise UserNotFound(user_id)

        existing = db.query(LanpaMember).filter(
            LanpaMember.lanpa_id == lanpa_id,
            LanpaMember.user_id == user_id
        ).first()
        if existing or user_id == lanpa.admin_id:
            raise AlreadyMember(f"User {user_id} is already a member of this lanpa")

        member = LanpaMember(lanpa_id=lanpa_id, user_id=user_id, status=status)
        db.add(member)
        db.flush()

        logger.info(f"User {user_id} added to lanpa {lanpa_id} as {MemberStatus(status).value}")
        return member

    @staticmethod
    @transactional
    def update_member_status(
        db: Session,
        lanpa_id: UUID,
        user_id: UUID,
        status: MemberStatus,
        requester_id: UUID
    ) -> LanpaMember:
        """
        Change a membership status: the member answers their own invitation,
        the admin can also mark ATTENDED after the event

        Only CONFIRMED, DECLINED and ATTENDED can be set; nobody goes back to INVITED.

        Raises:
            LanpaNotFound, Forbidden, BadRequest (status), MemberNotFound
        """
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        if requester_id != user_id and not is_lanpa_admin(requester_id, lanpa):
            raise Forbidden("Only the member or the admin can change this membership")

        if MemberStatus(status) not in ANSWER_STATUSES:
            raise BadRequest("Invalid status")

        member = LanpaManager._get_member(db, lanpa_id, user_id)
        member.status = status
        db.flush()

        logger.info(f"Membership of {user_id} in lanpa {lanpa_id} set to {MemberStatus(status).value}")
        return member

    @staticmethod
    @transactional
    def remove_member(db: Session, lanpa_id: UUID, user_id: UUID, requester_id: UUID) -> None:
        """
        Remove a member (admin only); their game vote goes with them

        Raises:
            LanpaNotFound, NotLanpaAdmin, BadRequest (admin removing themselves), MemberNotFound
        """
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        require_admin(requester_id, lanpa, "Only the admin can remove members")

        if user_id == requester_id:
            raise BadRequest("You cannot remove yourself from the lanpa")

        member = LanpaManager._get_member(db, lanpa_id, user_id)
        db.query(GameVote).filter(
            GameVote.lanpa_id == lanpa_id,
            GameVote.user_id == user_id
        ).delete(synchronize_session="fetch")
        db.delete(member)
        db.flush()

        logger.info(f"User {user_id} removed from lanpa {lanpa_id} by {requester_id}")

    @staticmethod
    def get_notification_recipients(db: Session, lanpa: Lanpa) -> List[UUID]:
        """Confirmed/attended members plus the admin"""
        rows = db.query(LanpaMember.user_id).filter(
            LanpaMember.lanpa_id == lanpa.id,
            LanpaMember.status.in_(ACTIVE_MEMBER_STATUSES)
        ).all()
        recipients = [row.user_id for row in rows]
        if lanpa.admin_id not in recipients:
            recipients.append(lanpa.admin_id)
        return recipients

    # ============ Lifecycle ============

    @staticmethod
    @transactional
    def transition_status(
        db: Session,
        lanpa_id: UUID,
        target: LanpaStatus,
        requester_id: UUID,
        rng: random.Random,
        now: Optional[datetime] = None
    ) -> Lanpa:
        """
        Move a lanpa to a new lifecycle status

        Flow:
        1. lock the lanpa row
        2. admin check
        3. validate the edge against LanpaStateMachine
        4. VOTING_ACTIVE -> IN_PROGRESS: resolve the game vote, keep the winner
        5. write status (+ selected_game_id, actual_date) with compare-and-swap

        Raises:
            LanpaNotFound: lanpa does not exist
            NotLanpaAdmin: requester is not the admin
            InvalidStateTransition: edge not in the table
            ConcurrentModification: status changed since it was read
        """
        target = LanpaStatus(target)
        now = now or utcnow()

        # 1. lock
        lanpa = with_lanpa_lock(lanpa_id, db).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)

        # 2. admin only
        require_admin(requester_id, lanpa, "Only the admin can change lanpa status")

        # 3. transition table
        current = LanpaStatus(lanpa.status)
        LanpaStateMachine.validate_transition(current, target)

        values: Dict[str, Any] = {"status": target, "updated_at": now}

        # 4. close the game vote
        if LanpaStateMachine.selects_game(current, target):
            outcome = LanpaManager._resolve(db, lanpa_id, rng)
            game_id = winning_game_id(outcome)
            if game_id is not None:
                values["selected_game_id"] = game_id
                logger.info(
                    f"Lanpa {lanpa_id} selected game {game_id} "
                    f"(random tiebreaker: {outcome['was_random_tiebreaker']})"
                )
            else:
                logger.info(f"Lanpa {lanpa_id} started without suggestions, no game selected")

        if target == LanpaStatus.IN_PROGRESS:
            values["actual_date"] = now

        # 5. CAS write
        compare_and_set_status(db, Lanpa, lanpa_id, current, values)
        db.flush()
        db.refresh(lanpa)

        logger.info(f"Lanpa {lanpa_id} status {current.value} -> {target.value}")
        return lanpa

    @staticmethod
    def notify_status_change(db: Session, lanpa: Lanpa) -> int:
        """
        Tell members about the lanpa's current status

        Best effort: called after transition_status() committed, never raises.
        """
        try:
            recipients = LanpaManager.get_notification_recipients(db, lanpa)
            payload = build_status_notification(lanpa.id, lanpa.name, lanpa.status)
        except Exception as e:
            logger.error(f"Failed to prepare status notification for lanpa {lanpa.id}: {e}", exc_info=True)
            db.rollback()
            return 0

        return NotificationDispatcher(db).notify_many(recipients, payload)

    # ============ Games ============

    @staticmethod
    @transactional
    def suggest_game(db: Session, lanpa_id: UUID, game_id: UUID, requester_id: UUID) -> GameSuggestion:
        """
        Propose a game while suggestions are open (VOTING_GAMES)

        Raises:
            LanpaNotFound, NotLanpaMember, VotingClosed, GameNotFound, DuplicateSuggestion
        """
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        require_member(db, requester_id, lanpa, "Only members can suggest games")

        if lanpa.status != LanpaStatus.VOTING_GAMES:
            raise VotingClosed("Game suggestions are not open for this lanpa")

        if not db.query(Game.id).filter(Game.id == game_id).first():
            raise GameNotFound(game_id)

        existing = db.query(GameSuggestion.id).filter(
            GameSuggestion.lanpa_id == lanpa_id,
            GameSuggestion.game_id == game_id
        ).first()
        if existing:
            raise DuplicateSuggestion("This game has already been suggested")

        suggestion = GameSuggestion(lanpa_id=lanpa_id, game_id=game_id, suggested_by=requester_id)
        db.add(suggestion)
        try:
            db.flush()
        except IntegrityError:
            raise DuplicateSuggestion("This game has already been suggested")

        logger.info(f"Game {game_id} suggested for lanpa {lanpa_id} by {requester_id}")
        return suggestion

    @staticmethod
    def list_suggestions(db: Session, lanpa_id: UUID, requester_id: UUID) -> List[GameSuggestion]:
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        require_member(db, requester_id, lanpa, "Only members can view lanpa games")
        return LanpaManager._suggestions(db, lanpa_id)

    @staticmethod
    @transactional
    def vote_game(
        db: Session,
        lanpa_id: UUID,
        game_id: UUID,
        requester_id: UUID
    ) -> Tuple[GameVote, bool]:
        """
        Cast or change a member's game vote (upsert on lanpa + user)

        Returns:
            (GameVote, created_new)

        Raises:
            LanpaNotFound, NotLanpaMember, VotingClosed, GameNotSuggested
        """
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        require_member(db, requester_id, lanpa, "Only members can vote")

        if lanpa.status != LanpaStatus.VOTING_ACTIVE:
            raise VotingClosed("Voting is not open for this lanpa")

        LanpaManager._require_suggested(db, lanpa_id, game_id)

        created_new = LanpaManager._find_game_vote(db, lanpa_id, requester_id) is None

        # a first vote can not be locked in advance: let the unique
        # (lanpa_id, user_id) constraint arbitrate concurrent first votes
        now = utcnow()
        stmt = upsert_statement(db, GameVote).values(
            lanpa_id=lanpa_id,
            game_id=game_id,
            user_id=requester_id,
            created_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["lanpa_id", "user_id"],
            set_={"game_id": stmt.excluded.game_id, "created_at": now}
        )
        db.execute(stmt)

        vote = db.query(GameVote).filter(
            GameVote.lanpa_id == lanpa_id,
            GameVote.user_id == requester_id
        ).populate_existing().one()

        logger.info(
            f"Game vote {'created' if created_new else 'changed'} by {requester_id} "
            f"in lanpa {lanpa_id}: {game_id}"
        )
        return vote, created_new

    @staticmethod
    def get_game_results(
        db: Session,
        lanpa_id: UUID,
        requester_id: UUID,
        rng: random.Random
    ) -> Dict[str, Any]:
        """
        Read-only vote results

        Once a game has been committed to selected_game_id that game is
        reported as the winner; the tiebreak is not drawn again. A lanpa that
        started without a committed game reports no winner.
        """
        lanpa = LanpaManager.get_lanpa_by_id(db, lanpa_id)
        require_member(db, requester_id, lanpa, "Only members can view results")

        # started without a committed game (DRAFT -> IN_PROGRESS): nothing to draw
        started = LanpaStatus(lanpa.status) in (LanpaStatus.IN_PROGRESS, LanpaStatus.COMPLETED)
        pick_winner = not started or lanpa.selected_game_id is not None

        return LanpaManager._resolve(db, lanpa_id, rng, lanpa.selected_game_id, pick_winner)

    @staticmethod
    @transactional
    def select_game(db: Session, lanpa_id: UUID, game_id: UUID, requester_id: UUID) -> Lanpa:
        """
        Admin override of the selected game while the lanpa is IN_PROGRESS

        Raises:
            LanpaNotFound, NotLanpaAdmin, VotingClosed, GameNotSuggested
        """
        lanpa = with_lanpa_lock(lanpa_id, db).first()
        if not lanpa:
            raise LanpaNotFound(lanpa_id)
        require_admin(requester_id, lanpa, "Only the admin can select a game")

        if lanpa.status != LanpaStatus.IN_PROGRESS:
            raise VotingClosed("Game selection is only allowed when the lanpa is in progress")

        LanpaManager._require_suggested(db, lanpa_id, game_id)

        compare_and_set_status(
            db, Lanpa, lanpa_id, LanpaStatus.IN_PROGRESS,
            {"selected_game_id": game_id, "updated_at": utcnow()}
        )
        db.flush()
        db.refresh(lanpa)

        logger.info(f"Admin {requester_id} selected game {game_id} for lanpa {lanpa_id}")
        return lanpa

    # ============ helpers ============

    @staticmethod
    def _suggestions(db: Session, lanpa_id: UUID) -> List[GameSuggestion]:
        return db.query(GameSuggestion).filter(
            GameSuggestion.lanpa_id == lanpa_id
        ).order_by(GameSuggestion.created_at).all()

    @staticmethod
    def _resolve(
        db: Session,
        lanpa_id: UUID,
        rng: random.Random,
        selected_game_id: Optional[UUID] = None,
        pick_winner: bool = True
    ) -> Dict[str, Any]:
        suggestions = LanpaManager._suggestions(db, lanpa_id)
        votes = db.query(GameVote).filter(GameVote.lanpa_id == lanpa_id).all()
        return resolve_game_votes(suggestions, votes, rng, selected_game_id, pick_winner)

    @staticmethod
    def _require_suggested(db: Session, lanpa_id: UUID, game_id: UUID) -> None:
        suggestion = db.query(GameSuggestion.id).filter(
            GameSuggestion.lanpa_id == lanpa_id,
            GameSuggestion.game_id == game_id
        ).first()
        if not suggestion:
            raise GameNotSuggested("This game was not suggested for this lanpa")

    @staticmethod
    def _find_game_vote(db: Session, lanpa_id: UUID, user_id: UUID) -> Optional[GameVote]:
        return db.query(GameVote).filter(
            GameVote.lanpa_id == lanpa_id,
            GameVote.user_id == user_id
        ).first()

    @staticmethod
    def _get_member(db: Session, lanpa_id: UUID, user_id: UUID) -> LanpaMember:
        member = db.query(LanpaMember).filter(
            LanpaMember.lanpa_id == lanpa_id,
            LanpaMember.user_id == user_id
        ).first()
        if not member:
            raise MemberNotFound(f"User {user_id} is not a member of lanpa {lanpa_id}")
        return member
