"""
Lanpa API Endpoints

Key points:
1. every business rule lives in LanpaManager; endpoints only translate
2. status changes notify members after commit (best effort)
3. domain errors propagate to the handlers in main.py; anything else is a logged 500
"""
import logging
import random
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models import LanpaStatus, User
from schemas import (
    GameChoice,
    GameResponse,
    GameResultsResponse,
    GameVoteResponse,
    GameVoteResult,
    LanpaCreate,
    LanpaListResponse,
    LanpaResponse,
    LanpaUpdate,
    MemberAdd,
    MemberResponse,
    MemberStatusUpdate,
    MessageResponse,
    StatusUpdate,
    SuggestionResponse,
    UserPunishmentResponse,
)
from core.lanpa_manager import LanpaManager
from core.nomination_manager import NominationManager
from core.exceptions import BadRequest, LanpAppException
from api.deps import get_current_user, get_rng

router = APIRouter(prefix="/api/lanpas", tags=["lanpas"])
logger = logging.getLogger(__name__)


def _results_response(outcome: Dict[str, Any]) -> GameResultsResponse:
    results = [
        GameVoteResult(
            game_id=entry["game_id"],
            game=GameResponse.model_validate(entry["game"]) if entry["game"] else None,
            votes=entry["votes"],
            is_winner=entry["is_winner"]
        )
        for entry in outcome["results"]
    ]
    winner = outcome["winner"]
    return GameResultsResponse(
        results=results,
        winner=GameResponse.model_validate(winner) if winner else None,
        was_random_tiebreaker=outcome["was_random_tiebreaker"]
    )


def _parse_statuses(raw: Optional[str]) -> Optional[List[LanpaStatus]]:
    """Comma separated filter, e.g. draft,voting_games -> [DRAFT, VOTING_GAMES]"""
    if not raw:
        return None
    try:
        return [LanpaStatus(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise BadRequest(f"Invalid status filter: {raw}")


@router.post("", response_model=LanpaResponse, status_code=201)
def create_lanpa(
    lanpa_data: LanpaCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a lanpa in DRAFT; the caller becomes its admin"""
    try:
        lanpa = LanpaManager.create_lanpa(
            db,
            current_user.id,
            lanpa_data.name,
            lanpa_data.description,
            lanpa_data.scheduled_date
        )
        return LanpaResponse.model_validate(lanpa)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to create lanpa: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{lanpa_id}", response_model=LanpaResponse)
def get_lanpa(lanpa_id: UUID, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        lanpa = LanpaManager.get_lanpa(db, lanpa_id, current_user.id)
        return LanpaResponse.model_validate(lanpa)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to get lanpa: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=LanpaListResponse)
def list_lanpas(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Lanpas the caller administers or belongs to, newest first

    status: optional comma separated filter, e.g. "draft,voting_games"
    """
    try:
        statuses = _parse_statuses(status)
        lanpas, total = LanpaManager.list_lanpas(db, current_user.id, statuses, page, limit)
        return LanpaListResponse(
            lanpas=[LanpaResponse.model_validate(lanpa) for lanpa in lanpas],
            page=page,
            limit=limit,
            total=total
        )

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to list lanpas: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/{lanpa_id}", response_model=LanpaResponse)
def update_lanpa(
    lanpa_id: UUID,
    lanpa_data: LanpaUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Edit name / description / dates (admin endpoint); members are notified"""
    try:
        lanpa = LanpaManager.update_lanpa(
            db, lanpa_id, current_user.id, lanpa_data.model_dump(exclude_unset=True)
        )
        response = LanpaResponse.model_validate(lanpa)

        LanpaManager.notify_lanpa_updated(db, lanpa)
        return response

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to update lanpa: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{lanpa_id}", response_model=MessageResponse)
def delete_lanpa(lanpa_id: UUID, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Delete the lanpa with its members, games and nominations (admin endpoint)"""
    try:
        LanpaManager.delete_lanpa(db, lanpa_id, current_user.id)
        return MessageResponse(message="Lanpa deleted successfully")

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete lanpa: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/{lanpa_id}/status", response_model=LanpaResponse)
def update_status(
    lanpa_id: UUID,
    status_data: StatusUpdate,
    current_user: User = Depends(get_current_user),
    rng: random.Random = Depends(get_rng),
    db: Session = Depends(get_db)
):
    """
    Change the lifecycle status (admin endpoint)

    Flow:
    1. LanpaManager.transition_status(): validate, resolve the game vote when
       closing VOTING_ACTIVE, compare-and-swap write, commit
    2. notify confirmed/attended members (failures are logged only)

    Errors:
        403 not the admin, 404 unknown lanpa, 400 edge not allowed,
        409 status changed concurrently
    """
    try:
        lanpa = LanpaManager.transition_status(
            db,
            lanpa_id,
            status_data.status,
            current_user.id,
            rng
        )
        response = LanpaResponse.model_validate(lanpa)

        LanpaManager.notify_status_change(db, lanpa)
        return response

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to change lanpa status: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lanpa_id}/members", response_model=MemberResponse, status_code=201)
def add_member(
    lanpa_id: UUID,
    member_data: MemberAdd,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Invite a user (admin endpoint)"""
    try:
        member = LanpaManager.add_member(
            db, lanpa_id, member_data.user_id, current_user.id, member_data.status
        )
        return MemberResponse.model_validate(member)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to add member: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/{lanpa_id}/members/{user_id}", response_model=MemberResponse)
def update_member(
    lanpa_id: UUID,
    user_id: UUID,
    member_data: MemberStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Confirm / decline an invitation, or mark attendance (admin)"""
    try:
        member = LanpaManager.update_member_status(
            db, lanpa_id, user_id, member_data.status, current_user.id
        )
        return MemberResponse.model_validate(member)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to update member: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{lanpa_id}/members/{user_id}", response_model=MessageResponse)
def remove_member(
    lanpa_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove a member and their game vote (admin endpoint)"""
    try:
        LanpaManager.remove_member(db, lanpa_id, user_id, current_user.id)
        return MessageResponse(message="Member removed successfully")

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to remove member: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{lanpa_id}/punishments", response_model=List[UserPunishmentResponse])
def list_punishments(lanpa_id: UUID, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Punishments applied in this lanpa, newest first (members only)"""
    try:
        rows = NominationManager.list_lanpa_punishments(db, lanpa_id, current_user.id)
        return [UserPunishmentResponse.model_validate(r) for r in rows]

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to list lanpa punishments: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lanpa_id}/suggest-game", response_model=SuggestionResponse, status_code=201)
def suggest_game(
    lanpa_id: UUID,
    choice: GameChoice,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Suggest a game (members, VOTING_GAMES only)

    Errors:
        403 not a member, 400 suggestions closed, 404 unknown game,
        409 already suggested
    """
    try:
        suggestion = LanpaManager.suggest_game(db, lanpa_id, choice.game_id, current_user.id)
        return SuggestionResponse.model_validate(suggestion)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to suggest game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{lanpa_id}/games", response_model=List[SuggestionResponse])
def list_games(lanpa_id: UUID, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Games suggested for this lanpa, oldest first"""
    try:
        suggestions = LanpaManager.list_suggestions(db, lanpa_id, current_user.id)
        return [SuggestionResponse.model_validate(s) for s in suggestions]

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to list lanpa games: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lanpa_id}/vote-game", response_model=GameVoteResponse)
def vote_game(
    lanpa_id: UUID,
    choice: GameChoice,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Vote for a suggested game (members, VOTING_ACTIVE only)

    Voting again replaces the previous vote.
    """
    try:
        vote, created_new = LanpaManager.vote_game(db, lanpa_id, choice.game_id, current_user.id)
        return GameVoteResponse.model_validate(vote)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to vote game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{lanpa_id}/game-results", response_model=GameResultsResponse)
def get_game_results(
    lanpa_id: UUID,
    current_user: User = Depends(get_current_user),
    rng: random.Random = Depends(get_rng),
    db: Session = Depends(get_db)
):
    """
    Current vote standings

    Returns:
        - results: suggestions with vote counts, most votes first
        - winner: winning game (the committed one once the lanpa started)
        - was_random_tiebreaker: the winner came from a draw among tied games
    """
    try:
        outcome = LanpaManager.get_game_results(db, lanpa_id, current_user.id, rng)
        return _results_response(outcome)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to get game results: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{lanpa_id}/select-game", response_model=LanpaResponse)
def select_game(
    lanpa_id: UUID,
    choice: GameChoice,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Override the selected game (admin endpoint, IN_PROGRESS only)"""
    try:
        lanpa = LanpaManager.select_game(db, lanpa_id, choice.game_id, current_user.id)
        return LanpaResponse.model_validate(lanpa)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to select game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
