"""
Nomination API Endpoints

Punishment nominations: open, vote guilty/innocent, finalize once.
"""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from models import NominationStatus, User
from schemas import (
    FinalizeResponse,
    NominationCreate,
    NominationDetailResponse,
    NominationResponse,
    NominationVote,
    NominationVoteResponse,
)
from core.nomination_manager import NominationManager
from core.exceptions import LanpAppException
from api.deps import get_current_user

router = APIRouter(prefix="/api/nominations", tags=["nominations"])
logger = logging.getLogger(__name__)


@router.post("", response_model=NominationResponse, status_code=201)
def create_nomination(
    nomination_data: NominationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Nominate a member for a punishment

    Preconditions:
    - caller and nominated user are both members of the lanpa
    - no pending nomination for the same user + punishment in this lanpa

    Voting stays open for voting_hours (1-168, default 24).
    """
    try:
        nomination = NominationManager.create_nomination(
            db,
            current_user.id,
            nomination_data.lanpa_id,
            nomination_data.punishment_id,
            nomination_data.nominated_user_id,
            nomination_data.reason,
            nomination_data.voting_hours
        )
        response = NominationResponse.model_validate(nomination)

        NominationManager.notify_nomination_created(db, nomination)
        return response

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to create nomination: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/lanpa/{lanpa_id}", response_model=List[NominationResponse])
def list_lanpa_nominations(
    lanpa_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Nominations of one lanpa, newest first"""
    try:
        nominations = NominationManager.list_lanpa_nominations(db, lanpa_id, current_user.id)
        return [NominationResponse.model_validate(n) for n in nominations]

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to list nominations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{nomination_id}", response_model=NominationDetailResponse)
def get_nomination(
    nomination_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Nomination with its current guilty / innocent tally"""
    try:
        nomination = NominationManager.get_nomination(db, nomination_id, current_user.id)
        votes_for, votes_against = NominationManager.tally(db, nomination_id)

        return NominationDetailResponse(
            **NominationResponse.model_validate(nomination).model_dump(),
            votes_for=votes_for,
            votes_against=votes_against
        )

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to get nomination: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{nomination_id}/vote", response_model=NominationVoteResponse)
def vote_nomination(
    nomination_id: UUID,
    vote_data: NominationVote,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Vote guilty (true) or innocent (false)

    Errors:
        403 not a member / own nomination, 400 voting closed, 404 unknown nomination
    """
    try:
        record, created_new = NominationManager.cast_vote(
            db, nomination_id, current_user.id, vote_data.vote
        )
        return NominationVoteResponse.model_validate(record)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to vote on nomination: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{nomination_id}/finalize", response_model=FinalizeResponse)
def finalize_nomination(
    nomination_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Close the vote once voting_ends_at has passed

    Strict majority of guilty votes approves and applies the punishment;
    a tie rejects. The nominated user is notified afterwards.
    """
    try:
        outcome = NominationManager.finalize(db, nomination_id, current_user.id)

        NominationManager.notify_outcome(
            db, nomination_id, outcome["status"] == NominationStatus.APPROVED
        )
        return FinalizeResponse(**outcome)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to finalize nomination: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
