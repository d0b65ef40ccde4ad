"""
Catalog API Endpoints: games and punishment definitions
"""
import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from models import Game, Punishment, User
from schemas import (
    GameCreate,
    GameResponse,
    PunishmentCreate,
    PunishmentResponse,
    UserPunishmentHistory,
    UserPunishmentResponse,
)
from core.nomination_manager import NominationManager
from core.exceptions import BadRequest, LanpAppException
from api.deps import get_current_user

router = APIRouter(prefix="/api", tags=["catalog"])
logger = logging.getLogger(__name__)


@router.post("/games", response_model=GameResponse, status_code=201)
def create_game(
    game_data: GameCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        if game_data.max_players is not None and game_data.max_players < game_data.min_players:
            raise BadRequest("max_players must be >= min_players")

        game = Game(**game_data.model_dump(), created_by=current_user.id)
        db.add(game)
        db.commit()
        db.refresh(game)
        return GameResponse.model_validate(game)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to create game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/games", response_model=List[GameResponse])
def list_games(db: Session = Depends(get_db)):
    games = db.query(Game).order_by(Game.name).all()
    return [GameResponse.model_validate(g) for g in games]


@router.post("/punishments", response_model=PunishmentResponse, status_code=201)
def create_punishment(
    punishment_data: PunishmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        punishment = Punishment(**punishment_data.model_dump(), created_by=current_user.id)
        db.add(punishment)
        db.commit()
        db.refresh(punishment)
        return PunishmentResponse.model_validate(punishment)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to create punishment: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/punishments", response_model=List[PunishmentResponse])
def list_punishments(db: Session = Depends(get_db)):
    punishments = db.query(Punishment).order_by(Punishment.name).all()
    return [PunishmentResponse.model_validate(p) for p in punishments]


@router.get("/punishments/users/{user_id}", response_model=UserPunishmentHistory)
def list_user_punishments(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Punishments applied to a user, newest first, with their total point impact"""
    try:
        rows, total_point_impact = NominationManager.list_user_punishments(db, user_id)
        return UserPunishmentHistory(
            punishments=[UserPunishmentResponse.model_validate(r) for r in rows],
            total_point_impact=total_point_impact
        )

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to list user punishments: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
