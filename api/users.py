"""
User API Endpoints

Responsibilities:
1. register a user profile (the identity provider owns credentials; this
   service only keeps the profile the rest of the API references)
2. look up a profile
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import User
from schemas import UserCreate, UserResponse
from core.exceptions import Conflict, LanpAppException, UserNotFound

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.post("", response_model=UserResponse, status_code=201)
def create_user(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Create a user profile

    Flow:
    1. reject a taken username (409)
    2. store the profile with its notification preferences
    """
    try:
        if db.query(User.id).filter(User.username == user_data.username).first():
            raise Conflict(f"Username {user_data.username} is already taken")

        user = User(
            username=user_data.username,
            display_name=user_data.display_name,
            notification_preferences=user_data.notification_preferences
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"User {user.id} ({user.username}) registered")
        return UserResponse.model_validate(user)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to create user: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: UUID, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFound(user_id)
        return UserResponse.model_validate(user)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to get user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
