"""
Shared FastAPI dependencies

- get_current_user: caller identity from the X-User-Id header
  (the identity provider sits in front of this service and forwards the id)
- get_rng: random source for game vote tiebreaks
"""
import random
from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from database import get_db, get_settings
from models import User
from core.exceptions import Unauthorized


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> User:
    if not x_user_id:
        raise Unauthorized("No user id provided")

    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise Unauthorized("Invalid user id")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthorized("User not found")
    return user


@lru_cache()
def _shared_rng() -> random.Random:
    return random.Random(get_settings().tiebreak_seed)


def get_rng() -> random.Random:
    return _shared_rng()
