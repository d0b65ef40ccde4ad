from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
from typing import List, Optional
import logging

from core.exceptions import LanpAppException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./lanpapp.db"
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]
    # fixed seed makes game tiebreaks reproducible
    tiebreak_seed: Optional[int] = None

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite needs check_same_thread=False because FastAPI serves sync endpoints from a threadpool
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency: one Session per request

    The session is always closed when the request ends.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator: run a manager operation as one unit of work

    Usage:
        @transactional
        def some_business_logic(db: Session, ...):
            lanpa = Lanpa(...)
            db.add(lanpa)
            # no manual commit, the decorator commits

    On exception:
        - rollback
        - the exception is re-raised for the API layer

    Notes:
        - the first argument (or the `db` keyword) must be the Session
        - never commit inside the wrapped function

    Operations that rely on it for atomicity:
        LanpaManager: create_lanpa, update_lanpa, delete_lanpa, add_member,
            update_member_status, remove_member, transition_status (game
            resolution and CAS status write commit together), suggest_game,
            vote_game, select_game
        NominationManager: create_nomination, cast_vote, finalize (CAS to
            APPROVED and the UserPunishment insert commit together)
        NotificationManager: mark_read, mark_all_read, delete_notification

    Read-only helpers (get_*, list_*) and the post-commit notify_* calls are
    not wrapped.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except LanpAppException as e:
            logger.info(f"Transaction rolled back in {func.__name__}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
