"""
Authorization guards

Each guard takes (actor, resource) and either returns or raises.
Managers call them before touching any row; the resolvers never see them.
"""
from uuid import UUID

from sqlalchemy.orm import Session

from models import Lanpa, LanpaMember, ACTIVE_MEMBER_STATUSES
from core.exceptions import NotLanpaAdmin, NotLanpaMember


def is_lanpa_admin(user_id: UUID, lanpa: Lanpa) -> bool:
    return lanpa.admin_id == user_id


def is_lanpa_member(db: Session, user_id: UUID, lanpa: Lanpa) -> bool:
    """
    The admin always counts as a member; everyone else needs a
    CONFIRMED or ATTENDED membership row.
    """
    if is_lanpa_admin(user_id, lanpa):
        return True

    membership = db.query(LanpaMember.id).filter(
        LanpaMember.lanpa_id == lanpa.id,
        LanpaMember.user_id == user_id,
        LanpaMember.status.in_(ACTIVE_MEMBER_STATUSES)
    ).first()
    return membership is not None


def require_admin(user_id: UUID, lanpa: Lanpa, message: str = "Only the admin can do this") -> None:
    if not is_lanpa_admin(user_id, lanpa):
        raise NotLanpaAdmin(message)


def require_member(
    db: Session,
    user_id: UUID,
    lanpa: Lanpa,
    message: str = "Only lanpa members can do this"
) -> None:
    if not is_lanpa_member(db, user_id, lanpa):
        raise NotLanpaMember(message)
