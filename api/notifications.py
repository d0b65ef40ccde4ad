"""
Notification API Endpoints: the caller's inbox
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models import User
from schemas import MessageResponse, NotificationListResponse, NotificationResponse
from core.notification_manager import NotificationManager
from core.exceptions import LanpAppException
from api.deps import get_current_user

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Newest first; unread_count always covers the whole inbox"""
    try:
        notifications, unread_count, total = NotificationManager.list_for_user(
            db, current_user.id, unread_only, page, limit
        )
        return NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            unread_count=unread_count,
            total=total
        )

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to list notifications: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/read-all", response_model=MessageResponse)
def mark_all_read(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        NotificationManager.mark_all_read(db, current_user.id)
        return MessageResponse(message="All notifications marked as read")

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to mark notifications read: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        notification = NotificationManager.mark_read(db, notification_id, current_user.id)
        return NotificationResponse.model_validate(notification)

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to mark notification read: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{notification_id}", response_model=MessageResponse)
def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        NotificationManager.delete_notification(db, notification_id, current_user.id)
        return MessageResponse(message="Notification deleted")

    except LanpAppException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete notification: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
