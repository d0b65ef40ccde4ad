"""
Notification Manager: a user's own in-app inbox

Delivery happens in services.notification_service; this manager only reads
and updates notifications that already exist. Every operation is scoped to
the caller: another user's notification is reported as not found.
"""
import logging
from typing import List, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from models import Notification
from core.exceptions import NotificationNotFound
from database import transactional

logger = logging.getLogger(__name__)


class NotificationManager:
    """Notification inbox manager"""

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: UUID,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Notification], int, int]:
        """
        Page through a user's notifications, newest first

        Returns:
            (page of notifications, unread_count, total matching the filter)
        """
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))

        total = query.count()
        notifications = query.order_by(
            Notification.created_at.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        unread_count = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read.is_(False)
        ).count()

        return notifications, unread_count, total

    @staticmethod
    @transactional
    def mark_read(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
        """
        Raises:
            NotificationNotFound: unknown id or owned by someone else
        """
        notification = NotificationManager._get_own(db, notification_id, user_id)
        notification.read = True
        db.flush()
        return notification

    @staticmethod
    @transactional
    def mark_all_read(db: Session, user_id: UUID) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read.is_(False)
        ).update({"read": True}, synchronize_session="fetch")

        logger.info(f"Marked {updated} notifications read for {user_id}")
        return updated

    @staticmethod
    @transactional
    def delete_notification(db: Session, notification_id: UUID, user_id: UUID) -> None:
        notification = NotificationManager._get_own(db, notification_id, user_id)
        db.delete(notification)
        db.flush()

        logger.info(f"Notification {notification_id} deleted by {user_id}")

    @staticmethod
    def _get_own(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            raise NotificationNotFound(notification_id)
        return notification
