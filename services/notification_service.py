"""
Notification service: in-app notifications for lanpa and nomination events

Delivery is best effort. Call it only after the business transaction has
committed: every failure here is logged and rolled back, never raised, so a
broken notification can not undo a status change.
"""
import logging
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models import LanpaStatus, Notification, NotificationType, User

logger = logging.getLogger(__name__)

# notification type -> user preference switch
PREFERENCE_KEYS = {
    NotificationType.LANPA_CREATED: "lanpa_created",
    NotificationType.LANPA_UPDATED: "lanpa_updated",
    NotificationType.LANPA_INVITATION: "lanpa_invitation",
    NotificationType.GAME_VOTING_STARTED: "game_voting",
    NotificationType.GAME_VOTING_ENDED: "game_voting",
    NotificationType.PUNISHMENT_NOMINATION: "punishment_nomination",
    NotificationType.PUNISHMENT_VOTING_ENDED: "punishment_nomination",
    NotificationType.LANPA_REMINDER: "lanpa_reminder",
}


def build_payload(
    notification_type: NotificationType,
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {
        "type": notification_type,
        "title": title,
        "body": body,
        # JSON column: ids as strings
        "data": {k: str(v) if isinstance(v, UUID) else v for k, v in (data or {}).items()},
    }


def build_status_notification(lanpa_id: UUID, lanpa_name: str, status: LanpaStatus) -> Dict[str, Any]:
    """
    Message for members after a lifecycle transition, keyed by the new status

    VOTING_GAMES  -> "Game Suggestions Open"
    VOTING_ACTIVE -> "Voting Started"
    IN_PROGRESS   -> "Lanpa Started"
    anything else -> "Lanpa Updated"
    """
    data = {"lanpa_id": lanpa_id}

    if status == LanpaStatus.VOTING_GAMES:
        return build_payload(
            NotificationType.GAME_VOTING_STARTED,
            "Game Suggestions Open",
            f"Suggest games for {lanpa_name}!",
            data
        )
    if status == LanpaStatus.VOTING_ACTIVE:
        return build_payload(
            NotificationType.GAME_VOTING_STARTED,
            "Voting Started",
            f"Vote for your favorite game in {lanpa_name}!",
            data
        )
    if status == LanpaStatus.IN_PROGRESS:
        return build_payload(
            NotificationType.GAME_VOTING_ENDED,
            "Lanpa Started",
            f"{lanpa_name} is now in progress!",
            data
        )
    return build_payload(
        NotificationType.LANPA_UPDATED,
        "Lanpa Updated",
        f"{lanpa_name} status changed to {LanpaStatus(status).value}",
        data
    )


class NotificationDispatcher:
    """Writes Notification rows, honoring each user's preferences"""

    def __init__(self, db: Session):
        self.db = db

    def _wants(self, user: User, notification_type: NotificationType) -> bool:
        prefs = user.notification_preferences or {}
        if not prefs.get("in_app", True):
            return False
        key = PREFERENCE_KEYS.get(NotificationType(notification_type))
        return key is None or prefs.get(key, True)

    def notify(self, user_id: UUID, payload: Dict[str, Any]) -> bool:
        """
        Deliver one notification

        Returns:
            True if a row was stored, False if skipped or failed
        """
        try:
            user = self.db.query(User).filter(User.id == user_id).first()
            if not user:
                logger.warning(f"Skipping notification for unknown user {user_id}")
                return False

            if not self._wants(user, payload["type"]):
                return False

            self.db.add(Notification(
                user_id=user_id,
                type=NotificationType(payload["type"]).value,
                title=payload["title"],
                body=payload.get("body"),
                data=payload.get("data") or {}
            ))
            self.db.commit()
            return True

        except Exception as e:
            logger.error(f"Failed to notify user {user_id}: {e}", exc_info=True)
            self.db.rollback()
            return False

    def notify_many(self, user_ids: Iterable[UUID], payload: Dict[str, Any]) -> int:
        """
        Deliver the same payload to several users; one failure does not stop the rest

        Returns:
            number of notifications stored
        """
        delivered = 0
        for user_id in dict.fromkeys(user_ids):
            if self.notify(user_id, payload):
                delivered += 1
        return delivered
