"""Helpers shared by the test modules."""
from datetime import timedelta

from models import utcnow


def auth(user):
    """Identity header the API expects from the upstream identity provider"""
    return {"X-User-Id": str(user.id)}


def set_status(db, lanpa, status):
    lanpa.status = status
    db.commit()


def close_voting(db, nomination, hours_ago=1):
    nomination.voting_ends_at = utcnow() - timedelta(hours=hours_ago)
    db.commit()
