"""
Database models

Lanpa lifecycle, game voting and punishment nominations.
Status columns use closed Enum types; stored values are the lowercase enum values.
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
    Uuid,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _enum_column(enum_cls, name):
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# ============ Enums ============

class LanpaStatus(str, enum.Enum):
    DRAFT = "draft"
    VOTING_GAMES = "voting_games"
    VOTING_ACTIVE = "voting_active"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MemberStatus(str, enum.Enum):
    INVITED = "invited"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    ATTENDED = "attended"


# member statuses that count as "in" the lanpa
ACTIVE_MEMBER_STATUSES = (MemberStatus.CONFIRMED, MemberStatus.ATTENDED)


class NominationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PunishmentSeverity(str, enum.Enum):
    WARNING = "warning"
    PENALTY = "penalty"
    SUSPENSION = "suspension"


class NotificationType(str, enum.Enum):
    LANPA_CREATED = "lanpa_created"
    LANPA_UPDATED = "lanpa_updated"
    LANPA_INVITATION = "lanpa_invitation"
    GAME_VOTING_STARTED = "game_voting_started"
    GAME_VOTING_ENDED = "game_voting_ended"
    PUNISHMENT_NOMINATION = "punishment_nomination"
    PUNISHMENT_VOTING_ENDED = "punishment_voting_ended"
    LANPA_REMINDER = "lanpa_reminder"


# ============ Users & catalog ============

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    notification_preferences = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Game(Base):
    __tablename__ = "games"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    genre = Column(String(50), nullable=True)
    min_players = Column(Integer, default=1)
    max_players = Column(Integer, nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Punishment(Base):
    __tablename__ = "punishments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(_enum_column(PunishmentSeverity, "punishment_severity"), nullable=False)
    point_impact = Column(Integer, default=0)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# ============ Lanpas ============

class Lanpa(Base):
    __tablename__ = "lanpas"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    admin_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        _enum_column(LanpaStatus, "lanpa_status"),
        nullable=False,
        default=LanpaStatus.DRAFT
    )
    # set by the vote resolver on VOTING_ACTIVE -> IN_PROGRESS or by an admin override
    selected_game_id = Column(Uuid, ForeignKey("games.id", ondelete="SET NULL"), nullable=True)
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    actual_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    admin = relationship("User", foreign_keys=[admin_id])
    selected_game = relationship("Game", foreign_keys=[selected_game_id])
    members = relationship("LanpaMember", back_populates="lanpa", cascade="all, delete-orphan")


class LanpaMember(Base):
    __tablename__ = "lanpa_members"
    __table_args__ = (UniqueConstraint("lanpa_id", "user_id", name="uq_lanpa_member"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lanpa_id = Column(Uuid, ForeignKey("lanpas.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        _enum_column(MemberStatus, "member_status"),
        nullable=False,
        default=MemberStatus.INVITED
    )
    joined_at = Column(DateTime(timezone=True), default=utcnow)

    lanpa = relationship("Lanpa", back_populates="members")
    user = relationship("User")


class GameSuggestion(Base):
    __tablename__ = "game_suggestions"
    __table_args__ = (UniqueConstraint("lanpa_id", "game_id", name="uq_game_suggestion"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lanpa_id = Column(Uuid, ForeignKey("lanpas.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(Uuid, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    suggested_by = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    game = relationship("Game")


class GameVote(Base):
    __tablename__ = "game_votes"
    # one vote per member per lanpa, re-voting overwrites game_id
    __table_args__ = (UniqueConstraint("lanpa_id", "user_id", name="uq_game_vote"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lanpa_id = Column(Uuid, ForeignKey("lanpas.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(Uuid, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ============ Punishments ============

class PunishmentNomination(Base):
    __tablename__ = "punishment_nominations"
    __table_args__ = (
        CheckConstraint("nominated_user_id != nominated_by", name="ck_nomination_not_self"),
        Index(
            "uq_pending_nomination",
            "lanpa_id", "punishment_id", "nominated_user_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lanpa_id = Column(Uuid, ForeignKey("lanpas.id", ondelete="CASCADE"), nullable=False, index=True)
    punishment_id = Column(Uuid, ForeignKey("punishments.id", ondelete="CASCADE"), nullable=False)
    nominated_user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    nominated_by = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(
        _enum_column(NominationStatus, "nomination_status"),
        nullable=False,
        default=NominationStatus.PENDING
    )
    voting_ends_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    punishment = relationship("Punishment")
    votes = relationship("PunishmentVote", back_populates="nomination", cascade="all, delete-orphan")


class PunishmentVote(Base):
    __tablename__ = "punishment_votes"
    __table_args__ = (UniqueConstraint("nomination_id", "user_id", name="uq_punishment_vote"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    nomination_id = Column(
        Uuid, ForeignKey("punishment_nominations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    vote = Column(Boolean, nullable=False)  # True = guilty
    created_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    nomination = relationship("PunishmentNomination", back_populates="votes")


class UserPunishment(Base):
    __tablename__ = "user_punishments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    punishment_id = Column(Uuid, ForeignKey("punishments.id", ondelete="CASCADE"), nullable=False)
    lanpa_id = Column(Uuid, ForeignKey("lanpas.id", ondelete="SET NULL"), nullable=True)
    nomination_id = Column(
        Uuid, ForeignKey("punishment_nominations.id", ondelete="SET NULL"), nullable=True
    )
    applied_at = Column(DateTime(timezone=True), default=utcnow)
    notes = Column(Text, nullable=True)

    punishment = relationship("Punishment")


# ============ Notifications ============

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=True)
    data = Column(JSON, nullable=False, default=dict)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
