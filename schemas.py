"""
Pydantic request / response schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from models import LanpaStatus, MemberStatus, NominationStatus, PunishmentSeverity


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ============ Users ============

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    display_name: str = Field(..., min_length=1, max_length=100)
    notification_preferences: Dict[str, bool] = Field(default_factory=dict)


class UserResponse(ORMModel):
    id: UUID
    username: str
    display_name: str
    notification_preferences: Dict[str, Any]


# ============ Catalog ============

class GameCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    genre: Optional[str] = None
    min_players: int = Field(1, ge=1)
    max_players: Optional[int] = Field(None, ge=1)


class GameResponse(ORMModel):
    id: UUID
    name: str
    description: Optional[str] = None
    genre: Optional[str] = None
    min_players: Optional[int] = None
    max_players: Optional[int] = None


class PunishmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    severity: PunishmentSeverity
    point_impact: int = 0


class PunishmentResponse(ORMModel):
    id: UUID
    name: str
    description: Optional[str] = None
    severity: PunishmentSeverity
    point_impact: int


# ============ Lanpas ============

class LanpaCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    scheduled_date: Optional[datetime] = None


class LanpaResponse(ORMModel):
    id: UUID
    name: str
    description: Optional[str] = None
    admin_id: UUID
    status: LanpaStatus
    selected_game_id: Optional[UUID] = None
    scheduled_date: Optional[datetime] = None
    actual_date: Optional[datetime] = None


class LanpaUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    actual_date: Optional[datetime] = None


class LanpaListResponse(BaseModel):
    lanpas: List[LanpaResponse]
    page: int
    limit: int
    total: int


class StatusUpdate(BaseModel):
    status: LanpaStatus


class MemberAdd(BaseModel):
    user_id: UUID
    status: MemberStatus = MemberStatus.INVITED


class MemberStatusUpdate(BaseModel):
    status: MemberStatus


class MemberResponse(ORMModel):
    lanpa_id: UUID
    user_id: UUID
    status: MemberStatus


class GameChoice(BaseModel):
    """Body of suggest-game / vote-game / select-game"""
    game_id: UUID


class SuggestionResponse(ORMModel):
    id: UUID
    lanpa_id: UUID
    game_id: UUID
    suggested_by: UUID
    game: Optional[GameResponse] = None


class GameVoteResponse(ORMModel):
    lanpa_id: UUID
    game_id: UUID
    user_id: UUID


class GameVoteResult(BaseModel):
    game_id: UUID
    game: Optional[GameResponse] = None
    votes: int
    is_winner: bool


class GameResultsResponse(BaseModel):
    results: List[GameVoteResult]
    winner: Optional[GameResponse] = None
    was_random_tiebreaker: bool


# ============ Nominations ============

class NominationCreate(BaseModel):
    lanpa_id: UUID
    punishment_id: UUID
    nominated_user_id: UUID
    reason: str = Field(..., min_length=1, max_length=500)
    voting_hours: int = Field(24, ge=1, le=168)  # 1 hour to 1 week


class NominationResponse(ORMModel):
    id: UUID
    lanpa_id: UUID
    punishment_id: UUID
    nominated_user_id: UUID
    nominated_by: UUID
    reason: Optional[str] = None
    status: NominationStatus
    voting_ends_at: datetime


class NominationDetailResponse(NominationResponse):
    votes_for: int
    votes_against: int


class NominationVote(BaseModel):
    vote: bool  # True = guilty, False = innocent


class NominationVoteResponse(ORMModel):
    nomination_id: UUID
    user_id: UUID
    vote: bool


class FinalizeResponse(BaseModel):
    nomination_id: UUID
    status: NominationStatus
    votes_for: int
    votes_against: int
    punishment_applied: bool


class UserPunishmentResponse(ORMModel):
    id: UUID
    user_id: UUID
    punishment_id: UUID
    lanpa_id: Optional[UUID] = None
    nomination_id: Optional[UUID] = None
    applied_at: datetime
    notes: Optional[str] = None
    punishment: Optional[PunishmentResponse] = None


class UserPunishmentHistory(BaseModel):
    punishments: List[UserPunishmentResponse]
    total_point_impact: int


# ============ Notifications ============

class NotificationResponse(ORMModel):
    id: UUID
    type: str
    title: str
    body: Optional[str] = None
    data: Dict[str, Any]
    read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
    total: int


class MessageResponse(BaseModel):
    message: str


# ============ Errors ============

class ErrorResponse(BaseModel):
    error: str
    message: str
    statusCode: int
    details: Optional[Any] = None
