"""Pydantic models for API requests, responses and stored records."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from .gamification import ActionKind


class UserProfile(BaseModel):
    """Gamification profile stored under ``user:<id>``."""
    # Fields written by older deployments are carried through untouched
    model_config = ConfigDict(extra="allow")

    id: str
    username: str
    email: str
    points: int = 0
    level: int = 1
    badge: str = "Newbie"
    created_at: str

    # Community stats
    helped_people: int = 0
    responses_given: int = 0
    upvotes_received: int = 0
    requests_posted: int = 0

    # Per-action counters
    response_count: int = 0
    request_count: int = 0
    upvote_count: int = 0
    help_count: int = 0
    achievement_count: int = 0

    version: int = 0


class AuthUser(BaseModel):
    """Identity returned by the auth provider."""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class SignupRequest(BaseModel):
    """Request model for signup endpoint."""
    email: Optional[str] = Field(None, description="Account email")
    password: Optional[str] = Field(None, description="Account password")
    username: Optional[str] = Field(None, description="Public display name")


class SignupResponse(BaseModel):
    """Response model for signup endpoint."""
    message: str
    user: AuthUser


class PointsUpdateRequest(BaseModel):
    """Request model for points endpoint."""
    points: int = Field(..., ge=0, strict=True, description="Points to add")
    action: ActionKind = Field(..., description="Action that earned the points")


class ProgressResponse(BaseModel):
    """Progress towards the next level."""
    user_id: str
    points: int
    level: int
    badge: str
    next_badge: str
    points_into_level: int
    points_per_level: int
    next_level_points: int
    points_to_next_level: int
    progress_percentage: float


class LeaderboardEntry(BaseModel):
    """Single leaderboard row."""
    rank: int
    id: str
    username: str
    points: int
    level: int
    badge: str
    helped_people: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error body shared by every endpoint."""
    error: str
    details: Optional[List[Dict[str, Any]]] = None
