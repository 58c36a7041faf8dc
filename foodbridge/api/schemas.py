"""
Pydantic Schemas for API Request/Response Models
Type-safe data validation and serialization.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr, field_validator, ConfigDict

from foodbridge.core.inputs import (  # noqa: F401  request bodies shared with the core
    Coordinates,
    DonationAdminPatch,
    DonationCreate,
    DonationLocation,
    DonationUpdate,
    FeedbackCreate,
    TimeSlot,
)
from foodbridge.shared.models import (
    UserRole,
    DonationStatus,
    FoodType,
    QuantityUnit,
    Freshness,
    FeedbackQuality,
    NotificationType,
)


# ============================================================================
# Authentication Schemas
# ============================================================================

class RegisterRequest(BaseModel):
    """User registration request."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    role: UserRole = UserRole.DONOR
    address: Optional[str] = Field(None, max_length=300)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    organization_name: Optional[str] = Field(None, max_length=200)
    organization_type: Optional[str] = Field(None, max_length=100)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: UserRole) -> UserRole:
        """Admin accounts are provisioned, never self-registered."""
        if v == UserRole.ADMIN:
            raise ValueError("Cannot register as admin")
        return v


class LoginRequest(BaseModel):
    """User login request."""
    email: EmailStr
    password: str


class BadgeResponse(BaseModel):
    name: str
    earned_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    """User profile response."""
    id: UUID
    email: EmailStr
    name: str
    phone: Optional[str] = None
    role: UserRole
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    organization_name: Optional[str] = None
    organization_type: Optional[str] = None
    points: int
    badges: List[BadgeResponse] = []
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserResponse


# ============================================================================
# Donation Schemas
# ============================================================================

class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class VolunteerLocationUpdate(BaseModel):
    """Volunteer's current position."""
    lat: float
    lng: float


class VolunteerLocationResponse(BaseModel):
    lat: float
    lng: float
    updated_at: Optional[datetime] = None


class DonationResponse(BaseModel):
    """Donation with its lifecycle state."""
    id: UUID
    donor_id: UUID
    receiver_id: Optional[UUID] = None
    volunteer_id: Optional[UUID] = None
    food_name: str
    food_type: FoodType
    quantity: int
    unit: QuantityUnit
    description: Optional[str] = None
    images: List[str] = []
    address: str
    lat: float
    lng: float
    expiry_time: datetime
    slot_start: datetime
    slot_end: datetime
    freshness: Freshness
    food_health_score: float
    is_emergency: bool
    status: DonationStatus
    accepted_at: Optional[datetime] = None
    picked_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    volunteer_location: Optional[VolunteerLocationResponse] = None
    feedback_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NearbyDonationResponse(DonationResponse):
    """Donation annotated with distance from the requester."""
    distance_km: Optional[float] = None


class DonationListResponse(BaseModel):
    """Page of donations."""
    donations: List[NearbyDonationResponse]
    page: int
    limit: int
    count: int


class ScoreBreakdownResponse(BaseModel):
    distance: float
    freshness: float
    quantity: float
    health: float
    urgency: float

    model_config = ConfigDict(from_attributes=True)


class MatchResponse(BaseModel):
    """Ranked donation for a requester."""
    donation: DonationResponse
    distance_km: float
    match_score: float
    breakdown: Optional[ScoreBreakdownResponse] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Feedback Schemas
# ============================================================================

class FeedbackResponse(BaseModel):
    id: UUID
    donation_id: UUID
    receiver_id: UUID
    donor_id: UUID
    rating: int
    freshness_score: float
    quality: FeedbackQuality
    comments: Optional[str] = None
    would_accept_again: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Tracking Schemas
# ============================================================================

class TrackingStepResponse(BaseModel):
    step: str
    label: str
    description: str
    at: Optional[datetime] = None
    done: bool

    model_config = ConfigDict(from_attributes=True)


class TrackingResponse(BaseModel):
    """Delivery tracking view."""
    donation_id: UUID
    food_name: str
    status: DonationStatus
    donor_location: Optional[Dict[str, Any]] = None
    receiver_location: Optional[Dict[str, Any]] = None
    volunteer_location: Optional[Dict[str, Any]] = None
    donor_name: Optional[str] = None
    receiver_name: Optional[str] = None
    volunteer_name: Optional[str] = None
    volunteer_id: Optional[UUID] = None
    timeline: List[TrackingStepResponse]
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Notification Schemas
# ============================================================================

class NotificationResponse(BaseModel):
    """Notification response."""
    id: UUID
    type: NotificationType
    title: str
    message: str
    payload: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int
    page: int
    limit: int


# ============================================================================
# User & Statistics Schemas
# ============================================================================

class LeaderboardEntry(BaseModel):
    id: UUID
    name: str
    role: UserRole
    points: int
    organization_name: Optional[str] = None
    badges: List[BadgeResponse] = []

    model_config = ConfigDict(from_attributes=True)


class DashboardResponse(BaseModel):
    """Role-specific dashboard."""
    role: UserRole
    points: int
    badges: List[BadgeResponse]
    stats: Dict[str, int]
    total_meals: int
    donations: List[DonationResponse]
    my_donations: Optional[List[DonationResponse]] = None


class TopDonorResponse(BaseModel):
    donor_id: UUID
    donor_name: Optional[str] = None
    total_meals: int

    model_config = ConfigDict(from_attributes=True)


class ImpactResponse(BaseModel):
    """Platform-wide impact statistics."""
    total_meals: int
    co2_reduction_kg: float = Field(description="Estimated CO2 kept out of landfill, in kg")
    people_fed: int
    completed_donations: int
    top_donors: List[TopDonorResponse]

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Admin Schemas
# ============================================================================

class UserActivationRequest(BaseModel):
    is_active: bool


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    page: int
    limit: int


class AdminDonationListResponse(BaseModel):
    donations: List[DonationResponse]
    total: int
    page: int
    limit: int


class AdminAnalyticsResponse(BaseModel):
    """Admin overview."""
    users_by_role: Dict[str, int]
    donations_by_status: Dict[str, int]
    total_donations: int
    total_meals: int
    co2_reduction_kg: float
    average_rating: Optional[float] = Field(None, description="Mean feedback rating (1-5)")
    low_rated_donors: int = Field(description="Donors whose feedback averages below 3 stars")


# ============================================================================
# Common Response Schemas
# ============================================================================

class MessageResponse(BaseModel):
    """Generic message response."""
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    message: str
    details: Optional[Any] = None
    timestamp: datetime
