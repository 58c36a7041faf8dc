"""
SQLAlchemy models for FoodBridge

Features:
- UUID primary keys across all tables (portable Uuid type)
- Timezone-aware UTC timestamps on PostgreSQL and SQLite alike
- JSON payloads stored as JSONB on PostgreSQL
- Check constraints mirroring the donation lifecycle invariants
"""

import enum
from datetime import datetime, timezone
from typing import Optional, List
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean, Integer, Float, Text, DateTime, JSON, Uuid,
    ForeignKey, CheckConstraint, UniqueConstraint, Index,
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column, relationship,
    validates
)
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# COLUMN TYPES
# ============================================================================

class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    SQLite drops tzinfo on the way back; values are re-tagged as UTC so
    comparisons against aware datetimes never mix naive and aware values.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum_column(enum_cls, name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


# ============================================================================
# BASE & MIXINS
# ============================================================================

class Base(DeclarativeBase):
    """Base class for all models"""
    type_annotation_map = {
        dict: JSONType,
        datetime: UTCDateTime,
    }


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# ============================================================================
# ENUMS
# ============================================================================

class UserRole(str, enum.Enum):
    """Platform roles"""
    DONOR = "donor"
    RECEIVER = "receiver"
    VOLUNTEER = "volunteer"
    ADMIN = "admin"


class DonationStatus(str, enum.Enum):
    """Donation lifecycle states"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    PICKED = "picked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    DonationStatus.COMPLETED,
    DonationStatus.CANCELLED,
    DonationStatus.EXPIRED,
})


class FoodType(str, enum.Enum):
    VEGETARIAN = "vegetarian"
    NON_VEGETARIAN = "non-vegetarian"
    VEGAN = "vegan"
    DESSERT = "dessert"
    BEVERAGE = "beverage"
    OTHER = "other"


class QuantityUnit(str, enum.Enum):
    SERVINGS = "servings"
    PLATES = "plates"
    KG = "kg"
    PIECES = "pieces"
    LITERS = "liters"


class Freshness(str, enum.Enum):
    """Freshness levels, freshest first"""
    FRESHLY_COOKED = "freshly-cooked"
    STORED_4HRS = "stored-4hrs"
    STORED_8HRS = "stored-8hrs"
    STORED_12HRS = "stored-12hrs"
    OTHER = "other"


class FeedbackQuality(str, enum.Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"


class NotificationType(str, enum.Enum):
    """Notification categories"""
    DONATION_AVAILABLE = "donation_available"
    DONATION_ACCEPTED = "donation_accepted"
    DONATION_PICKED = "donation_picked"
    DONATION_COMPLETED = "donation_completed"
    DONATION_CANCELLED = "donation_cancelled"
    VOLUNTEER_ASSIGNED = "volunteer_assigned"
    NEW_MATCH = "new_match"
    FEEDBACK_RECEIVED = "feedback_received"
    BADGE_EARNED = "badge_earned"
    POINTS_EARNED = "points_earned"
    ADMIN_VERIFICATION = "admin_verification"
    EMERGENCY_ALERT = "emergency_alert"


# ============================================================================
# USER MANAGEMENT
# ============================================================================

class User(Base, TimestampMixin):
    """User account model"""
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Authentication
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    role: Mapped[UserRole] = mapped_column(
        _enum_column(UserRole, "user_role"),
        default=UserRole.DONOR,
        nullable=False,
    )

    # Location
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    organization_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    organization_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Gamification
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    badges: Mapped[List["UserBadge"]] = relationship(
        "UserBadge",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UserBadge.earned_at",
    )

    __table_args__ = (
        CheckConstraint("points >= 0", name="users_points_non_negative"),
        CheckConstraint("length(name) >= 1", name="users_name_length_check"),
        Index("idx_users_role_active", "role", "is_active"),
    )

    @validates("email")
    def validate_email(self, key: str, value: str) -> str:
        """Ensure email is lowercase"""
        return value.lower() if value else value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class UserBadge(Base):
    """One-time achievement earned by a user"""
    __tablename__ = "user_badges"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="badges")

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="unique_user_badge"),
    )


# ============================================================================
# DONATIONS
# ============================================================================

class Donation(Base, TimestampMixin):
    """Surplus food offered by a donor"""
    __tablename__ = "donations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Parties
    donor_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    volunteer_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Content
    food_name: Mapped[str] = mapped_column(Text, nullable=False)
    food_type: Mapped[FoodType] = mapped_column(_enum_column(FoodType, "food_type"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[QuantityUnit] = mapped_column(
        _enum_column(QuantityUnit, "quantity_unit"),
        default=QuantityUnit.SERVINGS,
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    images: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # Pickup location
    address: Mapped[str] = mapped_column(Text, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    # Timing
    expiry_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    slot_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    slot_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Quality signals
    freshness: Mapped[Freshness] = mapped_column(
        _enum_column(Freshness, "freshness"),
        default=Freshness.FRESHLY_COOKED,
        nullable=False,
    )
    food_health_score: Mapped[float] = mapped_column(Float, default=10, nullable=False)
    is_emergency: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Lifecycle
    status: Mapped[DonationStatus] = mapped_column(
        _enum_column(DonationStatus, "donation_status"),
        default=DonationStatus.PENDING,
        nullable=False,
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    picked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Live tracking (last writer wins)
    volunteer_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volunteer_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volunteer_location_updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    feedback_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="donations_quantity_positive"),
        CheckConstraint("food_health_score BETWEEN 0 AND 10", name="donations_health_score_range"),
        Index("idx_donations_status_expiry", "status", "expiry_time"),
        Index("idx_donations_donor", "donor_id"),
        Index("idx_donations_volunteer", "volunteer_id"),
    )

    @property
    def volunteer_location(self) -> Optional[dict]:
        if self.volunteer_lat is None or self.volunteer_lng is None:
            return None
        return {
            "lat": self.volunteer_lat,
            "lng": self.volunteer_lng,
            "updated_at": self.volunteer_location_updated_at,
        }

    def __repr__(self) -> str:
        return f"<Donation(id={self.id}, food_name={self.food_name}, status={self.status})>"


class Feedback(Base):
    """Receiver feedback on a completed donation, one per donation"""
    __tablename__ = "feedback"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    donation_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("donations.id", ondelete="CASCADE"), nullable=False)
    receiver_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    donor_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    freshness_score: Mapped[float] = mapped_column(Float, nullable=False)
    quality: Mapped[FeedbackQuality] = mapped_column(_enum_column(FeedbackQuality, "feedback_quality"), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    would_accept_again: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("donation_id", name="unique_feedback_per_donation"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="feedback_rating_range"),
        CheckConstraint("freshness_score BETWEEN 0 AND 10", name="feedback_freshness_range"),
        Index("idx_feedback_donor", "donor_id"),
    )


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class Notification(Base):
    """In-app notification addressed to one user"""
    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type: Mapped[NotificationType] = mapped_column(_enum_column(NotificationType, "notification_type"), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notifications_user_unread", "user_id", "is_read", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"


# Export all models
__all__ = [
    "Base",
    "UTCDateTime",
    "utcnow",
    "User",
    "UserBadge",
    "Donation",
    "Feedback",
    "Notification",
    # Enums
    "UserRole",
    "DonationStatus",
    "TERMINAL_STATUSES",
    "FoodType",
    "QuantityUnit",
    "Freshness",
    "FeedbackQuality",
    "NotificationType",
]
