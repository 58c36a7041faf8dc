"""
Input models for donation writes.

The same pydantic models are the API request bodies and the arguments of
the lifecycle operations. Timestamps are normalised to UTC, with naive values
taken as UTC.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from foodbridge.shared.models import (
    DonationStatus,
    FeedbackQuality,
    Freshness,
    FoodType,
    QuantityUnit,
)

from .errors import ValidationError

M = TypeVar("M", bound=BaseModel)

# Columns an edit may clear by sending null
NULLABLE_COLUMNS = frozenset({"description"})


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_input(model: Type[M], data: Union[M, Mapping[str, Any]], message: str) -> M:
    """
    Validate raw input against ``model``.

    Pydantic errors become one ValidationError whose details list every
    failing field as ``{"field", "message"}``.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]) or "input", "message": error["msg"]}
            for error in e.errors()
        ]
        raise ValidationError(message, {"errors": errors}) from e


# ============================================================================
# Donation fields
# ============================================================================

class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class DonationLocation(BaseModel):
    """Pickup address and coordinates."""
    address: str = Field(..., min_length=1, max_length=300)
    coordinates: Coordinates

    model_config = ConfigDict(str_strip_whitespace=True)


class TimeSlot(BaseModel):
    """Pickup window."""
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalise_timestamps(cls, value):
        return as_utc(value)

    @model_validator(mode="after")
    def start_not_after_end(self) -> "TimeSlot":
        if self.start > self.end:
            raise ValueError("Slot start must not be after slot end")
        return self


class DonationCreate(BaseModel):
    """Create donation request."""
    food_name: str = Field(..., min_length=1, max_length=200)
    food_type: FoodType
    quantity: int = Field(..., ge=1, strict=True)
    unit: QuantityUnit = QuantityUnit.SERVINGS
    description: Optional[str] = Field(None, max_length=1000)
    images: List[str] = []
    location: DonationLocation
    expiry_time: datetime
    available_time_slot: TimeSlot
    freshness: Freshness = Freshness.FRESHLY_COOKED
    food_health_score: float = Field(10, ge=0, le=10)
    is_emergency: bool = False

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("expiry_time")
    @classmethod
    def normalise_timestamps(cls, value):
        return as_utc(value)

    def to_columns(self) -> Dict[str, Any]:
        """Flatten to ``Donation`` column values."""
        values = self.model_dump(exclude={"location", "available_time_slot"})
        values.update(
            address=self.location.address,
            lat=self.location.coordinates.lat,
            lng=self.location.coordinates.lng,
            slot_start=self.available_time_slot.start,
            slot_end=self.available_time_slot.end,
        )
        return values


class DonationLocationUpdate(BaseModel):
    address: Optional[str] = Field(None, min_length=1, max_length=300)
    coordinates: Optional[Coordinates] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class TimeSlotUpdate(BaseModel):
    """Either end of the pickup window; the other keeps its stored value."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def normalise_timestamps(cls, value):
        return as_utc(value)

    @model_validator(mode="after")
    def start_not_after_end(self) -> "TimeSlotUpdate":
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("Slot start must not be after slot end")
        return self


class DonationUpdate(BaseModel):
    """Edit a pending donation; only the fields sent are changed."""
    food_name: Optional[str] = Field(None, min_length=1, max_length=200)
    food_type: Optional[FoodType] = None
    quantity: Optional[int] = Field(None, ge=1, strict=True)
    unit: Optional[QuantityUnit] = None
    description: Optional[str] = Field(None, max_length=1000)
    images: Optional[List[str]] = None
    location: Optional[DonationLocationUpdate] = None
    expiry_time: Optional[datetime] = None
    available_time_slot: Optional[TimeSlotUpdate] = None
    freshness: Optional[Freshness] = None
    food_health_score: Optional[float] = Field(None, ge=0, le=10)
    is_emergency: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("expiry_time")
    @classmethod
    def normalise_timestamps(cls, value):
        return as_utc(value)

    def to_columns(self) -> Dict[str, Any]:
        """
        Column values for the fields that were sent.

        A null leaves the column unchanged, except for ``description``
        which it clears.
        """
        sent = self.model_dump(exclude_unset=True, exclude={"location", "available_time_slot"})
        values = {k: v for k, v in sent.items() if v is not None or k in NULLABLE_COLUMNS}

        if self.location is not None:
            if self.location.address is not None:
                values["address"] = self.location.address
            if self.location.coordinates is not None:
                values["lat"] = self.location.coordinates.lat
                values["lng"] = self.location.coordinates.lng

        if self.available_time_slot is not None:
            if self.available_time_slot.start is not None:
                values["slot_start"] = self.available_time_slot.start
            if self.available_time_slot.end is not None:
                values["slot_end"] = self.available_time_slot.end
        return values


class DonationAdminPatch(BaseModel):
    """Administrative overwrite of a restricted field set."""
    status: Optional[DonationStatus] = None
    receiver_id: Optional[UUID] = None
    volunteer_id: Optional[UUID] = None
    food_health_score: Optional[float] = Field(None, ge=0, le=10)
    is_emergency: Optional[bool] = None
    expiry_time: Optional[datetime] = None
    cancellation_reason: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(extra="forbid")

    @field_validator("status", "food_health_score", "is_emergency", "expiry_time")
    @classmethod
    def not_null(cls, value):
        # Only the parties and the reason can be cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("expiry_time")
    @classmethod
    def normalise_timestamps(cls, value):
        return as_utc(value)

    def to_changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ============================================================================
# Feedback
# ============================================================================

class FeedbackCreate(BaseModel):
    """Receiver feedback on a delivered donation."""
    rating: int = Field(..., ge=1, le=5, strict=True)
    freshness_score: float = Field(..., ge=0, le=10)
    quality: FeedbackQuality
    comments: Optional[str] = Field(None, max_length=1000)
    would_accept_again: bool = True


__all__ = [
    "as_utc",
    "parse_input",
    "Coordinates",
    "DonationLocation",
    "TimeSlot",
    "DonationCreate",
    "DonationLocationUpdate",
    "TimeSlotUpdate",
    "DonationUpdate",
    "DonationAdminPatch",
    "FeedbackCreate",
]
