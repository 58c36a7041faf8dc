"""
Donation Core Package

Framework-free domain logic for FoodBridge donations.

Components:
- inputs: Validated pydantic models for donation writes
- lifecycle: Donation state machine (create, accept, complete, cancel, feedback)
- volunteers: Exclusive volunteer claims and nearby pickups
- matching: Proximity and freshness ranking of open donations
- badges: Donor achievements from completed history
- notifications: Persist-then-push notification dispatch
- tracking: Delivery timeline projection
- impact: Impact and dashboard statistics
"""

from .errors import (
    DonationError,
    ValidationError,
    NotFound,
    Forbidden,
    InvalidState,
    TransientInfraError,
)

from .policy import (
    Actor,
    Action,
    authorize,
    is_allowed,
)

from .events import (
    EventBus,
    EventKind,
    DonationEvent,
)

from .geo import GeoPoint, distance_km
from .matching import MatchScorer, RankedDonation
from .badges import BadgeEngine
from .notifications import NotificationDispatcher, DonationNotifier
from .lifecycle import DonationLifecycle
from .volunteers import VolunteerAssignment
from .ports import DonationFilter, SystemClock

__all__ = [
    # Errors
    "DonationError",
    "ValidationError",
    "NotFound",
    "Forbidden",
    "InvalidState",
    "TransientInfraError",

    # Authorization
    "Actor",
    "Action",
    "authorize",
    "is_allowed",

    # Events
    "EventBus",
    "EventKind",
    "DonationEvent",

    # Lifecycle
    "DonationLifecycle",
    "VolunteerAssignment",
    "DonationFilter",
    "SystemClock",

    # Matching
    "GeoPoint",
    "distance_km",
    "MatchScorer",
    "RankedDonation",

    # Side effects
    "BadgeEngine",
    "NotificationDispatcher",
    "DonationNotifier",
]

__version__ = "1.0.0"
