"""
Delivery tracking projection.

The timeline is derived on every read from the donation's status, timestamps
and parties; nothing here is stored.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from foodbridge.shared.models import Donation, DonationStatus, User

# How far along the happy path each status is; cancelled/expired sit at 0
STATUS_PROGRESS = {
    DonationStatus.PENDING: 0,
    DonationStatus.ACCEPTED: 1,
    DonationStatus.PICKED: 2,
    DonationStatus.COMPLETED: 3,
    DonationStatus.CANCELLED: 0,
    DonationStatus.EXPIRED: 0,
}

# (step, label, progress needed for done)
TIMELINE_STEPS = [
    ("created", "Donation Created", 0),
    ("accepted", "Accepted by Receiver", 1),
    ("volunteer_notified", "Volunteers Notified", 1),
    ("volunteer_assigned", "Volunteer Accepted Delivery", 2),
    ("picked", "Picked Up from Donor", 2),
    ("in_transit", "In Transit", 2),
    ("completed", "Delivered Successfully", 3),
]

# Steps shown for each progress level
VISIBLE_STEPS = {0: 1, 1: 3, 2: 6, 3: 7}


@dataclass(frozen=True)
class TrackingStep:
    step: str
    label: str
    description: str
    at: Optional[datetime]
    done: bool


@dataclass
class TrackingView:
    donation_id: UUID
    food_name: str
    status: DonationStatus
    donor_location: Optional[Dict[str, Any]]
    receiver_location: Optional[Dict[str, Any]]
    volunteer_location: Optional[Dict[str, Any]]
    donor_name: Optional[str]
    receiver_name: Optional[str]
    volunteer_name: Optional[str]
    volunteer_id: Optional[UUID]
    timeline: List[TrackingStep] = field(default_factory=list)
    updated_at: Optional[datetime] = None


def _display_name(user: Optional[User], fallback: str) -> str:
    if user is None:
        return fallback
    return user.name or user.organization_name or fallback


def _describe(step: str, donation: Donation, donor: Optional[User], receiver: Optional[User], volunteer: Optional[User]) -> str:
    has_volunteer = donation.volunteer_id is not None
    if step == "created":
        return f"Donation \"{donation.food_name}\" was created by {_display_name(donor, 'Donor')}"
    if step == "accepted":
        if donation.receiver_id:
            return f"Accepted by {_display_name(receiver, 'Receiver')}"
        return "Waiting for acceptance"
    if step == "volunteer_notified":
        return "All volunteers were notified about this pickup opportunity"
    if step == "volunteer_assigned":
        if has_volunteer:
            return f"Volunteer {_display_name(volunteer, 'Volunteer')} accepted the delivery"
        return "Waiting for volunteer"
    if step == "picked":
        if has_volunteer:
            return f"Picked up by {_display_name(volunteer, 'Volunteer')}"
        return "Not yet picked up"
    if step == "in_transit":
        return "On the way to delivery location" if has_volunteer else "Not yet in transit"
    if donation.receiver_id:
        return f"Successfully delivered to {_display_name(receiver, 'Receiver')}"
    return "Delivery completed"


def _step_time(step: str, donation: Donation) -> Optional[datetime]:
    if step == "created":
        return donation.created_at
    if step in ("accepted", "volunteer_notified"):
        return donation.accepted_at
    if step in ("volunteer_assigned", "picked", "in_transit"):
        return donation.picked_at
    return donation.completed_at


def build_timeline(
    donation: Donation,
    donor: Optional[User] = None,
    receiver: Optional[User] = None,
    volunteer: Optional[User] = None,
) -> List[TrackingStep]:
    """Ordered steps reachable from the current status."""
    progress = STATUS_PROGRESS[DonationStatus(donation.status)]
    steps = [
        TrackingStep(
            step=step,
            label=label,
            description=_describe(step, donation, donor, receiver, volunteer),
            at=_step_time(step, donation),
            done=progress >= needed,
        )
        for step, label, needed in TIMELINE_STEPS
    ]
    return steps[: VISIBLE_STEPS[progress]]


def _user_location(user: Optional[User], label: str) -> Optional[Dict[str, Any]]:
    if user is None or user.lat is None or user.lng is None:
        return None
    return {"lat": user.lat, "lng": user.lng, "label": label, "address": user.address}


def build_tracking_view(
    donation: Donation,
    donor: Optional[User],
    receiver: Optional[User],
    volunteer: Optional[User],
    now: datetime,
) -> TrackingView:
    volunteer_location = None
    if donation.volunteer_lat is not None and donation.volunteer_lng is not None:
        volunteer_location = {
            "lat": donation.volunteer_lat,
            "lng": donation.volunteer_lng,
            "updated_at": donation.volunteer_location_updated_at,
            "label": "Volunteer",
        }
    else:
        volunteer_location = _user_location(volunteer, "Volunteer")

    return TrackingView(
        donation_id=donation.id,
        food_name=donation.food_name,
        status=DonationStatus(donation.status),
        donor_location={
            "lat": donation.lat,
            "lng": donation.lng,
            "label": "Donor (pickup)",
            "address": donation.address,
        },
        receiver_location=_user_location(receiver, "NGO / Receiver"),
        volunteer_location=volunteer_location,
        donor_name=donor.name if donor else None,
        receiver_name=receiver.name if receiver else None,
        volunteer_name=volunteer.name if volunteer else None,
        volunteer_id=donation.volunteer_id,
        timeline=build_timeline(donation, donor, receiver, volunteer),
        updated_at=now,
    )


__all__ = [
    "TrackingStep",
    "TrackingView",
    "TIMELINE_STEPS",
    "build_timeline",
    "build_tracking_view",
]
