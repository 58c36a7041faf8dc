"""Volunteer pickups: exclusive claim, nearby work, own assignments."""

import logging
from typing import List, Optional
from uuid import UUID

from foodbridge.shared.models import Donation, DonationStatus

from .errors import InvalidState
from .events import EventKind
from .geo import GeoPoint
from .lifecycle import POINTS_FOR_PICKUP, DonationLifecycle
from .matching import RankedDonation
from .policy import Action, Actor, authorize
from .ports import DonationFilter

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 10.0
ASSIGNMENT_HISTORY_LIMIT = 100

# Shown to volunteers both before and after a receiver accepts
CLAIMABLE_VIEW_STATUSES = frozenset({DonationStatus.PENDING, DonationStatus.ACCEPTED})


class VolunteerAssignment:
    """
    Single-assignment guard for pickups.

    The claim is one conditional write (status accepted, volunteer unset), so
    of two volunteers racing for the same donation exactly one wins and the
    other gets InvalidState.
    """

    def __init__(self, lifecycle: DonationLifecycle, default_radius_km: float = DEFAULT_RADIUS_KM):
        self.lifecycle = lifecycle
        self.donations = lifecycle.donations
        self.default_radius_km = default_radius_km

    async def assign_volunteer(self, donation_id: UUID, actor: Actor) -> Donation:
        donation = await self.lifecycle.load(donation_id)
        authorize(Action.ASSIGN_VOLUNTEER, actor, donation)

        if donation.volunteer_id is not None:
            raise InvalidState("Donation already has a volunteer assigned")
        status = DonationStatus(donation.status)
        if status != DonationStatus.ACCEPTED:
            raise InvalidState("Donation is not available for pickup", {"status": status.value})

        claimed = await self.donations.conditional_update(
            donation.id,
            expected_status={DonationStatus.ACCEPTED},
            changes={
                "status": DonationStatus.PICKED,
                "volunteer_id": actor.id,
                "picked_at": self.lifecycle.clock.now(),
            },
            require_unset=("volunteer_id",),
        )
        if claimed is None:
            logger.info(f"Volunteer {actor.id} lost the claim on donation {donation.id}")
            raise InvalidState("Donation already has a volunteer assigned")

        logger.info(f"Donation {donation.id} picked by volunteer {actor.id}")
        await self.lifecycle.award_points(actor.id, POINTS_FOR_PICKUP)
        await self.lifecycle.emit(EventKind.VOLUNTEER_ASSIGNED, claimed, actor)
        return claimed

    async def available_for_volunteer(
        self,
        actor: Actor,
        location: GeoPoint,
        max_distance_km: Optional[float] = None,
    ) -> List[RankedDonation]:
        """Unassigned pending/accepted donations within the radius, nearest first."""
        authorize(Action.BROWSE_FOR_PICKUP, actor)
        radius = self.default_radius_km if max_distance_km is None else max_distance_km
        await self.donations.expire_overdue(self.lifecycle.clock.now())
        open_donations = await self.donations.list_open(CLAIMABLE_VIEW_STATUSES, unassigned_only=True)
        return self.lifecycle.scorer.within_radius(open_donations, location, radius)

    async def my_assignments(self, actor: Actor) -> List[Donation]:
        authorize(Action.LIST_ASSIGNMENTS, actor)
        return await self.donations.query(
            DonationFilter(status=None, volunteer_id=actor.id),
            offset=0,
            limit=ASSIGNMENT_HISTORY_LIMIT,
        )


__all__ = ["VolunteerAssignment", "DEFAULT_RADIUS_KM"]
