"""
Volunteers Router
Nearby pickups, claiming a delivery, and the volunteer's own assignments.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from foodbridge.api.dependencies import get_current_actor, get_volunteer_assignment
from foodbridge.api.routers.donations import nearby_response
from foodbridge.api.schemas import DonationResponse, NearbyDonationResponse
from foodbridge.core.geo import GeoPoint
from foodbridge.core.policy import Actor
from foodbridge.core.volunteers import VolunteerAssignment
from foodbridge.shared.models import Donation

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/available",
    response_model=List[NearbyDonationResponse],
    summary="Donations available for pickup",
    description="Unassigned pending or accepted donations within the radius, nearest first",
)
async def available_donations(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    max_distance: Optional[float] = Query(None, gt=0, description="Kilometers"),
    actor: Actor = Depends(get_current_actor),
    assignment: VolunteerAssignment = Depends(get_volunteer_assignment),
) -> List[NearbyDonationResponse]:
    nearby = await assignment.available_for_volunteer(actor, GeoPoint(lat, lng), max_distance)
    return [nearby_response(r) for r in nearby]


@router.post(
    "/assign/{donation_id}",
    response_model=DonationResponse,
    summary="Claim a pickup",
)
async def assign_volunteer(
    donation_id: UUID,
    actor: Actor = Depends(get_current_actor),
    assignment: VolunteerAssignment = Depends(get_volunteer_assignment),
) -> Donation:
    """First volunteer to claim an accepted donation wins; later claims get 409."""
    return await assignment.assign_volunteer(donation_id, actor)


@router.get(
    "/my-assignments",
    response_model=List[DonationResponse],
    summary="My deliveries",
)
async def my_assignments(
    actor: Actor = Depends(get_current_actor),
    assignment: VolunteerAssignment = Depends(get_volunteer_assignment),
) -> List[Donation]:
    return await assignment.my_assignments(actor)
