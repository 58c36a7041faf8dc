"""
Donations Router
Create, browse, and move donations through their lifecycle.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from foodbridge.api.dependencies import get_current_actor, get_lifecycle, pagination_params
from foodbridge.api.schemas import (
    CancelRequest,
    DonationCreate,
    DonationListResponse,
    DonationResponse,
    DonationUpdate,
    FeedbackCreate,
    FeedbackResponse,
    NearbyDonationResponse,
    TrackingResponse,
    VolunteerLocationResponse,
    VolunteerLocationUpdate,
)
from foodbridge.core.geo import GeoPoint
from foodbridge.core.lifecycle import DonationLifecycle
from foodbridge.core.matching import RankedDonation
from foodbridge.core.policy import Actor
from foodbridge.core.ports import DonationFilter
from foodbridge.shared.models import Donation, DonationStatus, FoodType, Feedback

logger = logging.getLogger(__name__)

router = APIRouter()


def nearby_response(ranked: RankedDonation) -> NearbyDonationResponse:
    data = DonationResponse.model_validate(ranked.donation).model_dump()
    return NearbyDonationResponse(**data, distance_km=ranked.distance_km)


@router.post(
    "",
    response_model=DonationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create donation",
)
async def create_donation(
    request: DonationCreate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Donation:
    """Offer surplus food; the donor earns 10 points."""
    return await lifecycle.create_donation(actor, request)


@router.get(
    "",
    response_model=DonationListResponse,
    summary="List donations",
    description="Newest first. Defaults to pending donations; pass lat/lng to get distances.",
)
async def list_donations(
    status_filter: Optional[DonationStatus] = Query(DonationStatus.PENDING, alias="status"),
    food_type: Optional[FoodType] = None,
    min_quantity: Optional[int] = Query(None, ge=1),
    is_emergency: Optional[bool] = None,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    max_distance: Optional[float] = Query(None, gt=0, description="Kilometers"),
    pagination: dict = Depends(pagination_params),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> DonationListResponse:
    near = GeoPoint(lat, lng) if lat is not None and lng is not None else None

    results = await lifecycle.list_donations(
        DonationFilter(
            status=status_filter,
            food_type=food_type,
            min_quantity=min_quantity,
            is_emergency=is_emergency,
        ),
        page=pagination["page"],
        limit=pagination["limit"],
        near=near,
        max_distance_km=max_distance,
    )

    return DonationListResponse(
        donations=[nearby_response(r) for r in results],
        page=pagination["page"],
        limit=pagination["limit"],
        count=len(results),
    )


@router.get(
    "/{donation_id}",
    response_model=DonationResponse,
    summary="Get donation",
)
async def get_donation(
    donation_id: UUID,
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Donation:
    return await lifecycle.get_donation(donation_id)


@router.put(
    "/{donation_id}",
    response_model=DonationResponse,
    summary="Update donation",
    description="Owner or admin; only while the donation is still pending",
)
async def update_donation(
    donation_id: UUID,
    request: DonationUpdate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Donation:
    return await lifecycle.update_donation(donation_id, actor, request)


@router.delete(
    "/{donation_id}",
    response_model=DonationResponse,
    summary="Cancel donation",
    description="Owner or admin; not possible once a volunteer has picked it up",
)
async def cancel_donation(
    donation_id: UUID,
    request: Optional[CancelRequest] = None,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Donation:
    reason = request.reason if request else None
    return await lifecycle.cancel_donation(donation_id, actor, reason)


@router.post(
    "/{donation_id}/accept",
    response_model=DonationResponse,
    summary="Accept donation",
)
async def accept_donation(
    donation_id: UUID,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Donation:
    """Receiver claims a pending donation; volunteers are notified."""
    return await lifecycle.accept_donation(donation_id, actor)


@router.post(
    "/{donation_id}/complete",
    response_model=DonationResponse,
    summary="Mark donation delivered",
)
async def complete_donation(
    donation_id: UUID,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Donation:
    return await lifecycle.complete_donation(donation_id, actor)


@router.get(
    "/{donation_id}/tracking",
    response_model=TrackingResponse,
    summary="Delivery tracking",
)
async def get_tracking(
    donation_id: UUID,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.get_tracking(donation_id, actor)


@router.post(
    "/{donation_id}/volunteer-location",
    response_model=VolunteerLocationResponse,
    summary="Report volunteer location",
)
async def update_volunteer_location(
    donation_id: UUID,
    request: VolunteerLocationUpdate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> dict:
    return await lifecycle.update_volunteer_location(donation_id, actor, request.lat, request.lng)


@router.post(
    "/{donation_id}/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit feedback",
)
async def submit_feedback(
    donation_id: UUID,
    request: FeedbackCreate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Feedback:
    """One review per delivered donation; its freshness score replaces the donor's health score."""
    return await lifecycle.submit_feedback(donation_id, actor, request)
