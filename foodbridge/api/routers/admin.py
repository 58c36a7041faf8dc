"""
Admin Router
User management, donation oversight, and platform analytics.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from foodbridge.api.dependencies import get_lifecycle, pagination_params, require_admin_user
from foodbridge.api.schemas import (
    AdminAnalyticsResponse,
    AdminDonationListResponse,
    DonationAdminPatch,
    DonationResponse,
    UserActivationRequest,
    UserListResponse,
    UserResponse,
)
from foodbridge.core.impact import co2_reduction_kg
from foodbridge.core.lifecycle import DonationLifecycle
from foodbridge.core.policy import Actor
from foodbridge.core.ports import DonationFilter
from foodbridge.shared.database import get_session
from foodbridge.shared.models import Donation, DonationStatus, User, UserRole, utcnow
from foodbridge.shared.repositories import SqlDonationRepository, SqlUserDirectory

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/users",
    response_model=UserListResponse,
    summary="List users",
    description="Filter by role and active flag (admin only)",
)
async def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    admin_user: User = Depends(require_admin_user),
    session: AsyncSession = Depends(get_session),
    pagination: dict = Depends(pagination_params),
) -> UserListResponse:
    users, total = await SqlUserDirectory(session).list_users(
        role=role,
        is_active=is_active,
        offset=pagination["offset"],
        limit=pagination["limit"],
    )

    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=pagination["page"],
        limit=pagination["limit"],
    )


@router.put(
    "/users/{user_id}/status",
    response_model=UserResponse,
    summary="Activate or deactivate user",
)
async def set_user_status(
    user_id: UUID,
    request: UserActivationRequest,
    admin_user: User = Depends(require_admin_user),
    session: AsyncSession = Depends(get_session),
) -> User:
    user = await SqlUserDirectory(session).set_active(user_id, request.is_active)

    logger.info(
        f"User {user_id} {'activated' if request.is_active else 'deactivated'} "
        f"by admin {admin_user.email}"
    )
    return user


@router.get(
    "/donations",
    response_model=AdminDonationListResponse,
    summary="List all donations",
)
async def list_all_donations(
    status: Optional[DonationStatus] = None,
    admin_user: User = Depends(require_admin_user),
    session: AsyncSession = Depends(get_session),
    pagination: dict = Depends(pagination_params),
) -> AdminDonationListResponse:
    repository = SqlDonationRepository(session)
    donation_filter = DonationFilter(status=status)

    await repository.expire_overdue(utcnow())

    donations = await repository.query(donation_filter, offset=pagination["offset"], limit=pagination["limit"])
    total = await repository.count(donation_filter)

    return AdminDonationListResponse(
        donations=[DonationResponse.model_validate(d) for d in donations],
        total=total,
        page=pagination["page"],
        limit=pagination["limit"],
    )


@router.put(
    "/donations/{donation_id}",
    response_model=DonationResponse,
    summary="Patch donation",
    description=(
        "Overwrite status, parties, health score, emergency flag, expiry or "
        "cancellation reason, bypassing lifecycle rules (admin only)"
    ),
)
async def patch_donation(
    donation_id: UUID,
    request: DonationAdminPatch,
    admin_user: User = Depends(require_admin_user),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> Donation:
    return await lifecycle.admin_patch(
        donation_id,
        Actor.from_user(admin_user),
        request,
    )


@router.get(
    "/analytics",
    response_model=AdminAnalyticsResponse,
    summary="Platform analytics",
)
async def admin_analytics(
    admin_user: User = Depends(require_admin_user),
    session: AsyncSession = Depends(get_session),
) -> AdminAnalyticsResponse:
    donations = SqlDonationRepository(session)

    users_by_role = await SqlUserDirectory(session).role_counts()
    donations_by_status = await donations.status_counts()
    totals = await donations.completed_totals_by_donor()
    average_rating, low_rated_donors = await donations.feedback_summary()

    total_meals = sum(t.total_meals for t in totals)

    return AdminAnalyticsResponse(
        users_by_role=users_by_role,
        donations_by_status=donations_by_status,
        total_donations=sum(donations_by_status.values()),
        total_meals=total_meals,
        co2_reduction_kg=co2_reduction_kg(total_meals),
        average_rating=average_rating,
        low_rated_donors=low_rated_donors,
    )
