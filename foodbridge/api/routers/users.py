"""
Users Router
Dashboards and the points leaderboard.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from foodbridge.api.dependencies import get_current_active_user
from foodbridge.api.schemas import DashboardResponse, LeaderboardEntry
from foodbridge.core.impact import build_dashboard
from foodbridge.core.ports import DonationFilter
from foodbridge.shared.database import get_session
from foodbridge.shared.models import User, UserRole, utcnow
from foodbridge.shared.repositories import SqlDonationRepository, SqlUserDirectory

logger = logging.getLogger(__name__)

router = APIRouter()

# Dashboard counts are taken over at most this many donations per capacity
DASHBOARD_HISTORY_LIMIT = 500


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="My dashboard",
    description="Counts by status, meals delivered, points and badges for the caller's role",
)
async def get_dashboard(
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> dict:
    donations = SqlDonationRepository(session)
    await donations.expire_overdue(utcnow())

    async def history(**party) -> list:
        return await donations.query(
            DonationFilter(status=None, **party),
            offset=0,
            limit=DASHBOARD_HISTORY_LIMIT,
        )

    role = UserRole(current_user.role)
    donated = await history(donor_id=current_user.id) if role != UserRole.VOLUNTEER else []
    received = await history(receiver_id=current_user.id) if role == UserRole.RECEIVER else []
    delivered = await history(volunteer_id=current_user.id) if role == UserRole.VOLUNTEER else []

    # Points and badges may have moved since the user was loaded
    user = await SqlUserDirectory(session).get_user(current_user.id)
    return build_dashboard(user, donated=donated, received=received, delivered=delivered)


@router.get(
    "/leaderboard",
    response_model=List[LeaderboardEntry],
    summary="Leaderboard",
    description="Active users by points, highest first",
)
async def get_leaderboard(
    role: Optional[UserRole] = None,
    limit: int = Query(50, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> List[User]:
    return await SqlUserDirectory(session).leaderboard(role=role, limit=limit)
