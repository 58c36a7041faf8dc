"""
Analytics Router
Smart matching for receivers and platform impact statistics.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from foodbridge.api.dependencies import get_current_actor, get_lifecycle
from foodbridge.api.schemas import ImpactResponse, MatchResponse
from foodbridge.core.geo import GeoPoint
from foodbridge.core.impact import ImpactReport, build_impact_report
from foodbridge.core.lifecycle import DonationLifecycle
from foodbridge.core.matching import RankedDonation
from foodbridge.core.policy import Actor
from foodbridge.shared.database import get_session
from foodbridge.shared.repositories import SqlDonationRepository, SqlUserDirectory

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/matching",
    response_model=List[MatchResponse],
    summary="Matching donations",
    description="Top open donations for a location, scored on distance, freshness, quantity, health and urgency",
)
async def get_matches(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    actor: Actor = Depends(get_current_actor),
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> List[RankedDonation]:
    matches = await lifecycle.get_matches(GeoPoint(lat, lng))
    logger.debug(f"{len(matches)} matches for user {actor.id}")
    return matches


@router.get(
    "/impact",
    response_model=ImpactResponse,
    summary="Impact statistics",
    description="Meals delivered, estimated CO2 saved, people fed and top donors",
)
async def get_impact(
    session: AsyncSession = Depends(get_session),
) -> ImpactReport:
    totals = await SqlDonationRepository(session).completed_totals_by_donor()
    names = await SqlUserDirectory(session).names_for([t.donor_id for t in totals])
    return build_impact_report(totals, names)
