"""
Proximity-based donation ranking.

Score components (no upper clamp on the total):
- distance: 40 * (1 - km / 10), floored at 0 beyond 10 km
- freshness: 30 / 25 / 20 / 15 / 10 from freshly cooked down to "other"
- quantity: quantity / 5, capped at 20
- health: food_health_score (0-10) mapped onto 0-10
- urgency: +10 when the donation expires within 2 hours
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from foodbridge.shared.models import Donation, DonationStatus, Freshness

from .geo import GeoPoint, distance_km

logger = logging.getLogger(__name__)

DISTANCE_WEIGHT = 40.0
DISTANCE_HORIZON_KM = 10.0
QUANTITY_DIVISOR = 5.0
QUANTITY_CAP = 20.0
HEALTH_WEIGHT = 10.0
URGENCY_WINDOW_HOURS = 2.0
URGENCY_BONUS = 10.0
DEFAULT_MATCH_LIMIT = 10

FRESHNESS_WEIGHTS = {
    Freshness.FRESHLY_COOKED: 30.0,
    Freshness.STORED_4HRS: 25.0,
    Freshness.STORED_8HRS: 20.0,
    Freshness.STORED_12HRS: 15.0,
    Freshness.OTHER: 10.0,
}


def freshness_weight(freshness) -> float:
    try:
        return FRESHNESS_WEIGHTS[Freshness(freshness)]
    except ValueError:
        return FRESHNESS_WEIGHTS[Freshness.OTHER]


@dataclass(frozen=True)
class ScoreBreakdown:
    distance: float
    freshness: float
    quantity: float
    health: float
    urgency: float

    @property
    def total(self) -> float:
        return self.distance + self.freshness + self.quantity + self.health + self.urgency


@dataclass
class RankedDonation:
    """A donation annotated with its distance and, when ranked, its score."""
    donation: Donation
    distance_km: Optional[float] = None
    match_score: Optional[float] = None
    breakdown: Optional[ScoreBreakdown] = None


def donation_point(donation: Donation) -> GeoPoint:
    return GeoPoint(donation.lat, donation.lng)


class MatchScorer:
    """Ranks open donations for a requester at a given location."""

    def __init__(self, limit: int = DEFAULT_MATCH_LIMIT):
        self.limit = limit

    def breakdown(self, donation: Donation, distance: float, now: datetime) -> ScoreBreakdown:
        hours_until_expiry = (donation.expiry_time - now).total_seconds() / 3600
        health = donation.food_health_score if donation.food_health_score is not None else 10

        return ScoreBreakdown(
            distance=max(0.0, DISTANCE_WEIGHT * (1 - distance / DISTANCE_HORIZON_KM)),
            freshness=freshness_weight(donation.freshness),
            quantity=min(QUANTITY_CAP, donation.quantity / QUANTITY_DIVISOR),
            health=(health / 10) * HEALTH_WEIGHT,
            urgency=URGENCY_BONUS if hours_until_expiry < URGENCY_WINDOW_HOURS else 0.0,
        )

    def score(self, donation: Donation, origin: GeoPoint, now: datetime) -> RankedDonation:
        distance = distance_km(origin, donation_point(donation))
        parts = self.breakdown(donation, distance, now)
        return RankedDonation(
            donation=donation,
            distance_km=round(distance, 2),
            match_score=round(parts.total, 2),
            breakdown=parts,
        )

    def rank(
        self,
        donations: Iterable[Donation],
        origin: GeoPoint,
        now: datetime,
    ) -> List[RankedDonation]:
        """Score pending, unexpired donations and keep the best ``limit``."""
        candidates = [
            d for d in donations
            if d.status == DonationStatus.PENDING and d.expiry_time > now
        ]
        ranked = [self.score(d, origin, now) for d in candidates]
        # sorted() is stable, ties keep input order
        ranked = sorted(ranked, key=lambda r: r.match_score, reverse=True)

        logger.debug(f"Ranked {len(ranked)} donations around ({origin.lat}, {origin.lng})")
        return ranked[: self.limit]

    def within_radius(
        self,
        donations: Iterable[Donation],
        origin: GeoPoint,
        max_distance_km: float,
    ) -> List[RankedDonation]:
        """Distance-only view, nearest first."""
        nearby = []
        for donation in donations:
            distance = round(distance_km(origin, donation_point(donation)), 2)
            if distance <= max_distance_km:
                nearby.append(RankedDonation(donation=donation, distance_km=distance))

        return sorted(nearby, key=lambda r: r.distance_km)


__all__ = [
    "MatchScorer",
    "RankedDonation",
    "ScoreBreakdown",
    "FRESHNESS_WEIGHTS",
    "freshness_weight",
]
