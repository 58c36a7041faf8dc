"""
Impact and dashboard statistics.

Pure functions over donation history; the routers feed them rows or
aggregates fetched through the repositories.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from foodbridge.shared.models import Donation, DonationStatus, User, UserRole

# One serving of food is taken as 0.5 kg, each kg wasted as 2.5 kg CO2
MEAL_WEIGHT_KG = 0.5
CO2_KG_PER_FOOD_KG = 2.5
MEALS_PER_PERSON = 2
TOP_DONORS_LIMIT = 10
RECENT_DONATIONS_LIMIT = 10


@dataclass(frozen=True)
class DonorTotal:
    donor_id: UUID
    total_meals: int
    completed_count: int


@dataclass(frozen=True)
class TopDonor:
    donor_id: UUID
    donor_name: Optional[str]
    total_meals: int


@dataclass
class ImpactReport:
    total_meals: int
    co2_reduction_kg: float
    people_fed: int
    completed_donations: int
    top_donors: List[TopDonor] = field(default_factory=list)


def co2_reduction_kg(meals: int) -> float:
    return round(meals * MEAL_WEIGHT_KG * CO2_KG_PER_FOOD_KG, 2)


def people_fed(meals: int) -> int:
    return math.ceil(meals / MEALS_PER_PERSON)


def build_impact_report(
    totals: Iterable[DonorTotal],
    donor_names: Mapping[UUID, str],
    top_n: int = TOP_DONORS_LIMIT,
) -> ImpactReport:
    """
    Summarise completed donations.

    Args:
        totals: Per-donor sums over completed donations
        donor_names: Display names; donors missing here are left out of the top list
        top_n: Size of the top donor list
    """
    totals = list(totals)
    meals = sum(t.total_meals for t in totals)
    ranked = sorted(totals, key=lambda t: t.total_meals, reverse=True)

    top_donors = [
        TopDonor(donor_id=t.donor_id, donor_name=donor_names[t.donor_id], total_meals=t.total_meals)
        for t in ranked
        if t.donor_id in donor_names
    ][:top_n]

    return ImpactReport(
        total_meals=meals,
        co2_reduction_kg=co2_reduction_kg(meals),
        people_fed=people_fed(meals),
        completed_donations=sum(t.completed_count for t in totals),
        top_donors=top_donors,
    )


def _count(donations: Sequence[Donation], status: DonationStatus) -> int:
    return sum(1 for d in donations if DonationStatus(d.status) == status)


def _meals(donations: Sequence[Donation]) -> int:
    return sum(d.quantity for d in donations if DonationStatus(d.status) == DonationStatus.COMPLETED)


def build_dashboard(
    user: User,
    donated: Sequence[Donation] = (),
    received: Sequence[Donation] = (),
    delivered: Sequence[Donation] = (),
) -> Dict[str, Any]:
    """
    Role-specific dashboard for ``user``.

    Each sequence is that user's donations in the given capacity, newest first.
    """
    role = UserRole(user.role)
    dashboard: Dict[str, Any] = {
        "role": role,
        "points": user.points,
        "badges": [{"name": b.name, "earned_at": b.earned_at} for b in user.badges],
    }

    if role == UserRole.RECEIVER:
        dashboard["stats"] = {
            "total": len(received),
            "accepted": _count(received, DonationStatus.ACCEPTED),
            "picked": _count(received, DonationStatus.PICKED),
            "completed": _count(received, DonationStatus.COMPLETED),
        }
        dashboard["total_meals"] = _meals(received)
        dashboard["donations"] = list(received[:RECENT_DONATIONS_LIMIT])
        dashboard["my_donations"] = list(donated[:RECENT_DONATIONS_LIMIT])
    elif role == UserRole.VOLUNTEER:
        dashboard["stats"] = {
            "total": len(delivered),
            "picked": _count(delivered, DonationStatus.PICKED),
            "completed": _count(delivered, DonationStatus.COMPLETED),
        }
        dashboard["total_meals"] = _meals(delivered)
        dashboard["donations"] = list(delivered[:RECENT_DONATIONS_LIMIT])
    else:
        dashboard["stats"] = {
            "total": len(donated),
            "pending": _count(donated, DonationStatus.PENDING),
            "accepted": _count(donated, DonationStatus.ACCEPTED),
            "completed": _count(donated, DonationStatus.COMPLETED),
            "cancelled": _count(donated, DonationStatus.CANCELLED),
        }
        dashboard["total_meals"] = _meals(donated)
        dashboard["donations"] = list(donated[:RECENT_DONATIONS_LIMIT])

    return dashboard


__all__ = [
    "DonorTotal",
    "TopDonor",
    "ImpactReport",
    "build_impact_report",
    "build_dashboard",
    "co2_reduction_kg",
    "people_fed",
]
