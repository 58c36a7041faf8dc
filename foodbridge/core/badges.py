"""
Donor achievements.

Badges are evaluated from the donor's completed-donation history each time
one of their donations completes. Awards are set additions: a badge already
held is never re-awarded or removed.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Set
from uuid import UUID

from .ports import Clock, DonationRepository, UserDirectory

logger = logging.getLogger(__name__)

FIRST_DONATION = "First Donation"
MILESTONE_100 = "100 Meals Milestone"
MILESTONE_500 = "500 Meals Milestone"
HUNGER_HERO = "Hunger Hero"
ZERO_WASTE_STAR = "Zero Waste Star"


@dataclass(frozen=True)
class DonorHistory:
    completed_count: int
    total_meals: int

    @classmethod
    def from_quantities(cls, quantities: Iterable[int]) -> "DonorHistory":
        quantities = list(quantities)
        return cls(completed_count=len(quantities), total_meals=sum(quantities))


def earned_badges(held: Set[str], history: DonorHistory) -> List[str]:
    """Badges the history qualifies for that are not already held."""
    qualified = []
    if not held:
        qualified.append(FIRST_DONATION)
    if history.total_meals >= 100:
        qualified.append(MILESTONE_100)
    if history.total_meals >= 500:
        qualified.append(MILESTONE_500)
    if history.completed_count >= 10:
        qualified.append(HUNGER_HERO)
    if history.completed_count >= 50:
        qualified.append(ZERO_WASTE_STAR)
    return [name for name in qualified if name not in held]


class BadgeEngine:
    def __init__(self, donations: DonationRepository, users: UserDirectory, clock: Clock):
        self.donations = donations
        self.users = users
        self.clock = clock

    async def evaluate(self, donor_id: UUID) -> List[str]:
        """
        Award any newly qualified badges to the donor.

        Returns:
            Names of badges added by this call (empty when nothing changed)
        """
        held = await self.users.badge_names(donor_id)
        completed = await self.donations.list_completed_by_donor(donor_id)
        history = DonorHistory.from_quantities(d.quantity for d in completed)

        awarded = []
        now = self.clock.now()
        for name in earned_badges(held, history):
            # award_badge is idempotent; a concurrent evaluation may have won
            if await self.users.award_badge(donor_id, name, now):
                awarded.append(name)

        if awarded:
            logger.info(f"Donor {donor_id} earned badges: {', '.join(awarded)}")
        return awarded


__all__ = [
    "BadgeEngine",
    "DonorHistory",
    "earned_badges",
    "FIRST_DONATION",
    "MILESTONE_100",
    "MILESTONE_500",
    "HUNGER_HERO",
    "ZERO_WASTE_STAR",
]
