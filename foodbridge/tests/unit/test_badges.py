"""
Unit Tests for Donor Badges

Tests:
- Qualification thresholds
- Set semantics (never re-awarded)
- Engine evaluation against donation history
"""

from uuid import uuid4

import pytest

from foodbridge.core.badges import (
    FIRST_DONATION,
    HUNGER_HERO,
    MILESTONE_100,
    MILESTONE_500,
    ZERO_WASTE_STAR,
    BadgeEngine,
    DonorHistory,
    earned_badges,
)
from foodbridge.shared.models import DonationStatus

from foodbridge.tests.unit.fakes import NOW, FixedClock, InMemoryDonations, InMemoryUsers, make_donation


class TestEarnedBadges:
    """Pure qualification rules."""

    def test_first_completion(self):
        assert earned_badges(set(), DonorHistory(completed_count=1, total_meals=20)) == [FIRST_DONATION]

    def test_meal_milestones(self):
        history = DonorHistory(completed_count=3, total_meals=500)
        assert earned_badges({FIRST_DONATION}, history) == [MILESTONE_100, MILESTONE_500]

    def test_count_milestones(self):
        history = DonorHistory(completed_count=50, total_meals=60)
        assert earned_badges({FIRST_DONATION}, history) == [HUNGER_HERO, ZERO_WASTE_STAR]

    def test_held_badges_not_repeated(self):
        held = {FIRST_DONATION, MILESTONE_100}
        assert earned_badges(held, DonorHistory(completed_count=2, total_meals=150)) == []

    def test_history_from_quantities(self):
        history = DonorHistory.from_quantities([10, 40, 50])
        assert history == DonorHistory(completed_count=3, total_meals=100)


class TestBadgeEngine:
    """Evaluation against repositories."""

    @pytest.fixture
    def engine_parts(self):
        donations, users = InMemoryDonations(), InMemoryUsers()
        return donations, users, BadgeEngine(donations, users, FixedClock(NOW))

    async def _complete(self, donations, donor_id, quantity):
        donation = make_donation(quantity=quantity, status=DonationStatus.COMPLETED)
        donation.donor_id = donor_id
        await donations.add(donation)

    async def test_awards_only_new_badges(self, engine_parts):
        donations, users, engine = engine_parts
        donor_id = uuid4()
        await self._complete(donations, donor_id, 60)

        assert await engine.evaluate(donor_id) == [FIRST_DONATION]

        await self._complete(donations, donor_id, 60)
        assert await engine.evaluate(donor_id) == [MILESTONE_100]
        assert await engine.evaluate(donor_id) == []
        assert users.badges[donor_id] == {FIRST_DONATION, MILESTONE_100}

    async def test_lost_award_race_not_reported(self, engine_parts):
        donations, users, engine = engine_parts
        donor_id = uuid4()
        await self._complete(donations, donor_id, 10)

        # Another evaluation already inserted the badge after we read the held set
        original = users.award_badge

        async def award_after_rival(user_id, name, earned_at):
            await original(user_id, name, earned_at)
            return False

        users.award_badge = award_after_rival

        assert await engine.evaluate(donor_id) == []
        assert users.badges[donor_id] == {FIRST_DONATION}
