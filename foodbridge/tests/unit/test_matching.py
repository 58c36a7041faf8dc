"""
Unit Tests for Match Scoring and Distance

Tests:
- Great-circle distance and coordinate validation
- Score components and totals
- Ranking order, filtering and truncation
- Radius view for volunteers
"""

from datetime import timedelta

import pytest

from foodbridge.core.errors import ValidationError
from foodbridge.core.geo import GeoPoint, distance_km
from foodbridge.core.matching import MatchScorer, freshness_weight
from foodbridge.shared.models import DonationStatus, Freshness

from foodbridge.tests.unit.fakes import NOW, ORIGIN_LAT, ORIGIN_LNG, make_donation

ORIGIN = GeoPoint(ORIGIN_LAT, ORIGIN_LNG)


# ============================================================================
# Distance
# ============================================================================

class TestDistance:
    """Great-circle distance helper."""

    def test_same_point_is_zero(self):
        assert distance_km(ORIGIN, ORIGIN) == 0

    def test_known_distance(self):
        # Delhi to Mumbai is about 1150 km along the surface
        mumbai = GeoPoint(19.0760, 72.8777)
        assert 1130 < distance_km(ORIGIN, mumbai) < 1170

    @pytest.mark.parametrize("lat,lng", [(91, 0), (-91, 0), (0, 181), (0, -181)])
    def test_out_of_range_coordinates(self, lat, lng):
        with pytest.raises(ValidationError):
            GeoPoint(lat, lng)


# ============================================================================
# Scoring
# ============================================================================

class TestScoreComponents:
    """Individual score terms."""

    def test_urgent_fresh_donation_at_origin(self):
        ranked = MatchScorer().score(make_donation(quantity=100), ORIGIN, NOW)

        # 40 distance + 30 freshness + 20 quantity + 10 health + 10 urgency
        assert ranked.match_score == 110
        assert ranked.distance_km == 0

    def test_quantity_fifty_scores_ten(self):
        ranked = MatchScorer().score(make_donation(quantity=50), ORIGIN, NOW)

        assert ranked.breakdown.quantity == 10
        assert ranked.match_score == 100

    def test_distance_beyond_horizon_scores_zero(self):
        # About 15 km north
        far = make_donation(lat=ORIGIN_LAT + 0.135)
        ranked = MatchScorer().score(far, ORIGIN, NOW)

        assert ranked.distance_km > 10
        assert ranked.breakdown.distance == 0

    def test_no_urgency_bonus_beyond_two_hours(self):
        ranked = MatchScorer().score(make_donation(expires_in=timedelta(hours=3)), ORIGIN, NOW)
        assert ranked.breakdown.urgency == 0

    @pytest.mark.parametrize(
        "freshness,weight",
        [
            (Freshness.FRESHLY_COOKED, 30),
            (Freshness.STORED_4HRS, 25),
            (Freshness.STORED_8HRS, 20),
            (Freshness.STORED_12HRS, 15),
            (Freshness.OTHER, 10),
        ],
    )
    def test_freshness_weights(self, freshness, weight):
        assert freshness_weight(freshness) == weight

    def test_unknown_freshness_scores_as_other(self):
        assert freshness_weight("reheated") == 10

    def test_health_scaled(self):
        ranked = MatchScorer().score(make_donation(health=5.0), ORIGIN, NOW)
        assert ranked.breakdown.health == 5


# ============================================================================
# Ranking
# ============================================================================

class TestRanking:
    """Ordering, filtering and truncation."""

    def test_sorted_by_score_descending(self):
        low = make_donation(freshness=Freshness.OTHER)
        high = make_donation()
        mid = make_donation(freshness=Freshness.STORED_8HRS)

        ranked = MatchScorer().rank([low, high, mid], ORIGIN, NOW)

        assert [r.donation.id for r in ranked] == [high.id, mid.id, low.id]

    def test_ties_keep_input_order(self):
        first, second = make_donation(), make_donation()

        ranked = MatchScorer().rank([first, second], ORIGIN, NOW)

        assert [r.donation.id for r in ranked] == [first.id, second.id]

    def test_non_pending_and_expired_skipped(self):
        accepted = make_donation(status=DonationStatus.ACCEPTED)
        overdue = make_donation(expires_in=timedelta(minutes=-1))

        assert MatchScorer().rank([accepted, overdue], ORIGIN, NOW) == []

    def test_truncated_to_limit(self):
        donations = [make_donation() for _ in range(15)]

        assert len(MatchScorer().rank(donations, ORIGIN, NOW)) == 10
        assert len(MatchScorer(limit=3).rank(donations, ORIGIN, NOW)) == 3


class TestWithinRadius:
    """Distance-only view."""

    def test_nearest_first_within_radius(self):
        near = make_donation(lat=ORIGIN_LAT + 0.01)
        nearest = make_donation()
        far = make_donation(lat=ORIGIN_LAT + 0.5)

        results = MatchScorer().within_radius([near, far, nearest], ORIGIN, 10)

        assert [r.donation.id for r in results] == [nearest.id, near.id]
        assert results[0].match_score is None
