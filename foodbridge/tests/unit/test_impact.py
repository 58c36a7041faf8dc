"""Unit Tests for Impact Figures and Dashboards"""

from uuid import uuid4

import pytest

from foodbridge.core.impact import (
    DonorTotal,
    build_dashboard,
    build_impact_report,
    co2_reduction_kg,
    people_fed,
)
from foodbridge.shared.models import DonationStatus, User, UserBadge, UserRole

from foodbridge.tests.unit.fakes import NOW, make_donation


def user_with(role: UserRole, points: int = 0, badges=()) -> User:
    user = User(id=uuid4(), name="Test", email="test@example.com", role=role, points=points)
    user.badges = [UserBadge(name=name, earned_at=NOW) for name in badges]
    return user


def donations_with(*statuses, quantity=10):
    return [make_donation(quantity=quantity, status=status) for status in statuses]


class TestImpactFigures:

    def test_co2_per_meal(self):
        # 0.5 kg per meal, 2.5 kg CO2 per kg
        assert co2_reduction_kg(100) == 125.0
        assert co2_reduction_kg(0) == 0

    @pytest.mark.parametrize("meals,people", [(0, 0), (1, 1), (2, 1), (7, 4), (100, 50)])
    def test_people_fed_rounds_up(self, meals, people):
        assert people_fed(meals) == people


class TestImpactReport:

    def test_totals_and_top_donors(self):
        big, small, unnamed = uuid4(), uuid4(), uuid4()
        totals = [
            DonorTotal(donor_id=small, total_meals=40, completed_count=2),
            DonorTotal(donor_id=big, total_meals=200, completed_count=3),
            DonorTotal(donor_id=unnamed, total_meals=500, completed_count=1),
        ]

        report = build_impact_report(totals, {big: "Spice Route", small: "Curry House"})

        assert report.total_meals == 740
        assert report.completed_donations == 6
        assert report.people_fed == 370
        assert report.co2_reduction_kg == 925.0
        # Donors without a user record are counted but not listed
        assert [d.donor_name for d in report.top_donors] == ["Spice Route", "Curry House"]

    def test_top_list_truncated(self):
        totals = [DonorTotal(donor_id=uuid4(), total_meals=n, completed_count=1) for n in range(1, 16)]
        names = {t.donor_id: f"Donor {t.total_meals}" for t in totals}

        report = build_impact_report(totals, names)

        assert len(report.top_donors) == 10
        assert report.top_donors[0].total_meals == 15

    def test_empty_history(self):
        report = build_impact_report([], {})
        assert (report.total_meals, report.people_fed, report.top_donors) == (0, 0, [])


class TestDashboard:

    def test_donor_dashboard(self):
        donated = donations_with(
            DonationStatus.PENDING,
            DonationStatus.ACCEPTED,
            DonationStatus.COMPLETED,
            DonationStatus.COMPLETED,
            DonationStatus.CANCELLED,
        )

        dashboard = build_dashboard(user_with(UserRole.DONOR, 70, ["First Donation"]), donated=donated)

        assert dashboard["stats"] == {"total": 5, "pending": 1, "accepted": 1, "completed": 2, "cancelled": 1}
        assert dashboard["total_meals"] == 20
        assert dashboard["points"] == 70
        assert dashboard["badges"] == [{"name": "First Donation", "earned_at": NOW}]

    def test_receiver_dashboard_includes_own_donations(self):
        received = donations_with(DonationStatus.ACCEPTED, DonationStatus.PICKED, DonationStatus.COMPLETED)
        donated = donations_with(DonationStatus.PENDING)

        dashboard = build_dashboard(user_with(UserRole.RECEIVER), donated=donated, received=received)

        assert dashboard["stats"] == {"total": 3, "accepted": 1, "picked": 1, "completed": 1}
        assert dashboard["total_meals"] == 10
        assert dashboard["my_donations"] == donated

    def test_volunteer_dashboard(self):
        delivered = donations_with(DonationStatus.PICKED, DonationStatus.COMPLETED, quantity=25)

        dashboard = build_dashboard(user_with(UserRole.VOLUNTEER), delivered=delivered)

        assert dashboard["stats"] == {"total": 2, "picked": 1, "completed": 1}
        assert dashboard["total_meals"] == 25

    def test_recent_list_capped(self):
        donated = donations_with(*[DonationStatus.PENDING] * 12)

        dashboard = build_dashboard(user_with(UserRole.DONOR), donated=donated)

        assert dashboard["stats"]["total"] == 12
        assert len(dashboard["donations"]) == 10
