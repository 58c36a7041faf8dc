"""Shared fixtures for the donation core unit tests."""

import pytest

from foodbridge.core.events import EventBus
from foodbridge.core.lifecycle import DonationLifecycle
from foodbridge.core.policy import Actor
from foodbridge.core.volunteers import VolunteerAssignment
from foodbridge.shared.models import UserRole

from foodbridge.tests.unit.fakes import (
    NOW,
    EventRecorder,
    FixedClock,
    InMemoryDonations,
    InMemoryUsers,
    donation_fields,
)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def donations():
    return InMemoryDonations()


@pytest.fixture
def users():
    return InMemoryUsers()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def bus(recorder):
    event_bus = EventBus(timeout=1.0)
    event_bus.subscribe(recorder)
    return event_bus


@pytest.fixture
def lifecycle(donations, users, bus, clock):
    return DonationLifecycle(donations, users, bus, clock)


@pytest.fixture
def assignment(lifecycle):
    return VolunteerAssignment(lifecycle)


def _actor(users: InMemoryUsers, role: UserRole, name: str, **fields) -> Actor:
    return Actor.from_user(users.create(role, name, **fields))


@pytest.fixture
def donor(users):
    return _actor(users, UserRole.DONOR, "Spice Route")


@pytest.fixture
def other_donor(users):
    return _actor(users, UserRole.DONOR, "Curry House")


@pytest.fixture
def receiver(users):
    return _actor(users, UserRole.RECEIVER, "Hope Shelter", lat=28.6129, lng=77.2295, address="India Gate")


@pytest.fixture
def volunteer(users):
    return _actor(users, UserRole.VOLUNTEER, "Asha")


@pytest.fixture
def second_volunteer(users):
    return _actor(users, UserRole.VOLUNTEER, "Ravi")


@pytest.fixture
def admin(users):
    return _actor(users, UserRole.ADMIN, "Admin")


@pytest.fixture
async def pending(lifecycle, donor, clock):
    return await lifecycle.create_donation(donor, donation_fields(clock))


@pytest.fixture
async def accepted(lifecycle, pending, receiver):
    return await lifecycle.accept_donation(pending.id, receiver)


@pytest.fixture
async def picked(assignment, accepted, volunteer):
    return await assignment.assign_volunteer(accepted.id, volunteer)


@pytest.fixture
async def completed(lifecycle, picked, receiver):
    return await lifecycle.complete_donation(picked.id, receiver)
