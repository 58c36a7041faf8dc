"""
Unit Tests for Notifications and Events

Tests:
- Persist-then-push dispatch and failure isolation
- Lifecycle events translated into notifications
- Event bus isolation, timeouts and background delivery
"""

import asyncio
import logging
from uuid import uuid4

import pytest

from foodbridge.core.events import DonationEvent, DonationSnapshot, EventBus, EventKind
from foodbridge.core.notifications import DonationNotifier, NotificationDispatcher
from foodbridge.shared.models import NotificationType

from foodbridge.tests.unit.fakes import FixedClock, NOW, RecordingPush, RecordingStore, donation_fields


def dispatcher_with(store=None, push=None, **kwargs) -> NotificationDispatcher:
    return NotificationDispatcher(store or RecordingStore(), push, FixedClock(NOW), **kwargs)


# ============================================================================
# Dispatcher
# ============================================================================

class TestNotificationDispatcher:
    """Persist, then best-effort push."""

    async def test_persists_and_pushes(self):
        user_id = uuid4()
        store, push = RecordingStore(), RecordingPush(connected=[user_id])
        dispatcher = dispatcher_with(store, push)

        notification = await dispatcher.notify(
            user_id, NotificationType.DONATION_ACCEPTED, "Donation Accepted", "Accepted", {"donation_id": uuid4()}
        )

        assert store.saved == [notification]
        assert notification.is_read is False
        assert notification.created_at == NOW
        # Payload values are stored JSON-ready
        assert isinstance(notification.payload["donation_id"], str)

        (recipient, frame), = push.frames
        assert recipient == user_id
        assert frame["event"] == "notification"
        assert frame["type"] == "donation_accepted"
        assert frame["id"] == str(notification.id)

    async def test_offline_user_only_gets_stored_copy(self):
        store, push = RecordingStore(), RecordingPush()

        notification = await dispatcher_with(store, push).notify(
            uuid4(), NotificationType.BADGE_EARNED, "Badge Earned", "Well done"
        )

        assert notification is not None
        assert push.frames == []

    async def test_push_failure_swallowed(self):
        user_id = uuid4()
        store = RecordingStore()

        notification = await dispatcher_with(store, RecordingPush(connected=[user_id], fail=True)).notify(
            user_id, NotificationType.DONATION_PICKED, "Picked", "On the way"
        )

        assert store.saved == [notification]

    async def test_store_failure_returns_none(self):
        push = RecordingPush(connected=[uuid4()])

        result = await dispatcher_with(RecordingStore(fail=True), push).notify(
            uuid4(), NotificationType.DONATION_PICKED, "Picked", "On the way"
        )

        assert result is None
        assert push.frames == []

    async def test_disabled_dispatcher_drops(self):
        store = RecordingStore()

        result = await dispatcher_with(store, enabled=False).notify(
            uuid4(), NotificationType.DONATION_PICKED, "Picked", "On the way"
        )

        assert result is None
        assert store.saved == []

    async def test_fan_out_isolates_failures(self):
        class FlakyStore(RecordingStore):
            def __init__(self, bad_user):
                super().__init__()
                self.bad_user = bad_user

            async def add(self, notification):
                if notification.user_id == self.bad_user:
                    raise RuntimeError("constraint violated")
                return await super().add(notification)

        users = [uuid4() for _ in range(4)]
        store = FlakyStore(bad_user=users[1])

        delivered = await dispatcher_with(store).notify_all(
            users, NotificationType.DONATION_AVAILABLE, "New Donation", "Needs pickup"
        )

        assert len(delivered) == 3
        assert {n.user_id for n in store.saved} == set(users) - {users[1]}

    async def test_fan_out_bounds_concurrent_writes(self):
        class SlowStore(RecordingStore):
            def __init__(self):
                super().__init__()
                self.in_flight = 0
                self.peak = 0

            async def add(self, notification):
                self.in_flight += 1
                self.peak = max(self.peak, self.in_flight)
                await asyncio.sleep(0.001)
                self.in_flight -= 1
                return await super().add(notification)

        users = [uuid4() for _ in range(300)]
        store = SlowStore()

        delivered = await dispatcher_with(store, timeout=0.5, fanout_concurrency=4).notify_all(
            users, NotificationType.DONATION_AVAILABLE, "New Donation", "Needs pickup"
        )

        assert len(delivered) == 300
        assert store.peak == 4

    async def test_store_timeout_logged_with_traceback(self, caplog):
        class HangingStore(RecordingStore):
            async def add(self, notification):
                await asyncio.sleep(1)

        with caplog.at_level(logging.ERROR, logger="foodbridge.core.notifications"):
            result = await dispatcher_with(HangingStore(), timeout=0.01).notify(
                uuid4(), NotificationType.DONATION_AVAILABLE, "New Donation", "Needs pickup"
            )

        assert result is None
        [record] = caplog.records
        assert record.exc_info[0] is asyncio.TimeoutError


# ============================================================================
# Lifecycle Notifications
# ============================================================================

@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def push():
    return RecordingPush()


@pytest.fixture
def notified_bus(bus, store, push, users):
    """The unit-test bus with the notification subscriber attached."""
    bus.subscribe(DonationNotifier(NotificationDispatcher(store, push, FixedClock(NOW)), users.active_volunteer_ids))
    return bus


class TestDonationNotifier:
    """Which parties hear about each transition."""

    async def test_accept_notifies_donor_and_all_active_volunteers(
        self, notified_bus, lifecycle, pending, receiver, donor, volunteer, second_volunteer, store
    ):
        await lifecycle.accept_donation(pending.id, receiver)

        (to_donor,) = store.for_user(donor.id)
        assert to_donor.type == NotificationType.DONATION_ACCEPTED
        assert "Hope Shelter" in to_donor.message
        for v in (volunteer, second_volunteer):
            (available,) = store.for_user(v.id)
            assert available.type == NotificationType.DONATION_AVAILABLE
            assert available.payload["location"]["address"] == "Connaught Place, New Delhi"

    async def test_pickup_notifies_donor_and_receiver(
        self, notified_bus, assignment, accepted, volunteer, donor, receiver, store
    ):
        await assignment.assign_volunteer(accepted.id, volunteer)

        assert [n.type for n in store.for_user(donor.id)][-1] == NotificationType.DONATION_PICKED
        assert [n.type for n in store.for_user(receiver.id)] == [NotificationType.DONATION_PICKED]

    async def test_completion_notifies_every_party_and_badges(
        self, notified_bus, lifecycle, picked, receiver, donor, volunteer, store
    ):
        await lifecycle.complete_donation(picked.id, receiver)

        donor_types = [n.type for n in store.for_user(donor.id)]
        assert donor_types[-2:] == [NotificationType.DONATION_COMPLETED, NotificationType.BADGE_EARNED]
        assert store.for_user(receiver.id)[-1].type == NotificationType.DONATION_COMPLETED
        assert NotificationType.DONATION_COMPLETED in [n.type for n in store.for_user(volunteer.id)]

    async def test_cancel_notifies_attached_receiver(self, notified_bus, lifecycle, accepted, donor, receiver, store):
        await lifecycle.cancel_donation(accepted.id, donor, "Kitchen closed")

        cancelled = store.for_user(receiver.id)[-1]
        assert cancelled.type == NotificationType.DONATION_CANCELLED
        assert cancelled.payload["reason"] == "Kitchen closed"

    async def test_cancel_without_receiver_notifies_nobody(self, notified_bus, lifecycle, pending, donor, store):
        await lifecycle.cancel_donation(pending.id, donor)
        assert store.saved == []

    async def test_feedback_notifies_donor(self, notified_bus, lifecycle, completed, receiver, donor, store):
        await lifecycle.submit_feedback(
            completed.id, receiver, {"rating": 5, "freshness_score": 9, "quality": "excellent"}
        )

        received = store.for_user(donor.id)[-1]
        assert received.type == NotificationType.FEEDBACK_RECEIVED
        assert "5-star" in received.message

    async def test_location_pushed_not_stored(
        self, notified_bus, lifecycle, picked, volunteer, donor, receiver, store, push
    ):
        push.connected = {donor.id, receiver.id}
        stored_before = len(store.saved)

        await lifecycle.update_volunteer_location(picked.id, volunteer, 28.62, 77.22)

        assert len(store.saved) == stored_before
        assert {user_id for user_id, _ in push.frames} == {donor.id, receiver.id}
        assert all(frame["event"] == "volunteer_location" for _, frame in push.frames)

    async def test_notification_failure_does_not_fail_transition(
        self, bus, users, lifecycle, pending, receiver, donations
    ):
        bus.subscribe(DonationNotifier(NotificationDispatcher(RecordingStore(fail=True), None, FixedClock(NOW)), users.active_volunteer_ids))

        donation = await lifecycle.accept_donation(pending.id, receiver)

        assert donation.receiver_id == receiver.id
        assert donations.rows[pending.id].receiver_id == receiver.id


# ============================================================================
# Event Bus
# ============================================================================

class TestEventBus:
    """Isolated, time-bounded subscribers."""

    @pytest.fixture
    async def event(self, lifecycle, donor, clock):
        donation = await lifecycle.create_donation(donor, donation_fields(clock))
        return DonationEvent(kind=EventKind.CREATED, donation=DonationSnapshot.from_donation(donation))

    async def test_failing_handler_does_not_block_others(self, event):
        seen = []

        async def broken(_):
            raise RuntimeError("boom")

        async def healthy(e):
            seen.append(e)

        bus = EventBus()
        bus.subscribe(broken)
        bus.subscribe(healthy)

        await bus.publish(event)

        assert seen == [event]

    async def test_slow_handler_times_out(self, event):
        seen = []

        async def slow(_):
            await asyncio.sleep(5)

        async def healthy(e):
            seen.append(e)

        bus = EventBus(timeout=0.01)
        bus.subscribe(slow)
        bus.subscribe(healthy)

        await bus.publish(event)

        assert seen == [event]

    async def test_background_delivery_drains(self, event):
        seen = []

        async def handler(e):
            await asyncio.sleep(0.01)
            seen.append(e)

        bus = EventBus(run_in_background=True)
        bus.subscribe(handler)

        await bus.publish(event)
        assert seen == []

        await bus.drain()
        assert seen == [event]
