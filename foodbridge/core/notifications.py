"""Notification dispatch: persist, then best-effort live push."""

import asyncio
import enum
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from uuid import UUID, uuid4

from foodbridge.shared.models import Notification, NotificationType

from .events import DonationEvent, EventKind
from .ports import Clock, NotificationStore, PushChannel

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def notification_frame(notification: Notification) -> Dict[str, Any]:
    """Live-channel representation of a stored notification."""
    return {
        "event": "notification",
        "id": str(notification.id),
        "type": _jsonable(notification.type),
        "title": notification.title,
        "message": notification.message,
        "data": notification.payload or {},
        "created_at": _jsonable(notification.created_at),
    }


class NotificationDispatcher:
    """
    Stores a notification for a user, then pushes it over their live channel.

    A user without an open channel simply sees the notification on the next
    poll. Neither a push failure nor a persistence failure is raised to the
    caller: notifications never decide whether a donation transition succeeded.
    """

    def __init__(
        self,
        store: NotificationStore,
        push: Optional[PushChannel],
        clock: Clock,
        timeout: float = 5.0,
        push_timeout: float = 5.0,
        enabled: bool = True,
        fanout_concurrency: int = 5,
    ):
        self.store = store
        self.push = push
        self.clock = clock
        self.timeout = timeout
        self.push_timeout = push_timeout
        self.enabled = enabled
        self.fanout_concurrency = max(1, fanout_concurrency)

    async def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[Notification]:
        return await self._notify(user_id, type, title, message, payload)

    async def _notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
        store_slots: Optional[asyncio.Semaphore] = None,
    ) -> Optional[Notification]:
        if not self.enabled:
            logger.debug(f"Notifications disabled, dropping {type.value} for user {user_id}")
            return None

        notification = Notification(
            id=uuid4(),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            payload=_jsonable(payload or {}),
            is_read=False,
            created_at=self.clock.now(),
        )

        try:
            if store_slots is None:
                notification = await self._store(notification)
            else:
                # The timeout starts once a slot is free, not while queued
                async with store_slots:
                    notification = await self._store(notification)
        except Exception:
            logger.error(f"Failed to store {type.value} notification for user {user_id}", exc_info=True)
            return None

        await self.push_to(user_id, notification_frame(notification))
        return notification

    async def _store(self, notification: Notification) -> Notification:
        return await asyncio.wait_for(self.store.add(notification), timeout=self.timeout)

    async def notify_all(
        self,
        user_ids: Iterable[UUID],
        type: NotificationType,
        title: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> List[Notification]:
        """
        Independent notify per user; one user's failure does not block the rest.

        At most ``fanout_concurrency`` writes are in flight at once, so a large
        audience queues for the store instead of exhausting its connections.
        """
        store_slots = asyncio.Semaphore(self.fanout_concurrency)
        results = await asyncio.gather(
            *(self._notify(user_id, type, title, message, payload, store_slots) for user_id in user_ids),
            return_exceptions=True,
        )

        delivered = []
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"Notification fan-out error: {result!r}")
            elif result is not None:
                delivered.append(result)
        return delivered

    async def push_to(self, user_id: UUID, message: Dict[str, Any]) -> bool:
        """Live push only, nothing persisted."""
        if self.push is None:
            return False

        try:
            return await asyncio.wait_for(
                self.push.deliver(user_id, _jsonable(message)),
                timeout=self.push_timeout,
            )
        except Exception as e:
            logger.warning(f"Live push to user {user_id} failed: {e!r}")
            return False


VolunteerLookup = Callable[[], Awaitable[List[UUID]]]


class DonationNotifier:
    """Event subscriber translating lifecycle events into notifications."""

    def __init__(self, dispatcher: NotificationDispatcher, active_volunteers: VolunteerLookup):
        self.dispatcher = dispatcher
        self.active_volunteers = active_volunteers

    async def __call__(self, event: DonationEvent) -> None:
        handler = getattr(self, f"on_{event.kind.value}", None)
        if handler is not None:
            await handler(event)

    async def on_accepted(self, event: DonationEvent) -> None:
        donation = event.donation
        await self.dispatcher.notify(
            donation.donor_id,
            NotificationType.DONATION_ACCEPTED,
            "Donation Accepted",
            f"{event.actor_name or 'A receiver'} has accepted your donation \"{donation.food_name}\"",
            {"donation_id": donation.id, "receiver_id": donation.receiver_id},
        )

        volunteer_ids = await self.active_volunteers()
        if not volunteer_ids:
            logger.info("No active volunteers found")
            return

        await self.dispatcher.notify_all(
            volunteer_ids,
            NotificationType.DONATION_AVAILABLE,
            "New Donation Needs Pickup",
            f"A donation \"{donation.food_name}\" has been accepted and needs pickup.",
            {
                "donation_id": donation.id,
                "donor_id": donation.donor_id,
                "receiver_id": donation.receiver_id,
                "location": {"address": donation.address, "lat": donation.lat, "lng": donation.lng},
                "food_name": donation.food_name,
                "quantity": donation.quantity,
                "unit": donation.unit,
            },
        )
        logger.info(f"Notified {len(volunteer_ids)} volunteers about donation {donation.id}")

    async def on_volunteer_assigned(self, event: DonationEvent) -> None:
        donation = event.donation
        volunteer = event.actor_name or "A volunteer"
        payload = {"donation_id": donation.id, "volunteer_id": donation.volunteer_id}

        await self.dispatcher.notify(
            donation.donor_id,
            NotificationType.DONATION_PICKED,
            "Donation Picked Up",
            f"{volunteer} has picked up your donation",
            payload,
        )
        if donation.receiver_id:
            await self.dispatcher.notify(
                donation.receiver_id,
                NotificationType.DONATION_PICKED,
                "Donation Picked Up",
                f"{volunteer} is delivering your donation",
                payload,
            )

    async def on_completed(self, event: DonationEvent) -> None:
        donation = event.donation
        payload = {"donation_id": donation.id}

        await self.dispatcher.notify(
            donation.donor_id,
            NotificationType.DONATION_COMPLETED,
            "Donation Completed",
            f"Your donation \"{donation.food_name}\" has been successfully delivered",
            payload,
        )
        if donation.receiver_id:
            await self.dispatcher.notify(
                donation.receiver_id,
                NotificationType.DONATION_COMPLETED,
                "Donation Delivered",
                f"The donation \"{donation.food_name}\" has been successfully delivered to you",
                payload,
            )
        if donation.volunteer_id:
            await self.dispatcher.notify(
                donation.volunteer_id,
                NotificationType.DONATION_COMPLETED,
                "Delivery Completed",
                f"You have successfully delivered \"{donation.food_name}\"",
                payload,
            )

    async def on_cancelled(self, event: DonationEvent) -> None:
        donation = event.donation
        if not donation.receiver_id:
            return
        await self.dispatcher.notify(
            donation.receiver_id,
            NotificationType.DONATION_CANCELLED,
            "Donation Cancelled",
            f"The donation \"{donation.food_name}\" has been cancelled",
            {"donation_id": donation.id, "reason": event.extra.get("reason")},
        )

    async def on_feedback_submitted(self, event: DonationEvent) -> None:
        donation = event.donation
        await self.dispatcher.notify(
            donation.donor_id,
            NotificationType.FEEDBACK_RECEIVED,
            "Feedback Received",
            f"Your donation \"{donation.food_name}\" received a {event.extra.get('rating')}-star rating",
            {"donation_id": donation.id, "feedback_id": event.extra.get("feedback_id")},
        )

    async def on_badges_earned(self, event: DonationEvent) -> None:
        donation = event.donation
        for badge in event.extra.get("badges", []):
            await self.dispatcher.notify(
                donation.donor_id,
                NotificationType.BADGE_EARNED,
                "Badge Earned",
                f"Congratulations! You earned the \"{badge}\" badge",
                {"badge": badge, "donation_id": donation.id},
            )

    async def on_volunteer_location(self, event: DonationEvent) -> None:
        donation = event.donation
        frame = {
            "event": "volunteer_location",
            "donation_id": donation.id,
            "lat": event.extra.get("lat"),
            "lng": event.extra.get("lng"),
            "updated_at": event.extra.get("updated_at"),
        }
        recipients = [donation.donor_id]
        if donation.receiver_id:
            recipients.append(donation.receiver_id)
        for user_id in recipients:
            await self.dispatcher.push_to(user_id, frame)


__all__ = [
    "NotificationDispatcher",
    "DonationNotifier",
    "notification_frame",
]
