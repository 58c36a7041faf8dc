"""
Post-commit donation events.

The lifecycle publishes an event only after its conditional write committed.
Subscribers (notifications, live location fan-out) run with a timeout and
their failures are logged, never propagated back into the transition.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from uuid import UUID

from foodbridge.shared.models import Donation, DonationStatus

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    CREATED = "created"
    ACCEPTED = "accepted"
    VOLUNTEER_ASSIGNED = "volunteer_assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FEEDBACK_SUBMITTED = "feedback_submitted"
    BADGES_EARNED = "badges_earned"
    VOLUNTEER_LOCATION = "volunteer_location"


@dataclass(frozen=True)
class DonationSnapshot:
    """Detached copy of the fields subscribers need, safe after the session closes."""
    id: UUID
    food_name: str
    donor_id: UUID
    receiver_id: Optional[UUID]
    volunteer_id: Optional[UUID]
    status: DonationStatus
    quantity: int
    unit: str
    address: str
    lat: float
    lng: float

    @classmethod
    def from_donation(cls, donation: Donation) -> "DonationSnapshot":
        return cls(
            id=donation.id,
            food_name=donation.food_name,
            donor_id=donation.donor_id,
            receiver_id=donation.receiver_id,
            volunteer_id=donation.volunteer_id,
            status=DonationStatus(donation.status),
            quantity=donation.quantity,
            unit=getattr(donation.unit, "value", donation.unit),
            address=donation.address,
            lat=donation.lat,
            lng=donation.lng,
        )


@dataclass(frozen=True)
class DonationEvent:
    kind: EventKind
    donation: DonationSnapshot
    actor_id: Optional[UUID] = None
    actor_name: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[DonationEvent], Awaitable[None]]


class EventBus:
    """In-process publisher with isolated, time-bounded subscribers."""

    def __init__(self, timeout: float = 10.0, run_in_background: bool = False):
        self.timeout = timeout
        self.run_in_background = run_in_background
        self._handlers: List[EventHandler] = []
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    async def publish(self, event: DonationEvent) -> None:
        if not self.run_in_background:
            await self._dispatch(event)
            return

        task = asyncio.create_task(self._dispatch(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, event: DonationEvent) -> None:
        for handler in self._handlers:
            try:
                await asyncio.wait_for(handler(event), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.error(
                    f"Event handler {getattr(handler, '__qualname__', handler)} timed out "
                    f"on {event.kind.value} for donation {event.donation.id}"
                )
            except Exception:
                logger.exception(
                    f"Event handler {getattr(handler, '__qualname__', handler)} failed "
                    f"on {event.kind.value} for donation {event.donation.id}"
                )

    async def drain(self) -> None:
        """Wait for background deliveries still in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = [
    "EventKind",
    "DonationSnapshot",
    "DonationEvent",
    "EventHandler",
    "EventBus",
]
