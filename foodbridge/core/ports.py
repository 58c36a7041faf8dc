"""
Collaborator interfaces consumed by the donation core.

The core never imports a storage or transport technology; the SQLAlchemy
repositories in ``foodbridge.shared.repositories`` and the WebSocket hub in
``foodbridge.api.realtime`` are the production implementations.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Mapping, Optional, Protocol, Sequence, Set
from uuid import UUID

from foodbridge.shared.models import (
    Donation,
    DonationStatus,
    Feedback,
    FoodType,
    Notification,
    User,
)


@dataclass(frozen=True)
class DonationFilter:
    """Column filters for donation listings."""
    status: Optional[DonationStatus] = DonationStatus.PENDING
    food_type: Optional[FoodType] = None
    min_quantity: Optional[int] = None
    is_emergency: Optional[bool] = None
    donor_id: Optional[UUID] = None
    receiver_id: Optional[UUID] = None
    volunteer_id: Optional[UUID] = None


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DonationRepository(Protocol):
    async def get(self, donation_id: UUID) -> Optional[Donation]:
        ...

    async def add(self, donation: Donation) -> Donation:
        ...

    async def conditional_update(
        self,
        donation_id: UUID,
        *,
        expected_status: Collection[DonationStatus],
        changes: Mapping[str, Any],
        require_unset: Sequence[str] = (),
        require_equal: Optional[Mapping[str, Any]] = None,
        not_expired_at: Optional[datetime] = None,
        expired_at: Optional[datetime] = None,
    ) -> Optional[Donation]:
        """
        Apply ``changes`` only if every precondition holds; None when it did not.

        ``not_expired_at`` requires ``expiry_time`` strictly after the instant,
        ``expired_at`` strictly before it.
        """
        ...

    async def expire_overdue(self, now: datetime) -> int:
        ...

    async def query(
        self,
        donation_filter: DonationFilter,
        offset: int = 0,
        limit: int = 20,
    ) -> List[Donation]:
        ...

    async def list_open(
        self,
        statuses: Collection[DonationStatus],
        *,
        expiring_after: Optional[datetime] = None,
        unassigned_only: bool = False,
    ) -> List[Donation]:
        ...

    async def list_completed_by_donor(self, donor_id: UUID) -> List[Donation]:
        ...

    async def attach_feedback(self, donation_id: UUID, feedback: Feedback) -> Optional[Donation]:
        """Persist feedback and link it, only if the donation is completed and has none yet."""
        ...


class UserDirectory(Protocol):
    async def get_user(self, user_id: UUID) -> Optional[User]:
        ...

    async def active_volunteer_ids(self) -> List[UUID]:
        ...

    async def add_points(self, user_id: UUID, points: int) -> None:
        ...

    async def badge_names(self, user_id: UUID) -> Set[str]:
        ...

    async def award_badge(self, user_id: UUID, name: str, earned_at: datetime) -> bool:
        """Return True only when the badge was newly added."""
        ...


class NotificationStore(Protocol):
    async def add(self, notification: Notification) -> Notification:
        ...


class PushChannel(Protocol):
    async def deliver(self, user_id: UUID, message: Dict[str, Any]) -> bool:
        """Best effort; False when the user has no open channel."""
        ...


__all__ = [
    "DonationFilter",
    "Clock",
    "SystemClock",
    "DonationRepository",
    "UserDirectory",
    "NotificationStore",
    "PushChannel",
]
