"""
In-memory collaborators for exercising the donation core without a database.

The donation store hands out copies, so two coroutines that load the same
donation hold independent snapshots and only the conditional update decides
which of them wins, as with real sessions.
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence, Set
from uuid import UUID, uuid4

from foodbridge.core.events import DonationEvent
from foodbridge.core.ports import DonationFilter
from foodbridge.shared.models import (
    Donation,
    DonationStatus,
    Feedback,
    FoodType,
    Freshness,
    Notification,
    QuantityUnit,
    User,
    UserRole,
)

NOW = datetime(2025, 11, 20, 12, 0, tzinfo=timezone.utc)

# Connaught Place, New Delhi
ORIGIN_LAT = 28.6315
ORIGIN_LNG = 77.2167

COLUMN_DEFAULTS = {
    "unit": QuantityUnit.SERVINGS,
    "freshness": Freshness.FRESHLY_COOKED,
    "food_health_score": 10.0,
    "is_emergency": False,
}


def copy_donation(donation: Donation) -> Donation:
    return Donation(**{c.key: getattr(donation, c.key) for c in Donation.__table__.columns})


def make_donation(
    lat=ORIGIN_LAT,
    lng=ORIGIN_LNG,
    quantity=50,
    freshness=Freshness.FRESHLY_COOKED,
    health=10.0,
    expires_in=timedelta(hours=1),
    status=DonationStatus.PENDING,
) -> Donation:
    return Donation(
        id=uuid4(),
        donor_id=uuid4(),
        food_name="Paneer Rice",
        food_type=FoodType.VEGETARIAN,
        quantity=quantity,
        unit=QuantityUnit.SERVINGS,
        address="Delhi",
        lat=lat,
        lng=lng,
        expiry_time=NOW + expires_in,
        slot_start=NOW,
        slot_end=NOW + timedelta(hours=1),
        freshness=freshness,
        food_health_score=health,
        is_emergency=False,
        status=status,
        created_at=NOW,
    )


class FixedClock:
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current += timedelta(**delta)
        return self.current


class InMemoryDonations:
    def __init__(self):
        self.rows: Dict[UUID, Donation] = {}
        self.feedback: Dict[UUID, Feedback] = {}
        self.cas_attempts = 0
        self._lock = asyncio.Lock()

    async def get(self, donation_id: UUID) -> Optional[Donation]:
        # Yield so concurrent callers interleave between read and write
        await asyncio.sleep(0)
        row = self.rows.get(donation_id)
        return copy_donation(row) if row is not None else None

    async def add(self, donation: Donation) -> Donation:
        for attr, default in COLUMN_DEFAULTS.items():
            if getattr(donation, attr) is None:
                setattr(donation, attr, default)
        self.rows[donation.id] = copy_donation(donation)
        return copy_donation(donation)

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
        async with self._lock:
            self.cas_attempts += 1
            row = self.rows.get(donation_id)
            if row is None or DonationStatus(row.status) not in set(expected_status):
                return None
            if any(getattr(row, name) is not None for name in require_unset):
                return None
            if any(getattr(row, name) != value for name, value in (require_equal or {}).items()):
                return None
            if not_expired_at is not None and not row.expiry_time > not_expired_at:
                return None
            if expired_at is not None and not row.expiry_time < expired_at:
                return None

            for name, value in changes.items():
                setattr(row, name, value)
            return copy_donation(row)

    async def expire_overdue(self, now: datetime) -> int:
        expired = 0
        for row in self.rows.values():
            if row.status == DonationStatus.PENDING and row.expiry_time < now:
                row.status = DonationStatus.EXPIRED
                expired += 1
        return expired

    def _matches(self, row: Donation, f: DonationFilter) -> bool:
        if f.status is not None and row.status != f.status:
            return False
        if f.food_type is not None and row.food_type != f.food_type:
            return False
        if f.min_quantity is not None and row.quantity < f.min_quantity:
            return False
        if f.is_emergency is not None and row.is_emergency != f.is_emergency:
            return False
        for party in ("donor_id", "receiver_id", "volunteer_id"):
            wanted = getattr(f, party)
            if wanted is not None and getattr(row, party) != wanted:
                return False
        return True

    async def query(self, donation_filter: DonationFilter, offset: int = 0, limit: int = 20) -> List[Donation]:
        rows = [r for r in self.rows.values() if self._matches(r, donation_filter)]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [copy_donation(r) for r in rows[offset:offset + limit]]

    async def list_open(
        self,
        statuses: Collection[DonationStatus],
        *,
        expiring_after: Optional[datetime] = None,
        unassigned_only: bool = False,
    ) -> List[Donation]:
        rows = [
            r for r in self.rows.values()
            if r.status in set(statuses)
            and (expiring_after is None or r.expiry_time > expiring_after)
            and (not unassigned_only or r.volunteer_id is None)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [copy_donation(r) for r in rows]

    async def list_completed_by_donor(self, donor_id: UUID) -> List[Donation]:
        return [
            copy_donation(r) for r in self.rows.values()
            if r.donor_id == donor_id and r.status == DonationStatus.COMPLETED
        ]

    async def attach_feedback(self, donation_id: UUID, feedback: Feedback) -> Optional[Donation]:
        async with self._lock:
            row = self.rows.get(donation_id)
            if row is None or row.status != DonationStatus.COMPLETED or row.feedback_id is not None:
                return None
            row.feedback_id = feedback.id
            row.food_health_score = feedback.freshness_score
            self.feedback[feedback.id] = feedback
            return copy_donation(row)


class InMemoryUsers:
    def __init__(self):
        self.users: Dict[UUID, User] = {}
        self.badges: Dict[UUID, Set[str]] = defaultdict(set)
        self.fail_points = False

    def create(self, role: UserRole, name: str, **fields) -> User:
        user = User(
            id=uuid4(),
            email=f"{name.lower().replace(' ', '.')}@example.com",
            name=name,
            role=role,
            points=0,
            is_active=True,
            **fields,
        )
        self.users[user.id] = user
        return user

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return self.users.get(user_id)

    async def active_volunteer_ids(self) -> List[UUID]:
        return [u.id for u in self.users.values() if u.role == UserRole.VOLUNTEER and u.is_active]

    async def add_points(self, user_id: UUID, points: int) -> None:
        if self.fail_points:
            raise RuntimeError("points store unavailable")
        self.users[user_id].points += points

    def points(self, user_id: UUID) -> int:
        return self.users[user_id].points

    async def badge_names(self, user_id: UUID) -> Set[str]:
        return set(self.badges[user_id])

    async def award_badge(self, user_id: UUID, name: str, earned_at: datetime) -> bool:
        if name in self.badges[user_id]:
            return False
        self.badges[user_id].add(name)
        return True


class RecordingStore:
    def __init__(self, fail: bool = False):
        self.saved: List[Notification] = []
        self.fail = fail

    async def add(self, notification: Notification) -> Notification:
        if self.fail:
            raise RuntimeError("notification store unavailable")
        self.saved.append(notification)
        return notification

    def for_user(self, user_id: UUID) -> List[Notification]:
        return [n for n in self.saved if n.user_id == user_id]


class RecordingPush:
    def __init__(self, connected: Collection[UUID] = (), fail: bool = False):
        self.connected = set(connected)
        self.fail = fail
        self.frames: List[tuple] = []

    async def deliver(self, user_id: UUID, message: Dict[str, Any]) -> bool:
        if self.fail:
            raise ConnectionError("socket closed")
        if user_id not in self.connected:
            return False
        self.frames.append((user_id, message))
        return True


class EventRecorder:
    def __init__(self):
        self.events: List[DonationEvent] = []

    async def __call__(self, event: DonationEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [e.kind.value for e in self.events]


def donation_fields(clock: FixedClock, **overrides) -> dict:
    """Valid create-donation input in the API shape."""
    now = clock.now()
    fields = {
        "food_name": "Vegetable Biryani",
        "food_type": "vegetarian",
        "quantity": 50,
        "unit": "servings",
        "description": "Lunch surplus",
        "location": {
            "address": "Connaught Place, New Delhi",
            "coordinates": {"lat": ORIGIN_LAT, "lng": ORIGIN_LNG},
        },
        "expiry_time": now + timedelta(hours=6),
        "available_time_slot": {"start": now, "end": now + timedelta(hours=3)},
        "freshness": "freshly-cooked",
        "food_health_score": 9,
        "is_emergency": False,
    }
    fields.update(overrides)
    return fields
