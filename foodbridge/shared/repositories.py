"""
SQLAlchemy implementations of the donation core's persistence ports.

Every lifecycle write is a single conditional UPDATE committed on its own;
``rowcount == 0`` means a precondition did not hold (someone else won, or the
state was never right) and the caller gets ``None`` back.
"""

import asyncio
import functools
import logging
from datetime import datetime
from typing import Any, AsyncContextManager, Callable, Collection, Dict, List, Mapping, Optional, Sequence, Set, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from foodbridge.core.errors import Forbidden, NotFound, TransientInfraError
from foodbridge.core.impact import DonorTotal
from foodbridge.core.ports import DonationFilter

from .database import get_session_context
from .models import (
    Donation,
    DonationStatus,
    Feedback,
    Notification,
    User,
    UserBadge,
    UserRole,
    utcnow,
)

logger = logging.getLogger(__name__)

LOW_RATING_THRESHOLD = 3.0


def translate_infra_errors(func_):
    """Surface connection-level database failures as TransientInfraError."""

    @functools.wraps(func_)
    async def wrapper(*args, **kwargs):
        try:
            return await func_(*args, **kwargs)
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Database unavailable during {func_.__qualname__}: {e}")
            raise TransientInfraError("Database temporarily unavailable", {"operation": func_.__name__}) from e
        except DBAPIError as e:
            if not e.connection_invalidated:
                raise
            logger.error(f"Database connection lost during {func_.__qualname__}: {e}")
            raise TransientInfraError("Database temporarily unavailable", {"operation": func_.__name__}) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Database call timed out during {func_.__qualname__}")
            raise TransientInfraError("Database call timed out", {"operation": func_.__name__}) from e

    return wrapper


def _upsert_ignore(session: AsyncSession):
    """Dialect-specific INSERT that supports ON CONFLICT DO NOTHING."""
    return pg_insert if session.get_bind().dialect.name == "postgresql" else sqlite_insert


# ============================================================================
# DONATIONS
# ============================================================================

class SqlDonationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @translate_infra_errors
    async def get(self, donation_id: UUID) -> Optional[Donation]:
        return await self.session.get(Donation, donation_id, populate_existing=True)

    @translate_infra_errors
    async def add(self, donation: Donation) -> Donation:
        self.session.add(donation)
        await self.session.commit()
        return donation

    @translate_infra_errors
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
        stmt = update(Donation).where(
            Donation.id == donation_id,
            Donation.status.in_(list(expected_status)),
        )
        for column in require_unset:
            stmt = stmt.where(getattr(Donation, column).is_(None))
        for column, value in (require_equal or {}).items():
            stmt = stmt.where(getattr(Donation, column) == value)
        if not_expired_at is not None:
            stmt = stmt.where(Donation.expiry_time > not_expired_at)
        if expired_at is not None:
            stmt = stmt.where(Donation.expiry_time < expired_at)

        stmt = stmt.values(**dict(changes)).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        await self.session.commit()

        if result.rowcount == 0:
            return None
        return await self.session.get(Donation, donation_id, populate_existing=True)

    @translate_infra_errors
    async def expire_overdue(self, now: datetime) -> int:
        result = await self.session.execute(
            update(Donation)
            .where(Donation.status == DonationStatus.PENDING, Donation.expiry_time < now)
            .values(status=DonationStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if result.rowcount:
            logger.info(f"Expired {result.rowcount} overdue donations")
        return result.rowcount

    @staticmethod
    def _filtered(stmt, donation_filter: DonationFilter):
        if donation_filter.status is not None:
            stmt = stmt.where(Donation.status == donation_filter.status)
        if donation_filter.food_type is not None:
            stmt = stmt.where(Donation.food_type == donation_filter.food_type)
        if donation_filter.min_quantity is not None:
            stmt = stmt.where(Donation.quantity >= donation_filter.min_quantity)
        if donation_filter.is_emergency is not None:
            stmt = stmt.where(Donation.is_emergency == donation_filter.is_emergency)
        if donation_filter.donor_id is not None:
            stmt = stmt.where(Donation.donor_id == donation_filter.donor_id)
        if donation_filter.receiver_id is not None:
            stmt = stmt.where(Donation.receiver_id == donation_filter.receiver_id)
        if donation_filter.volunteer_id is not None:
            stmt = stmt.where(Donation.volunteer_id == donation_filter.volunteer_id)

        return stmt

    @translate_infra_errors
    async def query(self, donation_filter: DonationFilter, offset: int = 0, limit: int = 20) -> List[Donation]:
        stmt = self._filtered(select(Donation), donation_filter)
        stmt = stmt.order_by(Donation.created_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    @translate_infra_errors
    async def count(self, donation_filter: DonationFilter) -> int:
        stmt = self._filtered(select(func.count(Donation.id)), donation_filter)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    @translate_infra_errors
    async def list_open(
        self,
        statuses: Collection[DonationStatus],
        *,
        expiring_after: Optional[datetime] = None,
        unassigned_only: bool = False,
    ) -> List[Donation]:
        stmt = select(Donation).where(Donation.status.in_(list(statuses)))
        if expiring_after is not None:
            stmt = stmt.where(Donation.expiry_time > expiring_after)
        if unassigned_only:
            stmt = stmt.where(Donation.volunteer_id.is_(None))

        result = await self.session.execute(
            stmt.order_by(Donation.created_at).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @translate_infra_errors
    async def list_completed_by_donor(self, donor_id: UUID) -> List[Donation]:
        result = await self.session.execute(
            select(Donation).where(
                Donation.donor_id == donor_id,
                Donation.status == DonationStatus.COMPLETED,
            )
        )
        return list(result.scalars().all())

    @translate_infra_errors
    async def attach_feedback(self, donation_id: UUID, feedback: Feedback) -> Optional[Donation]:
        try:
            result = await self.session.execute(
                update(Donation)
                .where(
                    Donation.id == donation_id,
                    Donation.status == DonationStatus.COMPLETED,
                    Donation.feedback_id.is_(None),
                )
                .values(feedback_id=feedback.id, food_health_score=feedback.freshness_score)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.session.commit()
                return None

            self.session.add(feedback)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Duplicate feedback rejected for donation {donation_id}")
            return None

        return await self.session.get(Donation, donation_id, populate_existing=True)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @translate_infra_errors
    async def completed_totals_by_donor(self) -> List[DonorTotal]:
        result = await self.session.execute(
            select(
                Donation.donor_id,
                func.sum(Donation.quantity),
                func.count(Donation.id),
            )
            .where(Donation.status == DonationStatus.COMPLETED)
            .group_by(Donation.donor_id)
        )
        return [
            DonorTotal(donor_id=donor_id, total_meals=int(meals or 0), completed_count=count)
            for donor_id, meals, count in result.all()
        ]

    @translate_infra_errors
    async def status_counts(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(Donation.status, func.count(Donation.id)).group_by(Donation.status)
        )
        counts = {status.value: 0 for status in DonationStatus}
        for status, count in result.all():
            counts[DonationStatus(status).value] = count
        return counts

    @translate_infra_errors
    async def feedback_summary(self) -> Tuple[Optional[float], int]:
        """Average rating overall and the number of donors averaging below 3 stars."""
        average = await self.session.scalar(select(func.avg(Feedback.rating)))

        per_donor = (
            select(Feedback.donor_id)
            .group_by(Feedback.donor_id)
            .having(func.avg(Feedback.rating) < LOW_RATING_THRESHOLD)
            .subquery()
        )
        low_rated = await self.session.scalar(select(func.count()).select_from(per_donor))

        return (round(float(average), 2) if average is not None else None), int(low_rated or 0)


# ============================================================================
# USERS
# ============================================================================

class SqlUserDirectory:
    def __init__(self, session: AsyncSession):
        self.session = session

    @translate_infra_errors
    async def get_user(self, user_id: UUID) -> Optional[User]:
        return await self.session.get(User, user_id, populate_existing=True)

    @translate_infra_errors
    async def active_volunteer_ids(self) -> List[UUID]:
        result = await self.session.execute(
            select(User.id).where(User.role == UserRole.VOLUNTEER, User.is_active.is_(True))
        )
        return list(result.scalars().all())

    @translate_infra_errors
    async def add_points(self, user_id: UUID, points: int) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + points)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    @translate_infra_errors
    async def badge_names(self, user_id: UUID) -> Set[str]:
        result = await self.session.execute(select(UserBadge.name).where(UserBadge.user_id == user_id))
        return set(result.scalars().all())

    @translate_infra_errors
    async def award_badge(self, user_id: UUID, name: str, earned_at: datetime) -> bool:
        insert = _upsert_ignore(self.session)
        stmt = (
            insert(UserBadge)
            .values(id=uuid4(), user_id=user_id, name=name, earned_at=earned_at)
            .on_conflict_do_nothing(index_elements=["user_id", "name"])
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount == 1

    @translate_infra_errors
    async def names_for(self, user_ids: Collection[UUID]) -> Dict[UUID, str]:
        if not user_ids:
            return {}
        result = await self.session.execute(select(User.id, User.name).where(User.id.in_(list(user_ids))))
        return {user_id: name for user_id, name in result.all()}

    @translate_infra_errors
    async def leaderboard(self, role: Optional[UserRole] = None, limit: int = 50) -> List[User]:
        stmt = select(User).where(User.is_active.is_(True))
        if role is not None:
            stmt = stmt.where(User.role == role)
        result = await self.session.execute(
            stmt.order_by(User.points.desc(), User.created_at).limit(limit)
        )
        return list(result.scalars().all())

    @translate_infra_errors
    async def list_users(
        self,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[User], int]:
        stmt = select(User)
        count_stmt = select(func.count(User.id))
        if role is not None:
            stmt = stmt.where(User.role == role)
            count_stmt = count_stmt.where(User.role == role)
        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
            count_stmt = count_stmt.where(User.is_active.is_(is_active))

        total = await self.session.scalar(count_stmt)
        result = await self.session.execute(stmt.order_by(User.created_at.desc()).offset(offset).limit(limit))
        return list(result.scalars().all()), int(total or 0)

    @translate_infra_errors
    async def set_active(self, user_id: UUID, is_active: bool) -> User:
        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_active=is_active)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if result.rowcount == 0:
            raise NotFound("User not found", {"user_id": str(user_id)})
        return await self.session.get(User, user_id, populate_existing=True)

    @translate_infra_errors
    async def role_counts(self) -> Dict[str, int]:
        result = await self.session.execute(select(User.role, func.count(User.id)).group_by(User.role))
        counts = {role.value: 0 for role in UserRole}
        for role, count in result.all():
            counts[UserRole(role).value] = count
        return counts


async def load_active_volunteer_ids() -> List[UUID]:
    """Active volunteers, read in a session of its own (for background fan-out)."""
    async with get_session_context() as session:
        return await SqlUserDirectory(session).active_volunteer_ids()


# ============================================================================
# NOTIFICATIONS
# ============================================================================

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class SqlNotificationStore:
    """
    Notification writes in their own short session.

    Dispatch runs after the request that triggered it has committed (and
    possibly closed its session), so it never borrows the request session.
    """

    def __init__(self, session_factory: SessionFactory = get_session_context):
        self.session_factory = session_factory

    @translate_infra_errors
    async def add(self, notification: Notification) -> Notification:
        async with self.session_factory() as session:
            session.add(notification)
        return notification


class NotificationInbox:
    """Read side of a user's notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @translate_infra_errors
    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Notification], int, int]:
        """Returns (page, total, unread_count)."""
        base = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            base = base.where(Notification.is_read.is_(False))

        total = await self.session.scalar(select(func.count()).select_from(base.subquery()))
        unread = await self.session.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        result = await self.session.execute(
            base.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), int(total or 0), int(unread or 0)

    @translate_infra_errors
    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self.session.get(Notification, notification_id, populate_existing=True)
        if notification is None:
            raise NotFound("Notification not found", {"notification_id": str(notification_id)})
        if notification.user_id != user_id:
            raise Forbidden("Not authorized to modify this notification")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.session.commit()
        return notification

    @translate_infra_errors
    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount


__all__ = [
    "SqlDonationRepository",
    "SqlUserDirectory",
    "SqlNotificationStore",
    "NotificationInbox",
    "load_active_volunteer_ids",
    "translate_infra_errors",
]
