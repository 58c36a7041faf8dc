"""
Donation lifecycle state machine.

    pending -> accepted -> picked -> completed
    pending -> cancelled | expired
    accepted -> cancelled

Every transition follows the same order: load (NotFound, lazy expiry),
authorize (Forbidden), status precondition (InvalidState), then a single
conditional write whose losing side also raises InvalidState. Points, badges
and notifications happen only after that write committed and never undo it.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union
from uuid import UUID, uuid4

from foodbridge.shared.models import Donation, DonationStatus, Feedback

from .badges import BadgeEngine
from .errors import InvalidState, NotFound, ValidationError
from .events import DonationEvent, DonationSnapshot, EventBus, EventKind
from .geo import GeoPoint, distance_km
from .matching import MatchScorer, RankedDonation, donation_point
from .policy import Action, Actor, authorize
from .ports import Clock, DonationFilter, DonationRepository, UserDirectory
from .tracking import TrackingView, build_tracking_view
from .inputs import DonationAdminPatch, DonationCreate, DonationUpdate, FeedbackCreate, parse_input

logger = logging.getLogger(__name__)

POINTS_FOR_DONATION = 10
POINTS_FOR_ACCEPTANCE = 5
POINTS_FOR_PICKUP = 20
POINTS_FOR_COMPLETION = 50

DEFAULT_CANCELLATION_REASON = "Cancelled by donor"
MAX_PAGE_SIZE = 100

CANCELLABLE_STATUSES = frozenset({DonationStatus.PENDING, DonationStatus.ACCEPTED})
COMPLETABLE_STATUSES = frozenset({DonationStatus.ACCEPTED, DonationStatus.PICKED})
IN_DELIVERY_STATUSES = frozenset({DonationStatus.ACCEPTED, DonationStatus.PICKED})
ALL_STATUSES = frozenset(DonationStatus)


def _status(donation: Donation) -> DonationStatus:
    return DonationStatus(donation.status)


class DonationLifecycle:
    """Owns every status transition of a donation."""

    def __init__(
        self,
        donations: DonationRepository,
        users: UserDirectory,
        events: EventBus,
        clock: Clock,
        scorer: Optional[MatchScorer] = None,
        badges: Optional[BadgeEngine] = None,
    ):
        self.donations = donations
        self.users = users
        self.events = events
        self.clock = clock
        self.scorer = scorer or MatchScorer()
        self.badges = badges or BadgeEngine(donations, users, clock)

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def load(self, donation_id: UUID) -> Donation:
        """Fetch a donation, reclassifying it as expired if it is overdue."""
        donation = await self.donations.get(donation_id)
        if donation is None:
            raise NotFound("Donation not found", {"donation_id": str(donation_id)})
        return await self._expire_if_overdue(donation)

    async def _expire_if_overdue(self, donation: Donation) -> Donation:
        now = self.clock.now()
        if _status(donation) != DonationStatus.PENDING or donation.expiry_time >= now:
            return donation

        expired = await self.donations.conditional_update(
            donation.id,
            expected_status={DonationStatus.PENDING},
            changes={"status": DonationStatus.EXPIRED},
            expired_at=now,
        )
        if expired is not None:
            logger.info(f"Donation {donation.id} expired")
            return expired

        # Someone else moved it first; report what is stored now
        current = await self.donations.get(donation.id)
        if current is None:
            raise NotFound("Donation not found", {"donation_id": str(donation.id)})
        return current

    async def award_points(self, user_id: UUID, points: int) -> None:
        try:
            await self.users.add_points(user_id, points)
        except Exception:
            logger.error(f"Failed to award {points} points to user {user_id}", exc_info=True)

    async def emit(self, kind: EventKind, donation: Donation, actor: Optional[Actor] = None, **extra: Any) -> None:
        event = DonationEvent(
            kind=kind,
            donation=DonationSnapshot.from_donation(donation),
            actor_id=actor.id if actor else None,
            actor_name=actor.name if actor else None,
            extra=extra,
        )
        await self.events.publish(event)

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    async def create_donation(self, actor: Actor, fields: Union[DonationCreate, Mapping[str, Any]]) -> Donation:
        authorize(Action.CREATE, actor)
        values = parse_input(DonationCreate, fields, "Invalid donation fields").to_columns()

        now = self.clock.now()
        status = DonationStatus.PENDING
        if values["expiry_time"] < now:
            # Accepted, but it can never be claimed
            logger.warning(f"Donation by {actor.id} created with expiry {values['expiry_time']} in the past")
            status = DonationStatus.EXPIRED

        donation = Donation(
            id=uuid4(),
            donor_id=actor.id,
            status=status,
            images=values.pop("images", []),
            created_at=now,
            updated_at=now,
            **values,
        )
        donation = await self.donations.add(donation)
        logger.info(f"Donation {donation.id} created by {actor.id} ({donation.quantity} {donation.unit})")

        await self.award_points(actor.id, POINTS_FOR_DONATION)
        await self.emit(EventKind.CREATED, donation, actor)
        return donation

    async def get_donation(self, donation_id: UUID) -> Donation:
        return await self.load(donation_id)

    async def list_donations(
        self,
        donation_filter: Optional[DonationFilter] = None,
        page: int = 1,
        limit: int = 20,
        near: Optional[GeoPoint] = None,
        max_distance_km: Optional[float] = None,
    ) -> List[RankedDonation]:
        """
        Filtered, newest-first page of donations.

        When ``near`` is given each result carries its distance, and
        ``max_distance_km`` drops anything further away (applied to the page).
        """
        if page < 1:
            raise ValidationError("Page must be at least 1", {"page": page})
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}", {"limit": limit})
        if max_distance_km is not None and near is None:
            raise ValidationError("max_distance requires lat and lng")

        await self.donations.expire_overdue(self.clock.now())
        donations = await self.donations.query(
            donation_filter or DonationFilter(),
            offset=(page - 1) * limit,
            limit=limit,
        )

        if near is None:
            return [RankedDonation(donation=d) for d in donations]

        results = []
        for donation in donations:
            distance = round(distance_km(near, donation_point(donation)), 2)
            if max_distance_km is None or distance <= max_distance_km:
                results.append(RankedDonation(donation=donation, distance_km=distance))
        return results

    async def get_matches(self, origin: GeoPoint) -> List[RankedDonation]:
        """Best open donations for a requester at ``origin``."""
        now = self.clock.now()
        await self.donations.expire_overdue(now)
        candidates = await self.donations.list_open({DonationStatus.PENDING}, expiring_after=now)
        return self.scorer.rank(candidates, origin, now)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def accept_donation(self, donation_id: UUID, actor: Actor) -> Donation:
        donation = await self.load(donation_id)
        authorize(Action.ACCEPT, actor, donation)

        status = _status(donation)
        if status == DonationStatus.EXPIRED:
            raise InvalidState("Donation has expired", {"status": status.value})
        if status != DonationStatus.PENDING:
            raise InvalidState("Donation is not available for acceptance", {"status": status.value})

        now = self.clock.now()
        accepted = await self.donations.conditional_update(
            donation.id,
            expected_status={DonationStatus.PENDING},
            changes={
                "status": DonationStatus.ACCEPTED,
                "receiver_id": actor.id,
                "accepted_at": now,
            },
            not_expired_at=now,
        )
        if accepted is None:
            raise InvalidState("Donation is not available for acceptance")

        logger.info(f"Donation {donation.id} accepted by {actor.id}")
        await self.award_points(actor.id, POINTS_FOR_ACCEPTANCE)
        await self.emit(EventKind.ACCEPTED, accepted, actor)
        return accepted

    async def complete_donation(self, donation_id: UUID, actor: Actor) -> Donation:
        donation = await self.load(donation_id)
        authorize(Action.COMPLETE, actor, donation)

        status = _status(donation)
        if status not in COMPLETABLE_STATUSES:
            raise InvalidState(f"Donation cannot be completed while {status.value}", {"status": status.value})

        completed = await self.donations.conditional_update(
            donation.id,
            expected_status=COMPLETABLE_STATUSES,
            changes={"status": DonationStatus.COMPLETED, "completed_at": self.clock.now()},
        )
        if completed is None:
            raise InvalidState("Donation is no longer in delivery")

        logger.info(f"Donation {donation.id} completed by {actor.id}")
        await self.award_points(completed.donor_id, POINTS_FOR_COMPLETION)
        await self.emit(EventKind.COMPLETED, completed, actor)

        badges = await self._evaluate_badges(completed.donor_id)
        if badges:
            await self.emit(EventKind.BADGES_EARNED, completed, actor, badges=badges)
        return completed

    async def _evaluate_badges(self, donor_id: UUID) -> List[str]:
        try:
            return await self.badges.evaluate(donor_id)
        except Exception:
            logger.error(f"Badge evaluation failed for donor {donor_id}", exc_info=True)
            return []

    async def cancel_donation(self, donation_id: UUID, actor: Actor, reason: Optional[str] = None) -> Donation:
        donation = await self.load(donation_id)
        authorize(Action.CANCEL, actor, donation)

        status = _status(donation)
        if status == DonationStatus.PICKED:
            raise InvalidState("Cannot cancel a donation that has already been picked up", {"status": status.value})
        if status not in CANCELLABLE_STATUSES:
            raise InvalidState(f"Cannot cancel a donation that is {status.value}", {"status": status.value})

        cancelled = await self.donations.conditional_update(
            donation.id,
            expected_status=CANCELLABLE_STATUSES,
            changes={
                "status": DonationStatus.CANCELLED,
                "cancelled_at": self.clock.now(),
                "cancellation_reason": reason or DEFAULT_CANCELLATION_REASON,
            },
            require_unset=("volunteer_id",),
        )
        if cancelled is None:
            raise InvalidState("Donation can no longer be cancelled")

        logger.info(f"Donation {donation.id} cancelled by {actor.id}")
        await self.emit(EventKind.CANCELLED, cancelled, actor, reason=cancelled.cancellation_reason)
        return cancelled

    async def update_donation(
        self,
        donation_id: UUID,
        actor: Actor,
        fields: Union[DonationUpdate, Mapping[str, Any]],
    ) -> Donation:
        """Edit descriptive fields of a pending donation."""
        donation = await self.load(donation_id)
        authorize(Action.EDIT, actor, donation)

        status = _status(donation)
        if status != DonationStatus.PENDING:
            raise InvalidState(f"Cannot update a donation that is {status.value}", {"status": status.value})

        changes = parse_input(DonationUpdate, fields, "Invalid donation fields").to_columns()
        if not changes:
            raise ValidationError("No fields to update")

        slot_start = changes.get("slot_start", donation.slot_start)
        slot_end = changes.get("slot_end", donation.slot_end)
        if slot_start > slot_end:
            raise ValidationError("Slot start must not be after slot end")

        changes["updated_at"] = self.clock.now()
        updated = await self.donations.conditional_update(
            donation.id,
            expected_status={DonationStatus.PENDING},
            changes=changes,
        )
        if updated is None:
            raise InvalidState("Donation is no longer pending")

        logger.info(f"Donation {donation.id} updated by {actor.id}: {', '.join(sorted(changes))}")
        return await self._expire_if_overdue(updated)

    async def admin_patch(
        self,
        donation_id: UUID,
        actor: Actor,
        patch: Union[DonationAdminPatch, Mapping[str, Any]],
    ) -> Donation:
        """
        Overwrite a restricted set of fields, regardless of status.

        This bypasses every transition guard; no points, badges or
        notifications follow from it.
        """
        authorize(Action.ADMIN_PATCH, actor)
        donation = await self.donations.get(donation_id)
        if donation is None:
            raise NotFound("Donation not found", {"donation_id": str(donation_id)})

        changes = parse_input(DonationAdminPatch, patch, "Invalid administrative patch").to_changes()
        if not changes:
            raise ValidationError("No fields to update")
        patched_fields = ", ".join(sorted(changes))

        changes["updated_at"] = self.clock.now()
        patched = await self.donations.conditional_update(
            donation.id,
            expected_status=ALL_STATUSES,
            changes=changes,
        )
        if patched is None:
            raise NotFound("Donation not found", {"donation_id": str(donation_id)})

        logger.warning(f"Admin {actor.id} patched donation {donation.id}: {patched_fields}")
        return patched

    async def submit_feedback(
        self,
        donation_id: UUID,
        actor: Actor,
        fields: Union[FeedbackCreate, Mapping[str, Any]],
    ) -> Feedback:
        donation = await self.load(donation_id)
        authorize(Action.SUBMIT_FEEDBACK, actor, donation)

        status = _status(donation)
        if status != DonationStatus.COMPLETED:
            raise InvalidState("Feedback can only be submitted for completed donations", {"status": status.value})
        if donation.feedback_id is not None:
            raise InvalidState("Feedback already submitted for this donation")

        values = parse_input(FeedbackCreate, fields, "Invalid feedback").model_dump()
        feedback = Feedback(
            id=uuid4(),
            donation_id=donation.id,
            receiver_id=donation.receiver_id or actor.id,
            donor_id=donation.donor_id,
            created_at=self.clock.now(),
            **values,
        )

        updated = await self.donations.attach_feedback(donation.id, feedback)
        if updated is None:
            raise InvalidState("Feedback already submitted for this donation")

        logger.info(f"Feedback {feedback.id} ({feedback.rating}/5) on donation {donation.id}")
        await self.emit(
            EventKind.FEEDBACK_SUBMITTED,
            updated,
            actor,
            feedback_id=feedback.id,
            rating=feedback.rating,
        )
        return feedback

    # ------------------------------------------------------------------
    # Live delivery
    # ------------------------------------------------------------------

    async def update_volunteer_location(
        self,
        donation_id: UUID,
        actor: Actor,
        lat: float,
        lng: float,
    ) -> Dict[str, Any]:
        donation = await self.load(donation_id)
        authorize(Action.UPDATE_LOCATION, actor, donation)

        status = _status(donation)
        if status not in IN_DELIVERY_STATUSES:
            raise InvalidState("Delivery is not in progress", {"status": status.value})

        point = GeoPoint(lat, lng)
        now = self.clock.now()
        updated = await self.donations.conditional_update(
            donation.id,
            expected_status=IN_DELIVERY_STATUSES,
            changes={
                "volunteer_lat": point.lat,
                "volunteer_lng": point.lng,
                "volunteer_location_updated_at": now,
            },
            require_equal={"volunteer_id": actor.id},
        )
        if updated is None:
            raise InvalidState("Delivery is not in progress")

        logger.debug(f"Volunteer {actor.id} at ({point.lat}, {point.lng}) for donation {donation.id}")
        await self.emit(
            EventKind.VOLUNTEER_LOCATION,
            updated,
            actor,
            lat=point.lat,
            lng=point.lng,
            updated_at=now,
        )
        return updated.volunteer_location

    async def get_tracking(self, donation_id: UUID, actor: Actor) -> TrackingView:
        donation = await self.load(donation_id)
        authorize(Action.VIEW_TRACKING, actor, donation)

        donor = await self.users.get_user(donation.donor_id)
        receiver = await self.users.get_user(donation.receiver_id) if donation.receiver_id else None
        volunteer = await self.users.get_user(donation.volunteer_id) if donation.volunteer_id else None
        return build_tracking_view(donation, donor, receiver, volunteer, self.clock.now())


__all__ = [
    "DonationLifecycle",
    "DEFAULT_CANCELLATION_REASON",
    "POINTS_FOR_DONATION",
    "POINTS_FOR_ACCEPTANCE",
    "POINTS_FOR_PICKUP",
    "POINTS_FOR_COMPLETION",
]
