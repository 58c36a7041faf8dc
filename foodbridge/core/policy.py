"""
Authorization rules for every donation operation, in one place.

Each rule is a plain predicate over (actor, donation); ``authorize`` turns a
denial into ``Forbidden`` with a message naming the operation.
"""

import enum
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
from uuid import UUID

from foodbridge.shared.models import Donation, User, UserRole

from .errors import Forbidden


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a lifecycle operation."""
    id: UUID
    role: UserRole
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=UserRole(user.role), name=user.name)


class Action(str, enum.Enum):
    CREATE = "create"
    ACCEPT = "accept"
    ASSIGN_VOLUNTEER = "assign_volunteer"
    COMPLETE = "complete"
    CANCEL = "cancel"
    EDIT = "edit"
    ADMIN_PATCH = "admin_patch"
    SUBMIT_FEEDBACK = "submit_feedback"
    UPDATE_LOCATION = "update_location"
    VIEW_TRACKING = "view_tracking"
    LIST_ASSIGNMENTS = "list_assignments"
    BROWSE_FOR_PICKUP = "browse_for_pickup"


Rule = Callable[[Actor, Optional[Donation]], bool]


def _has_role(*roles: UserRole) -> Rule:
    def rule(actor: Actor, donation: Optional[Donation]) -> bool:
        return actor.role in roles
    return rule


def _is_owner_or_admin(actor: Actor, donation: Optional[Donation]) -> bool:
    return actor.is_admin or (donation is not None and donation.donor_id == actor.id)


def _can_complete(actor: Actor, donation: Optional[Donation]) -> bool:
    if actor.is_admin:
        return True
    if donation is None:
        return False
    return actor.id in {donation.receiver_id, donation.volunteer_id} - {None}


def _can_submit_feedback(actor: Actor, donation: Optional[Donation]) -> bool:
    if actor.is_admin:
        return True
    return (
        donation is not None
        and actor.role == UserRole.RECEIVER
        and donation.receiver_id == actor.id
    )


def _is_assigned_volunteer(actor: Actor, donation: Optional[Donation]) -> bool:
    return donation is not None and donation.volunteer_id is not None and donation.volunteer_id == actor.id


def _is_party_or_admin(actor: Actor, donation: Optional[Donation]) -> bool:
    if actor.is_admin:
        return True
    if donation is None:
        return False
    return actor.id in {donation.donor_id, donation.receiver_id, donation.volunteer_id} - {None}


POLICIES: Dict[Action, Tuple[Rule, str]] = {
    # NGOs (receivers) can give food as well as accept it
    Action.CREATE: (
        _has_role(UserRole.DONOR, UserRole.RECEIVER, UserRole.ADMIN),
        "Only donors, receivers and admins can create donations",
    ),
    Action.ACCEPT: (
        _has_role(UserRole.RECEIVER, UserRole.ADMIN),
        "Only receivers can accept donations",
    ),
    Action.ASSIGN_VOLUNTEER: (
        _has_role(UserRole.VOLUNTEER, UserRole.ADMIN),
        "Only volunteers can claim a pickup",
    ),
    Action.COMPLETE: (_can_complete, "Not authorized to complete this donation"),
    Action.CANCEL: (_is_owner_or_admin, "Not authorized to cancel this donation"),
    Action.EDIT: (_is_owner_or_admin, "Not authorized to update this donation"),
    Action.ADMIN_PATCH: (_has_role(UserRole.ADMIN), "Admin access required"),
    Action.SUBMIT_FEEDBACK: (
        _can_submit_feedback,
        "Not authorized to provide feedback for this donation",
    ),
    Action.UPDATE_LOCATION: (
        _is_assigned_volunteer,
        "Only the assigned volunteer can report a location",
    ),
    Action.VIEW_TRACKING: (_is_party_or_admin, "Not authorized to view this delivery"),
    Action.LIST_ASSIGNMENTS: (
        _has_role(UserRole.VOLUNTEER, UserRole.ADMIN),
        "Only volunteers have assignments",
    ),
    Action.BROWSE_FOR_PICKUP: (
        _has_role(UserRole.VOLUNTEER, UserRole.ADMIN),
        "Only volunteers can browse pickups",
    ),
}


def is_allowed(action: Action, actor: Actor, donation: Optional[Donation] = None) -> bool:
    rule, _ = POLICIES[action]
    return rule(actor, donation)


def authorize(action: Action, actor: Actor, donation: Optional[Donation] = None) -> None:
    """Raise Forbidden unless ``actor`` may perform ``action``."""
    rule, message = POLICIES[action]
    if not rule(actor, donation):
        raise Forbidden(message, {"action": action.value})


__all__ = ["Actor", "Action", "POLICIES", "authorize", "is_allowed"]
