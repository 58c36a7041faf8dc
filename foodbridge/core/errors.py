"""
Domain error taxonomy for the donation lifecycle.

Every rejected operation raises one of these so the transport layer can
render the right status code and message without guessing.
"""

from typing import Any, Dict, Optional


class DonationError(Exception):
    """Base class for lifecycle failures."""

    code = "donation_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DonationError):
    """Malformed or missing input, raised before any state change."""

    code = "validation_error"


class NotFound(DonationError):
    """Unknown donation, user, or notification id."""

    code = "not_found"


class Forbidden(DonationError):
    """Caller is not allowed to perform the operation."""

    code = "forbidden"


class InvalidState(DonationError):
    """Right caller, wrong current status (expired, already claimed, ...)."""

    code = "invalid_state"


class TransientInfraError(DonationError):
    """Persistence or push backend unavailable."""

    code = "service_unavailable"


__all__ = [
    "DonationError",
    "ValidationError",
    "NotFound",
    "Forbidden",
    "InvalidState",
    "TransientInfraError",
]
