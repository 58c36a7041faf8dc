"""Router package initialization."""

from foodbridge.api.routers import (
    auth,
    donations,
    volunteers,
    notifications,
    users,
    analytics,
    admin,
)

__all__ = [
    "auth",
    "donations",
    "volunteers",
    "notifications",
    "users",
    "analytics",
    "admin",
]
