"""
FastAPI Dependencies
Common dependencies for authentication, authorization, and lifecycle wiring.
"""

from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from foodbridge.core.lifecycle import DonationLifecycle
from foodbridge.core.matching import MatchScorer
from foodbridge.core.policy import Actor
from foodbridge.core.ports import SystemClock
from foodbridge.core.volunteers import VolunteerAssignment
from foodbridge.shared.database import get_session
from foodbridge.shared.models import User, UserRole
from foodbridge.shared.repositories import SqlDonationRepository, SqlUserDirectory
from foodbridge.api.config import get_settings

settings = get_settings()
security = HTTPBearer()


def decode_access_token(token: str) -> UUID:
    """
    Extract the user id from a JWT access token.

    Raises:
        ValueError: If the token is invalid, expired, or has no subject
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as e:
        raise ValueError(str(e)) from e

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != "access":
        raise ValueError("Token has no access subject")
    return UUID(user_id)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> User:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token
        session: Database session

    Returns:
        User: Authenticated user object

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        user_uuid = decode_access_token(credentials.credentials)
    except ValueError:
        raise credentials_exception

    user = await session.get(User, user_uuid, populate_existing=True)
    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Dependency to ensure user is active.

    Raises:
        HTTPException: If the account has been deactivated
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return current_user


async def get_current_actor(
    current_user: User = Depends(get_current_active_user),
) -> Actor:
    """The authenticated caller as seen by the donation core."""
    return Actor.from_user(current_user)


async def require_admin_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """
    Dependency to ensure user is an admin.

    Raises:
        HTTPException: If user is not an admin
    """
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    return current_user


def pagination_params(
    page: int = 1,
    limit: int = 20,
) -> dict:
    """
    Dependency for pagination parameters.

    Args:
        page: 1-based page number (default: 1)
        limit: Maximum number of records to return (default: 20, max: 100)

    Returns:
        dict: page, limit and the derived offset
    """
    if page < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Page parameter must be at least 1",
        )

    if limit < 1 or limit > 100:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Limit parameter must be between 1 and 100",
        )

    return {"page": page, "limit": limit, "offset": (page - 1) * limit}


def get_lifecycle(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> DonationLifecycle:
    """Donation lifecycle bound to this request's session."""
    return DonationLifecycle(
        donations=SqlDonationRepository(session),
        users=SqlUserDirectory(session),
        events=request.app.state.event_bus,
        clock=SystemClock(),
        scorer=MatchScorer(limit=settings.MATCH_RESULT_LIMIT),
    )


def get_volunteer_assignment(
    lifecycle: DonationLifecycle = Depends(get_lifecycle),
) -> VolunteerAssignment:
    return VolunteerAssignment(lifecycle, default_radius_km=settings.VOLUNTEER_DEFAULT_RADIUS_KM)
