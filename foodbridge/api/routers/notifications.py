"""
Notifications Router
The authenticated user's notification inbox.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from foodbridge.api.dependencies import get_current_active_user, pagination_params
from foodbridge.api.schemas import (
    NotificationListResponse,
    NotificationResponse,
    MessageResponse,
)
from foodbridge.shared.database import get_session
from foodbridge.shared.models import Notification, User
from foodbridge.shared.repositories import NotificationInbox

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="Newest first, with the total unread count",
)
async def list_notifications(
    unread_only: bool = False,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
    pagination: dict = Depends(pagination_params),
) -> NotificationListResponse:
    """List the current user's notifications."""
    notifications, total, unread_count = await NotificationInbox(session).list_for_user(
        current_user.id,
        unread_only=unread_only,
        offset=pagination["offset"],
        limit=pagination["limit"],
    )

    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=unread_count,
        page=pagination["page"],
        limit=pagination["limit"],
    )


@router.put(
    "/read-all",
    response_model=MessageResponse,
    summary="Mark all as read",
)
async def mark_all_read(
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    updated = await NotificationInbox(session).mark_all_read(current_user.id)
    logger.info(f"User {current_user.id} marked {updated} notifications read")

    return MessageResponse(
        message=f"{updated} notifications marked as read",
        success=True,
    )


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark as read",
    description="Mark one of your notifications as read",
)
async def mark_notification_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> Notification:
    """Mark notification as read."""
    return await NotificationInbox(session).mark_read(current_user.id, notification_id)
