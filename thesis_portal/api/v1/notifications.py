"""Notification inbox endpoints."""

import uuid

from fastapi import APIRouter

from thesis_portal.api.deps import CurrentUser, DbSession
from thesis_portal.orchestration.notifications import NotificationDispatcher
from thesis_portal.schemas.common import SuccessResponse
from thesis_portal.schemas.notification import NotificationList, NotificationResponse

router = APIRouter()


@router.get("", response_model=NotificationList)
async def list_notifications(
    user: CurrentUser,
    db: DbSession,
    unread_only: bool = False,
    limit: int = 50,
):
    inbox = NotificationDispatcher(db)
    items = await inbox.inbox(user.id, unread_only=unread_only, limit=min(max(limit, 1), 200))
    return NotificationList(
        items=[NotificationResponse.model_validate(n) for n in items],
        unread_count=await inbox.unread_count(user.id),
    )


@router.post("/read-all", response_model=SuccessResponse)
async def mark_all_read(user: CurrentUser, db: DbSession):
    await NotificationDispatcher(db).mark_all_read(user.id)
    return SuccessResponse(message="All notifications marked as read")


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return await NotificationDispatcher(db).mark_read(notification_id, user.id)
