"""Notification schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from thesis_portal.kernel.models.notification import NotificationType


class NotificationResponse(BaseModel):
    id: uuid.UUID
    sender_id: Optional[uuid.UUID] = None
    type: NotificationType
    title: str
    message: str
    related_type: Optional[str] = None
    related_id: Optional[uuid.UUID] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    items: List[NotificationResponse]
    unread_count: int
