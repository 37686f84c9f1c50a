"""
Notification Dispatcher.

Writes inbox rows for workflow transitions. Dispatch is best-effort: each
call runs in a savepoint, and a failure is logged and dropped so the
transition that triggered it still commits.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_portal.kernel.errors import NotFound
from thesis_portal.kernel.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    """What to tell a recipient, independent of who the recipient is."""
    type: NotificationType
    title: str
    message: str
    related_type: Optional[str] = None
    related_id: Optional[uuid.UUID] = None


class NotificationDispatcher:
    """Best-effort notification writer bound to the request session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def dispatch(
        self,
        recipient_id: uuid.UUID,
        message: Message,
        sender_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """Notify one recipient. Returns False if the write failed."""
        return await self.dispatch_many([recipient_id], message, sender_id) == 1

    async def dispatch_many(
        self,
        recipient_ids: Iterable[uuid.UUID],
        message: Message,
        sender_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Notify several recipients, each independently. Returns how many were written."""
        delivered = 0
        for recipient_id in dict.fromkeys(recipient_ids):
            try:
                async with self.session.begin_nested():
                    self.session.add(
                        Notification(
                            recipient_id=recipient_id,
                            sender_id=sender_id,
                            type=message.type,
                            title=message.title,
                            message=message.message,
                            related_type=message.related_type,
                            related_id=message.related_id,
                        )
                    )
                delivered += 1
            except Exception:
                logger.warning(
                    "Notification %s to %s failed",
                    message.type.value,
                    recipient_id,
                    exc_info=True,
                )
        return delivered

    # Inbox

    async def inbox(
        self,
        recipient_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        query = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, recipient_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read(self, notification_id: uuid.UUID, recipient_id: uuid.UUID) -> Notification:
        result = await self.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFound("Notification not found")
        notification.is_read = True
        return notification

    async def mark_all_read(self, recipient_id: uuid.UUID) -> None:
        await self.session.execute(
            update(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
