"""
Notification inbox rows written by the notification dispatcher.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from thesis_portal.kernel.models.base import Base, generate_uuid, utcnow


class NotificationType(str, Enum):
    SUPERVISOR_REQUEST = "supervisor_request"
    GROUP_SUPERVISOR_REQUEST = "group_supervisor_request"
    SUPERVISOR_RESPONSE = "supervisor_response"
    SUPERVISOR_REMOVED = "supervisor_removed"
    THESIS_REGISTRATION = "thesis_registration"
    THESIS_REGISTRATION_RESPONSE = "thesis_registration_response"
    THESIS_SUBMITTED = "thesis_submitted"
    THESIS_APPROVED = "thesis_approved"
    THESIS_REJECTED = "thesis_rejected"
    RESUBMISSION_ALLOWED = "resubmission_allowed"
    THESIS_COMMENT = "thesis_comment"
    SEAT_INCREASE_REQUEST = "seat_increase_request"
    SEAT_INCREASE_APPROVED = "seat_increase_approved"
    SEAT_INCREASE_REJECTED = "seat_increase_rejected"
    GROUP_REQUEST = "group_request"
    GROUP_MEMBER_REMOVED = "group_member_removed"


class Notification(Base):
    """One message for one recipient."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    type: Mapped[NotificationType] = mapped_column(
        String(50),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    related_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    related_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
    )
    is_read: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.type} -> {self.recipient_id}>"
