"""
Immutable event log for audit trail.

Every workflow transition is appended here in the same transaction as the
state change itself.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, Text, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from thesis_portal.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """All event types for the audit log."""

    # Supervision
    SUPERVISOR_REQUESTED = "supervision.requested"
    SUPERVISOR_REQUEST_ACCEPTED = "supervision.request_accepted"
    SUPERVISOR_REQUEST_REJECTED = "supervision.request_rejected"
    SUPERVISOR_REQUEST_AUTO_REJECTED = "supervision.request_auto_rejected"
    SUPERVISION_RELEASED = "supervision.released"

    # Seats
    SEAT_CAPACITY_CHANGED = "seats.capacity_changed"
    SEAT_INCREASE_REQUESTED = "seats.increase_requested"
    SEAT_INCREASE_REVIEWED = "seats.increase_reviewed"

    # Registration
    REGISTRATION_SUBMITTED = "registration.submitted"
    REGISTRATION_REVIEWED = "registration.reviewed"

    # Submissions
    SUBMISSION_CREATED = "submission.created"
    SUBMISSION_REVIEWED = "submission.reviewed"
    RESUBMISSION_ALLOWED = "submission.resubmission_allowed"
    RESUBMISSION_CREATED = "submission.resubmitted"
    SUBMISSION_DELETED = "submission.deleted"
    SUBMISSION_COMMENTED = "submission.commented"
    PROGRESS_SYNCED = "submission.progress_synced"

    # Groups
    GROUP_REQUESTED = "group.requested"
    GROUP_FORMED = "group.formed"
    GROUP_MEMBER_JOINED = "group.member_joined"
    GROUP_MEMBER_REMOVED = "group.member_removed"
    GROUP_DELETED = "group.deleted"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,  # System events may not have a user
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )
    request_id: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
