"""
Thesis registration - the topic a student or group must get approved by
their supervisor before any phase can be submitted.

One row per owner. Group members read the group's row.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from thesis_portal.kernel.models.base import Base, TimestampMixin, generate_uuid
from thesis_portal.kernel.ownership import OwnerKind, OwnerRef, make_owner


class RegistrationStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ThesisRegistration(Base, TimestampMixin):
    """Registration record owned by exactly one student or one group."""

    __tablename__ = "thesis_registrations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    owner_kind: Mapped[OwnerKind] = mapped_column(
        String(20),
        nullable=False,
    )
    student_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    group_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    status: Mapped[RegistrationStatus] = mapped_column(
        String(50),
        default=RegistrationStatus.NOT_SUBMITTED,
        nullable=False,
    )
    title: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    comments: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "(student_id IS NOT NULL AND group_id IS NULL) OR (student_id IS NULL AND group_id IS NOT NULL)",
            name="ck_thesis_registrations_single_owner",
        ),
    )

    @property
    def owner(self) -> OwnerRef:
        return make_owner(self.owner_kind, self.student_id, self.group_id)

    def __repr__(self) -> str:
        return f"<ThesisRegistration {self.owner_kind}:{self.student_id or self.group_id} {self.status}>"
