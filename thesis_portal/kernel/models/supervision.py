"""
Supervision models: supervisor requests and held seats.

Both tables carry an owner (student xor group). A Supervisee row is one
consumed seat on the faculty's capacity, whatever the size of the owner.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from thesis_portal.kernel.models.base import Base, generate_uuid, utcnow
from thesis_portal.kernel.ownership import OwnerKind, OwnerRef, make_owner

_SINGLE_OWNER = (
    "(student_id IS NOT NULL AND group_id IS NULL) OR (student_id IS NULL AND group_id IS NOT NULL)"
)


class SupervisorRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class SupervisorRequest(Base):
    """A student's or group's request for a faculty member as supervisor."""

    __tablename__ = "supervisor_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    faculty_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    owner_kind: Mapped[OwnerKind] = mapped_column(
        String(20),
        nullable=False,
    )
    student_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    group_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=True,
    )
    requested_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[SupervisorRequestStatus] = mapped_column(
        String(50),
        default=SupervisorRequestStatus.PENDING,
        nullable=False,
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(_SINGLE_OWNER, name="ck_supervisor_requests_single_owner"),
        UniqueConstraint("faculty_id", "student_id", name="uq_supervisor_requests_faculty_student"),
        UniqueConstraint("faculty_id", "group_id", name="uq_supervisor_requests_faculty_group"),
        Index("ix_supervisor_requests_faculty_status", "faculty_id", "status"),
    )

    @property
    def owner(self) -> OwnerRef:
        return make_owner(self.owner_kind, self.student_id, self.group_id)

    def __repr__(self) -> str:
        return f"<SupervisorRequest {self.owner_kind} -> {self.faculty_id} {self.status}>"


class Supervisee(Base):
    """One consumed supervision seat."""

    __tablename__ = "supervisees"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    faculty_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_kind: Mapped[OwnerKind] = mapped_column(
        String(20),
        nullable=False,
    )
    # Unique: an owner holds at most one seat across all faculty
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
    accepted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(_SINGLE_OWNER, name="ck_supervisees_single_owner"),
    )

    @property
    def owner(self) -> OwnerRef:
        return make_owner(self.owner_kind, self.student_id, self.group_id)

    def __repr__(self) -> str:
        return f"<Supervisee {self.owner_kind}:{self.student_id or self.group_id} of {self.faculty_id}>"
