"""
User model for identity and supervision capacity.

Accounts are provisioned by the identity provider; this service reads them
and maintains the supervision fields (supervisor link, seat capacity).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from thesis_portal.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow


class UserRole(str, Enum):
    """User roles in the system."""
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        String(50),
        default=UserRole.STUDENT,
        nullable=False,
    )
    department: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    student_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Students: accepted supervisor. Group members carry the group's supervisor.
    supervisor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Faculty: number of supervision seats
    seat_capacity: Mapped[int] = mapped_column(
        Integer,
        default=9,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("seat_capacity >= 0", name="ck_users_seat_capacity_non_negative"),
    )

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    @property
    def is_faculty(self) -> bool:
        return self.role == UserRole.FACULTY

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class SeatRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SeatIncreaseRequest(Base):
    """Faculty request for additional supervision seats, reviewed by an admin."""

    __tablename__ = "seat_increase_requests"

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
    requested_seats: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    status: Mapped[SeatRequestStatus] = mapped_column(
        String(50),
        default=SeatRequestStatus.PENDING,
        nullable=False,
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
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
        CheckConstraint("requested_seats >= 1", name="ck_seat_increase_requests_positive"),
    )

    def __repr__(self) -> str:
        return f"<SeatIncreaseRequest +{self.requested_seats} {self.status}>"
