"""
Thesis submission model.

A submission is one upload for one phase (P1, P2, P3) by one owner. Its
status is set once by the supervisor stored on the record at creation time.
A rejected submission stays rejected; a resubmission is a new row pointing
back at it.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from thesis_portal.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from thesis_portal.kernel.ownership import OwnerKind, OwnerRef, make_owner


class Phase(str, Enum):
    """Thesis phases, in submission order."""
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @property
    def previous(self) -> Optional["Phase"]:
        order = list(Phase)
        index = order.index(self)
        return order[index - 1] if index > 0 else None


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Statuses that block another submission of the same phase by the same owner
ACTIVE_STATUSES = (SubmissionStatus.PENDING, SubmissionStatus.APPROVED)

_ACTIVE_WHERE = text("status IN ('pending', 'approved')")


class Semester(str, Enum):
    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"


class ThesisSubmission(Base, TimestampMixin):
    """One phase submission."""

    __tablename__ = "thesis_submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    # Metadata
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    abstract: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    keywords: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
    )
    department: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    semester: Mapped[Semester] = mapped_column(
        String(20),
        nullable=False,
    )

    # Stored file reference (storage is external)
    file_url: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    file_size: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
    )

    # Who uploaded it; for group work one member performs the upload
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Owner: the author alone, or the author's group
    owner_kind: Mapped[OwnerKind] = mapped_column(
        String(20),
        nullable=False,
    )
    group_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )
    owner_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    # Reviewer, copied from the owner's supervisor at creation; never updated
    supervisor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    submission_type: Mapped[Phase] = mapped_column(
        String(10),
        nullable=False,
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        String(20),
        default=SubmissionStatus.PENDING,
        nullable=False,
    )
    can_resubmit: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Set only on resubmissions
    original_submission_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("thesis_submissions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    submitted_at: Mapped[datetime] = mapped_column(
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

    __table_args__ = (
        CheckConstraint(
            "(owner_kind = 'group' AND group_id IS NOT NULL) OR (owner_kind = 'individual' AND group_id IS NULL)",
            name="ck_thesis_submissions_owner",
        ),
        # At most one pending or approved submission per owner and phase
        Index(
            "uq_thesis_submissions_active_phase",
            "owner_key",
            "submission_type",
            unique=True,
            sqlite_where=_ACTIVE_WHERE,
            postgresql_where=_ACTIVE_WHERE,
        ),
        Index("ix_thesis_submissions_owner_phase", "owner_key", "submission_type", "status"),
    )

    @property
    def owner(self) -> OwnerRef:
        return make_owner(self.owner_kind, self.author_id, self.group_id)

    @property
    def is_group_submission(self) -> bool:
        return self.owner_kind == OwnerKind.GROUP

    @property
    def is_resubmission(self) -> bool:
        return self.original_submission_id is not None

    def __repr__(self) -> str:
        return f"<ThesisSubmission {self.submission_type} {self.owner_key} {self.status}>"


class MemberPhaseProgress(Base):
    """
    Per-student view of phase approvals.

    Written when a submission is approved: for the author of an individual
    submission, or for every member of the owning group.
    """

    __tablename__ = "member_phase_progress"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    submission_type: Mapped[Phase] = mapped_column(
        String(10),
        nullable=False,
    )
    status: Mapped[SubmissionStatus] = mapped_column(
        String(20),
        nullable=False,
    )
    submission_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("thesis_submissions.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )
    file_url: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
    )
    file_name: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("student_id", "submission_type", name="uq_member_phase_progress_student_phase"),
    )


def keywords_list(raw) -> List[str]:
    """Accept 'a, b' or ['a', 'b'] and return trimmed, non-empty keywords."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    return [k.strip() for k in items if k and k.strip()]


class SubmissionComment(Base):
    """A discussion comment on one submission."""

    __tablename__ = "submission_comments"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("thesis_submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    comment: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
