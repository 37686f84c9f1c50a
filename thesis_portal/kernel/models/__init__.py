"""
Kernel Data Models

SQLAlchemy models for the identity store, supervision, registrations,
submissions, notifications and the audit log.
"""

from thesis_portal.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from thesis_portal.kernel.models.user import User, UserRole, SeatIncreaseRequest, SeatRequestStatus
from thesis_portal.kernel.models.group import (
    Group,
    GroupMember,
    GroupRequest,
    GroupRequestStatus,
    GroupStatus,
)
from thesis_portal.kernel.models.registration import ThesisRegistration, RegistrationStatus
from thesis_portal.kernel.models.supervision import (
    SupervisorRequest,
    SupervisorRequestStatus,
    Supervisee,
)
from thesis_portal.kernel.models.submission import (
    ThesisSubmission,
    SubmissionComment,
    MemberPhaseProgress,
    Phase,
    SubmissionStatus,
    Semester,
    ACTIVE_STATUSES,
)
from thesis_portal.kernel.models.notification import Notification, NotificationType
from thesis_portal.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    # Identity
    "User",
    "UserRole",
    "SeatIncreaseRequest",
    "SeatRequestStatus",
    # Groups
    "Group",
    "GroupMember",
    "GroupRequest",
    "GroupRequestStatus",
    "GroupStatus",
    # Registration
    "ThesisRegistration",
    "RegistrationStatus",
    # Supervision
    "SupervisorRequest",
    "SupervisorRequestStatus",
    "Supervisee",
    # Submissions
    "ThesisSubmission",
    "SubmissionComment",
    "MemberPhaseProgress",
    "Phase",
    "SubmissionStatus",
    "Semester",
    "ACTIVE_STATUSES",
    # Notifications
    "Notification",
    "NotificationType",
    # Event Log
    "EventLog",
    "EventType",
]
