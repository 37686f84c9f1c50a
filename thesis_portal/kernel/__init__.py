"""
Kernel Layer

Persistent state and the primitives every workflow builds on:
- Identity & Capacity Store (users, groups, seats)
- Submission Registry (thesis submissions, phase progress)
- Owner references (a student or a group, never both)
- Immutable Event Log (every transition appended in its own transaction)
- Domain error taxonomy
"""

from thesis_portal.kernel.errors import (
    AlreadyReviewed,
    CapacityExceeded,
    IneligibleSubmission,
    InvalidInput,
    InvalidState,
    NotAuthorized,
    NotFound,
    PortalError,
    ResubmissionNotAllowed,
)
from thesis_portal.kernel.ownership import GroupRef, IndividualRef, OwnerKind, OwnerRef, SuperviseeRef

__all__ = [
    # Errors
    "PortalError",
    "IneligibleSubmission",
    "NotAuthorized",
    "AlreadyReviewed",
    "InvalidState",
    "InvalidInput",
    "ResubmissionNotAllowed",
    "CapacityExceeded",
    "NotFound",
    # Owners
    "OwnerKind",
    "IndividualRef",
    "GroupRef",
    "OwnerRef",
    "SuperviseeRef",
]
