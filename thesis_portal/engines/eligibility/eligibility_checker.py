"""
Eligibility Checker - decides whether an owner may submit a thesis phase now.

Pure decision logic over a snapshot loaded by the submission registry. No
I/O and no side effects; the state machine performs the write.

Checks run in order and stop at the first failure:
1. the owner has an accepted supervisor
2. the owner's thesis registration is approved
3. the previous phase (if any) is approved somewhere in its resubmission chain
4. no submission of this phase is pending or approved
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Union

from thesis_portal.kernel.models.submission import Phase, SubmissionStatus
from thesis_portal.kernel.ownership import GroupRef, OwnerRef


class DenialReason(str, Enum):
    NO_SUPERVISOR = "no supervisor"
    REGISTRATION_NOT_APPROVED = "registration not approved"
    ALREADY_SUBMITTED = "already submitted"
    P1_NOT_APPROVED = "P1 not approved"
    P2_NOT_APPROVED = "P2 not approved"


_PREVIOUS_NOT_APPROVED = {
    Phase.P1: DenialReason.P1_NOT_APPROVED,
    Phase.P2: DenialReason.P2_NOT_APPROVED,
}


@dataclass(frozen=True)
class SubmissionSnapshot:
    """The parts of a submission record eligibility needs."""
    id: uuid.UUID
    phase: Phase
    status: SubmissionStatus


@dataclass
class EligibilitySnapshot:
    """Everything the checker reads about one owner."""
    owner: OwnerRef
    supervisor_id: Optional[uuid.UUID]
    registration_approved: bool
    submissions: Sequence[SubmissionSnapshot] = field(default_factory=list)


@dataclass(frozen=True)
class Allowed:
    owner: OwnerRef
    supervisor_id: uuid.UUID

    allowed = True


@dataclass(frozen=True)
class Denied:
    reason: DenialReason
    message: str

    allowed = False


Decision = Union[Allowed, Denied]


def denial_message(reason: DenialReason, phase: Phase, owner: OwnerRef) -> str:
    """User-facing explanation for a denial."""
    is_group = isinstance(owner, GroupRef)
    subject = "Your group" if is_group else "You"
    if reason == DenialReason.NO_SUPERVISOR:
        return (
            f"{subject} must have an accepted supervisor before submitting. "
            "Please request supervision from a faculty member first."
        )
    if reason == DenialReason.REGISTRATION_NOT_APPROVED:
        whose = "Your group thesis registration" if is_group else "Your thesis registration"
        return (
            f"{whose} must be approved by your supervisor before submitting thesis phases. "
            "Please submit or wait for approval of your thesis registration."
        )
    if reason == DenialReason.ALREADY_SUBMITTED:
        if is_group:
            return (
                f"Your group has already submitted {phase.value}. "
                "Only one member can submit each phase for the entire group."
            )
        return f"{phase.value} has already been submitted. You can only submit {phase.value} once."
    previous = phase.previous
    return (
        f"{previous.value} must be approved before submitting {phase.value}. "
        f"Please wait for {previous.value} approval."
    )


def _deny(reason: DenialReason, phase: Phase, owner: OwnerRef) -> Denied:
    return Denied(reason=reason, message=denial_message(reason, phase, owner))


def _has(submissions: Sequence[SubmissionSnapshot], phase: Phase, statuses) -> bool:
    return any(s.phase == phase and s.status in statuses for s in submissions)


def check_eligibility(snapshot: EligibilitySnapshot, phase: Union[Phase, str]) -> Decision:
    """Decide whether the snapshot's owner may submit the given phase now."""
    phase = Phase(phase)
    owner = snapshot.owner

    if snapshot.supervisor_id is None:
        return _deny(DenialReason.NO_SUPERVISOR, phase, owner)

    if not snapshot.registration_approved:
        return _deny(DenialReason.REGISTRATION_NOT_APPROVED, phase, owner)

    previous = phase.previous
    if previous is not None and not _has(
        snapshot.submissions, previous, (SubmissionStatus.APPROVED,)
    ):
        return _deny(_PREVIOUS_NOT_APPROVED[previous], phase, owner)

    if _has(snapshot.submissions, phase, (SubmissionStatus.PENDING, SubmissionStatus.APPROVED)):
        return _deny(DenialReason.ALREADY_SUBMITTED, phase, owner)

    return Allowed(owner=owner, supervisor_id=snapshot.supervisor_id)
