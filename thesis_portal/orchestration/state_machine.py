"""
Submission state machine.

Each submission moves pending -> approved or pending -> rejected, once, by
the supervisor stored on the record. A rejected submission never changes
state again; when the supervisor allows it, a resubmission is created as a
new pending record that points back at it.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Union

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_portal.engines.eligibility import DenialReason, Denied, check_eligibility, denial_message
from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import (
    AlreadyReviewed,
    IneligibleSubmission,
    InvalidInput,
    InvalidState,
    NotAuthorized,
    ResubmissionNotAllowed,
)
from thesis_portal.kernel.events.event_store import EventStore
from thesis_portal.kernel.models.base import enum_value, utcnow
from thesis_portal.kernel.models.event_log import EventType
from thesis_portal.kernel.models.notification import NotificationType
from thesis_portal.kernel.models.submission import (
    MemberPhaseProgress,
    Phase,
    Semester,
    SubmissionComment,
    SubmissionStatus,
    ThesisSubmission,
    keywords_list,
)
from thesis_portal.kernel.models.user import User, UserRole
from thesis_portal.kernel.ownership import GroupRef, OwnerKind, OwnerRef
from thesis_portal.kernel.registry import SubmissionRegistry
from thesis_portal.orchestration.notifications import Message, NotificationDispatcher

logger = logging.getLogger(__name__)


# Review outcomes reachable from each status
_TRANSITIONS: Dict[str, Set[str]] = {
    SubmissionStatus.PENDING.value: {
        SubmissionStatus.APPROVED.value,
        SubmissionStatus.REJECTED.value,
    },
    SubmissionStatus.APPROVED.value: set(),
    SubmissionStatus.REJECTED.value: set(),
}


def can_review(status: Union[SubmissionStatus, str]) -> bool:
    return bool(_TRANSITIONS.get(enum_value(status)))


@dataclass
class SubmissionContent:
    """Uploaded file reference plus descriptive metadata."""
    title: str
    abstract: str
    department: str
    year: int
    semester: Semester
    file_url: str
    file_name: str
    file_size: Optional[int] = None
    keywords: List[str] = field(default_factory=list)

    def columns(self) -> dict:
        return {
            "title": self.title.strip(),
            "abstract": self.abstract.strip(),
            "keywords": keywords_list(self.keywords),
            "department": self.department,
            "year": self.year,
            "semester": Semester(self.semester),
            "file_url": self.file_url,
            "file_name": self.file_name,
            "file_size": self.file_size,
        }


@dataclass
class ProgressSync:
    submissions: int = 0
    synced: int = 0
    failed: int = 0


def clean_comment(text: str, author_name: Optional[str]) -> str:
    """
    Trim a comment and drop a leading "Name:" signature.

    The author is shown next to every comment, so a comment that still
    mentions the author's name is refused.
    """
    cleaned = (text or "").strip()
    if author_name:
        signature = re.compile(rf"^{re.escape(author_name)}\s*:?\s*", re.IGNORECASE)
        cleaned = signature.sub("", cleaned, count=1).strip()
        if author_name.lower() in cleaned.lower():
            raise InvalidInput(
                "Please don't include your name in the comment. "
                "Your name will be displayed automatically."
            )
    if not cleaned:
        raise InvalidInput("Comment cannot be empty")
    return cleaned


class SubmissionStateMachine:
    """Create, review and resubmit thesis phases, with audit logging."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = Directory(session)
        self.registry = SubmissionRegistry(session, self.directory)
        self.notifier = NotificationDispatcher(session)
        self.event_store = EventStore(session)

    async def _insert(self, submission: ThesisSubmission) -> None:
        """Insert in a savepoint so a uniqueness violation leaves the transaction usable."""
        async with self.session.begin_nested():
            self.session.add(submission)

    async def _recipients(self, submission: ThesisSubmission) -> List[uuid.UUID]:
        """Who hears about a review: the author, or every current group member."""
        if submission.owner_kind == OwnerKind.GROUP:
            members = await self.directory.member_ids(submission.group_id)
            if members:
                return members
        return [submission.author_id]

    async def create(
        self,
        student: User,
        phase: Union[Phase, str],
        content: SubmissionContent,
        ip_address: Optional[str] = None,
    ) -> ThesisSubmission:
        """
        Create a pending submission of a phase for the student's owner.

        Raises:
            NotAuthorized: the caller is not a student
            IneligibleSubmission: the eligibility checker denied it
        """
        if student.role != UserRole.STUDENT:
            raise NotAuthorized("Only students can submit thesis phases")
        phase = Phase(phase)

        snapshot = await self.registry.eligibility_snapshot(student)
        decision = check_eligibility(snapshot, phase)
        if isinstance(decision, Denied):
            logger.info("Submission of %s denied for %s: %s", phase.value, snapshot.owner.key, decision.reason.value)
            raise IneligibleSubmission(decision.reason, decision.message)

        owner = decision.owner
        submission = ThesisSubmission(
            author_id=student.id,
            owner_kind=owner.kind,
            group_id=owner.group_id if isinstance(owner, GroupRef) else None,
            owner_key=owner.key,
            supervisor_id=decision.supervisor_id,
            submission_type=phase,
            status=SubmissionStatus.PENDING,
            can_resubmit=False,
            submitted_at=utcnow(),
            **content.columns(),
        )
        try:
            await self._insert(submission)
        except IntegrityError:
            reason = DenialReason.ALREADY_SUBMITTED
            raise IneligibleSubmission(reason, denial_message(reason, phase, owner))

        await self.event_store.log(
            event_type=EventType.SUBMISSION_CREATED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=student.id,
            payload={"phase": phase, "owner": owner.key},
            ip_address=ip_address,
        )

        label = await self.directory.owner_label(owner)
        await self.notifier.dispatch(
            submission.supervisor_id,
            Message(
                type=NotificationType.THESIS_SUBMITTED,
                title=f"New {phase.value} Submission",
                message=f'{label} submitted {phase.value}: "{submission.title}".',
                related_type="submission",
                related_id=submission.id,
            ),
            sender_id=student.id,
        )
        return submission

    async def review(
        self,
        submission_id: uuid.UUID,
        reviewer: User,
        decision: Union[SubmissionStatus, str],
        allow_resubmission: bool = False,
        ip_address: Optional[str] = None,
    ) -> ThesisSubmission:
        """
        Approve or reject a pending submission.

        Only the supervisor stored on the submission may review, and only
        once.
        """
        submission = await self.registry.lock(submission_id)
        if reviewer.id != submission.supervisor_id:
            raise NotAuthorized("Only the assigned supervisor can review this submission")
        if not can_review(submission.status):
            raise AlreadyReviewed()

        decision = SubmissionStatus(decision)
        if decision.value not in _TRANSITIONS[enum_value(submission.status)]:
            raise InvalidState(f"Cannot move a submission to {decision.value}")

        from_status = enum_value(submission.status)
        submission.status = decision
        submission.can_resubmit = (
            bool(allow_resubmission) if decision == SubmissionStatus.REJECTED else False
        )
        submission.reviewed_at = utcnow()
        submission.reviewed_by = reviewer.id
        await self.session.flush()

        phase = Phase(submission.submission_type)
        if decision == SubmissionStatus.APPROVED:
            await self._record_progress(submission)

        await self.event_store.log(
            event_type=EventType.SUBMISSION_REVIEWED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=reviewer.id,
            payload={
                "phase": phase,
                "from_status": from_status,
                "to_status": decision,
                "can_resubmit": submission.can_resubmit,
            },
            ip_address=ip_address,
        )

        if decision == SubmissionStatus.APPROVED:
            message = Message(
                type=NotificationType.THESIS_APPROVED,
                title=f"{phase.value} Approved",
                message=f'Your {phase.value} submission "{submission.title}" has been approved.',
                related_type="submission",
                related_id=submission.id,
            )
        else:
            follow_up = (
                " You may submit a revised version."
                if submission.can_resubmit
                else ""
            )
            message = Message(
                type=NotificationType.THESIS_REJECTED,
                title=f"{phase.value} Rejected",
                message=f'Your {phase.value} submission "{submission.title}" has been rejected.{follow_up}',
                related_type="submission",
                related_id=submission.id,
            )
        await self.notifier.dispatch_many(
            await self._recipients(submission), message, sender_id=reviewer.id
        )
        return submission

    async def _record_progress(self, submission: ThesisSubmission) -> Tuple[int, int]:
        """
        Mark the phase approved on each represented student's progress view.

        Returns how many rows were written and how many failed.
        """
        if submission.owner_kind == OwnerKind.GROUP:
            student_ids = await self.directory.member_ids(submission.group_id)
        else:
            student_ids = [submission.author_id]

        recorded = failed = 0
        for student_id in student_ids:
            try:
                async with self.session.begin_nested():
                    await self.registry.record_phase_progress(student_id, submission)
                recorded += 1
            except SQLAlchemyError:
                failed += 1
                logger.warning(
                    "Could not record %s progress for student %s",
                    enum_value(submission.submission_type),
                    student_id,
                    exc_info=True,
                )
        return recorded, failed

    async def sync_progress(self, actor: User) -> ProgressSync:
        """
        Rewrite every student's progress view from the approved submissions.

        Repairs rows skipped by a failed write and adds rows for students
        who joined a group after its phases were approved. Later approvals
        win when a student has more than one for the same phase.
        """
        if actor.role != UserRole.ADMIN:
            raise NotAuthorized("Only administrators can sync phase progress")

        outcome = ProgressSync()
        for submission in await self.registry.approved():
            recorded, failed = await self._record_progress(submission)
            outcome.submissions += 1
            outcome.synced += recorded
            outcome.failed += failed

        await self.event_store.log(
            event_type=EventType.PROGRESS_SYNCED,
            entity_type="progress",
            entity_id=actor.id,
            user_id=actor.id,
            payload=vars(outcome),
        )
        logger.info(
            "Progress sync: %d rows from %d submissions, %d failed",
            outcome.synced,
            outcome.submissions,
            outcome.failed,
        )
        return outcome

    async def allow_resubmission(
        self,
        submission_id: uuid.UUID,
        reviewer: User,
        ip_address: Optional[str] = None,
    ) -> ThesisSubmission:
        """Let the author resubmit a rejected phase. Calling it again is a no-op."""
        submission = await self.registry.lock(submission_id)
        if reviewer.id != submission.supervisor_id:
            raise NotAuthorized("Only the assigned supervisor can allow resubmission")
        if submission.status != SubmissionStatus.REJECTED:
            raise InvalidState("Resubmission can only be allowed for rejected submissions")
        if submission.can_resubmit:
            return submission

        submission.can_resubmit = True
        await self.event_store.log(
            event_type=EventType.RESUBMISSION_ALLOWED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=reviewer.id,
            payload={"phase": submission.submission_type},
            ip_address=ip_address,
        )
        phase = enum_value(submission.submission_type)
        await self.notifier.dispatch_many(
            await self._recipients(submission),
            Message(
                type=NotificationType.RESUBMISSION_ALLOWED,
                title="Resubmission Allowed",
                message=f'You may now resubmit {phase} "{submission.title}".',
                related_type="submission",
                related_id=submission.id,
            ),
            sender_id=reviewer.id,
        )
        await self.session.flush()
        return submission

    async def resubmit(
        self,
        original_id: uuid.UUID,
        requester: User,
        content: SubmissionContent,
        ip_address: Optional[str] = None,
    ) -> ThesisSubmission:
        """
        Create a new pending submission superseding a rejected one.

        The new record keeps the original's owner, phase and supervisor.
        The original stays rejected and keeps can_resubmit as it was.

        Raises:
            NotFound: no such original
            ResubmissionNotAllowed: original not rejected, not allowed, or
                the phase already has a pending or approved submission
            NotAuthorized: requester is not the original author
        """
        original = await self.registry.require(original_id)
        if original.status != SubmissionStatus.REJECTED or not original.can_resubmit:
            raise ResubmissionNotAllowed()
        if requester.id != original.author_id:
            raise NotAuthorized("Only the original author can resubmit")

        owner: OwnerRef = original.owner
        phase = Phase(original.submission_type)
        if await self.registry.active_for_phase(owner, phase) is not None:
            raise ResubmissionNotAllowed(
                f"{phase.value} already has a pending or approved submission"
            )

        submission = ThesisSubmission(
            author_id=original.author_id,
            owner_kind=original.owner_kind,
            group_id=original.group_id,
            owner_key=original.owner_key,
            supervisor_id=original.supervisor_id,
            submission_type=phase,
            status=SubmissionStatus.PENDING,
            can_resubmit=False,
            original_submission_id=original.id,
            submitted_at=utcnow(),
            **content.columns(),
        )
        try:
            await self._insert(submission)
        except IntegrityError:
            raise ResubmissionNotAllowed(
                f"{phase.value} already has a pending or approved submission"
            )

        await self.event_store.log(
            event_type=EventType.RESUBMISSION_CREATED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=requester.id,
            payload={"phase": phase, "original_submission_id": original.id},
            ip_address=ip_address,
        )
        label = await self.directory.owner_label(owner)
        await self.notifier.dispatch(
            submission.supervisor_id,
            Message(
                type=NotificationType.THESIS_SUBMITTED,
                title=f"{phase.value} Resubmitted",
                message=f'{label} resubmitted {phase.value}: "{submission.title}".',
                related_type="submission",
                related_id=submission.id,
            ),
            sender_id=requester.id,
        )
        return submission

    async def add_comment(
        self,
        submission_id: uuid.UUID,
        author: User,
        text: str,
        ip_address: Optional[str] = None,
    ) -> SubmissionComment:
        """Comment on a submission the author can see; the other side is notified."""
        submission = await self.registry.require_visible(submission_id, author)
        comment = SubmissionComment(
            submission_id=submission.id,
            author_id=author.id,
            comment=clean_comment(text, author.full_name),
        )
        self.session.add(comment)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.SUBMISSION_COMMENTED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=author.id,
            payload={"comment_id": comment.id},
            ip_address=ip_address,
        )

        if author.id == submission.supervisor_id:
            recipients = await self._recipients(submission)
        else:
            recipients = [submission.supervisor_id]
        phase = enum_value(submission.submission_type)
        await self.notifier.dispatch_many(
            [r for r in recipients if r != author.id],
            Message(
                type=NotificationType.THESIS_COMMENT,
                title=f"New Comment on {phase}",
                message=f'{author.full_name} commented on "{submission.title}".',
                related_type="submission",
                related_id=submission.id,
            ),
            sender_id=author.id,
        )
        return comment

    async def comments(self, submission_id: uuid.UUID, viewer: User) -> List[SubmissionComment]:
        submission = await self.registry.require_visible(submission_id, viewer)
        return await self.registry.comments(submission.id)

    async def delete(
        self,
        submission_id: uuid.UUID,
        actor: User,
        ip_address: Optional[str] = None,
    ) -> None:
        """Remove a submission. Allowed for its author or an admin."""
        submission = await self.registry.require(submission_id)
        if actor.id != submission.author_id and actor.role != UserRole.ADMIN:
            raise NotAuthorized("You can only delete your own submissions")

        await self.session.execute(
            delete(MemberPhaseProgress).where(MemberPhaseProgress.submission_id == submission.id)
        )
        await self.session.execute(
            delete(SubmissionComment).where(SubmissionComment.submission_id == submission.id)
        )
        await self.event_store.log(
            event_type=EventType.SUBMISSION_DELETED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=actor.id,
            payload={
                "phase": submission.submission_type,
                "status": submission.status,
                "owner": submission.owner_key,
            },
            ip_address=ip_address,
        )
        await self.session.delete(submission)
        await self.session.flush()
