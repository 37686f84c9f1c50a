"""
Submission Registry.

Storage queries over thesis submissions: owner history, the eligibility
snapshot, supervisor work queues and the per-member phase progress view.
"""

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_portal.engines.eligibility import EligibilitySnapshot, SubmissionSnapshot
from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import NotAuthorized, NotFound
from thesis_portal.kernel.models.base import utcnow
from thesis_portal.kernel.models.submission import (
    ACTIVE_STATUSES,
    MemberPhaseProgress,
    Phase,
    SubmissionComment,
    SubmissionStatus,
    ThesisSubmission,
)
from thesis_portal.kernel.models.user import User, UserRole
from thesis_portal.kernel.ownership import OwnerRef


class SubmissionRegistry:
    """Read side of the submission store, plus phase progress upserts."""

    def __init__(self, session: AsyncSession, directory: Optional[Directory] = None):
        self.session = session
        self.directory = directory or Directory(session)

    async def get(self, submission_id: uuid.UUID) -> Optional[ThesisSubmission]:
        result = await self.session.execute(
            select(ThesisSubmission).where(ThesisSubmission.id == submission_id)
        )
        return result.scalar_one_or_none()

    async def require(self, submission_id: uuid.UUID) -> ThesisSubmission:
        submission = await self.get(submission_id)
        if not submission:
            raise NotFound("Thesis submission not found")
        return submission

    async def require_visible(self, submission_id: uuid.UUID, user: User) -> ThesisSubmission:
        """
        Load a submission the user may see: admins, its author and supervisor,
        and every student currently represented by its owner.
        """
        submission = await self.require(submission_id)
        if user.role == UserRole.ADMIN or user.id in (submission.supervisor_id, submission.author_id):
            return submission
        owner = await self.directory.resolve_owner(user)
        if owner.key != submission.owner_key:
            raise NotAuthorized("You cannot view this submission")
        return submission

    async def lock(self, submission_id: uuid.UUID) -> ThesisSubmission:
        """Load a submission with a row lock for a status transition."""
        result = await self.session.execute(
            select(ThesisSubmission)
            .where(ThesisSubmission.id == submission_id)
            .with_for_update()
        )
        submission = result.scalar_one_or_none()
        if not submission:
            raise NotFound("Thesis submission not found")
        return submission

    async def for_owner(self, owner: OwnerRef) -> List[ThesisSubmission]:
        """All submissions of an owner, newest first."""
        result = await self.session.execute(
            select(ThesisSubmission)
            .where(ThesisSubmission.owner_key == owner.key)
            .order_by(ThesisSubmission.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def active_for_phase(
        self,
        owner: OwnerRef,
        phase: Phase,
    ) -> Optional[ThesisSubmission]:
        """The pending or approved submission of a phase, if any."""
        result = await self.session.execute(
            select(ThesisSubmission).where(
                ThesisSubmission.owner_key == owner.key,
                ThesisSubmission.submission_type == Phase(phase),
                ThesisSubmission.status.in_(ACTIVE_STATUSES),
            )
        )
        return result.scalars().first()

    async def eligibility_snapshot(self, student: User) -> EligibilitySnapshot:
        """Load everything the eligibility checker needs for this student's owner."""
        owner = await self.directory.resolve_owner(student)
        supervisor_id = await self.directory.owner_supervisor_id(owner)
        registration_approved = await self.directory.registration_approved(owner)

        rows = await self.session.execute(
            select(
                ThesisSubmission.id,
                ThesisSubmission.submission_type,
                ThesisSubmission.status,
            ).where(ThesisSubmission.owner_key == owner.key)
        )
        submissions = [
            SubmissionSnapshot(id=row.id, phase=Phase(row.submission_type), status=SubmissionStatus(row.status))
            for row in rows
        ]
        return EligibilitySnapshot(
            owner=owner,
            supervisor_id=supervisor_id,
            registration_approved=registration_approved,
            submissions=submissions,
        )

    async def for_supervisee(
        self,
        faculty_id: uuid.UUID,
        owner: OwnerRef,
    ) -> List[ThesisSubmission]:
        """Submissions of one owner that this faculty member reviews."""
        result = await self.session.execute(
            select(ThesisSubmission)
            .where(
                ThesisSubmission.owner_key == owner.key,
                ThesisSubmission.supervisor_id == faculty_id,
            )
            .order_by(ThesisSubmission.submitted_at.desc())
        )
        return list(result.scalars().all())

    async def pending_for_supervisor(self, faculty_id: uuid.UUID) -> List[ThesisSubmission]:
        result = await self.session.execute(
            select(ThesisSubmission)
            .where(
                ThesisSubmission.supervisor_id == faculty_id,
                ThesisSubmission.status == SubmissionStatus.PENDING,
            )
            .order_by(ThesisSubmission.submitted_at)
        )
        return list(result.scalars().all())

    # Phase progress

    async def record_phase_progress(
        self,
        student_id: uuid.UUID,
        submission: ThesisSubmission,
    ) -> MemberPhaseProgress:
        """Upsert one student's progress row for the submission's phase."""
        phase = Phase(submission.submission_type)
        result = await self.session.execute(
            select(MemberPhaseProgress).where(
                MemberPhaseProgress.student_id == student_id,
                MemberPhaseProgress.submission_type == phase,
            )
        )
        progress = result.scalar_one_or_none()
        if progress is None:
            progress = MemberPhaseProgress(student_id=student_id, submission_type=phase)
            self.session.add(progress)

        progress.status = SubmissionStatus(submission.status)
        progress.submission_id = submission.id
        progress.title = submission.title
        progress.file_url = submission.file_url
        progress.file_name = submission.file_name
        progress.submitted_at = submission.submitted_at
        progress.updated_at = utcnow()
        await self.session.flush()
        return progress

    async def progress_for_student(self, student_id: uuid.UUID) -> List[MemberPhaseProgress]:
        result = await self.session.execute(
            select(MemberPhaseProgress)
            .where(MemberPhaseProgress.student_id == student_id)
            .order_by(MemberPhaseProgress.submission_type)
        )
        return list(result.scalars().all())

    async def approved(self) -> List[ThesisSubmission]:
        """Every approved submission, oldest review first."""
        result = await self.session.execute(
            select(ThesisSubmission)
            .where(ThesisSubmission.status == SubmissionStatus.APPROVED)
            .order_by(ThesisSubmission.reviewed_at)
        )
        return list(result.scalars().all())

    # Comments

    async def comments(self, submission_id: uuid.UUID) -> List[SubmissionComment]:
        result = await self.session.execute(
            select(SubmissionComment)
            .where(SubmissionComment.submission_id == submission_id)
            .order_by(SubmissionComment.created_at)
        )
        return list(result.scalars().all())
