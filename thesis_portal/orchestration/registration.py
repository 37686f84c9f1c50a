"""
Thesis registration workflow.

A student (or their group) registers a topic with the supervisor; phase
submissions are blocked until the supervisor approves it.
"""

import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import InvalidState, NotAuthorized
from thesis_portal.kernel.events.event_store import EventStore
from thesis_portal.kernel.models.base import utcnow
from thesis_portal.kernel.models.event_log import EventType
from thesis_portal.kernel.models.group import Group
from thesis_portal.kernel.models.notification import NotificationType
from thesis_portal.kernel.models.registration import RegistrationStatus, ThesisRegistration
from thesis_portal.kernel.models.user import User, UserRole
from thesis_portal.kernel.ownership import GroupRef, OwnerRef, owner_columns
from thesis_portal.orchestration.notifications import Message, NotificationDispatcher

_OPEN_STATUSES = (RegistrationStatus.PENDING, RegistrationStatus.APPROVED)


@dataclass
class RegistrationView:
    """A registration as seen by one student: their own or their group's."""
    owner: OwnerRef
    status: RegistrationStatus
    registration: Optional[ThesisRegistration] = None

    @property
    def is_group(self) -> bool:
        return isinstance(self.owner, GroupRef)


class RegistrationService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = Directory(session)
        self.notifier = NotificationDispatcher(session)
        self.event_store = EventStore(session)

    async def submit(
        self,
        student: User,
        title: str,
        description: str,
        ip_address: Optional[str] = None,
    ) -> ThesisRegistration:
        """
        Submit the topic of the student's owner for approval.

        Raises:
            NotAuthorized: caller is not a student
            InvalidState: no supervisor yet, or a registration is already
                pending or approved
        """
        if student.role != UserRole.STUDENT:
            raise NotAuthorized("Only students can register a thesis")

        owner = await self.directory.resolve_owner(student)
        supervisor_id = await self.directory.owner_supervisor_id(owner)
        if supervisor_id is None:
            raise InvalidState("You must have an accepted supervisor before registering a thesis")

        registration = await self.directory.get_registration(owner)
        if registration and registration.status in _OPEN_STATUSES:
            raise InvalidState(
                f"Thesis registration is already {RegistrationStatus(registration.status).value}"
            )
        if registration is None:
            registration = ThesisRegistration(**owner_columns(owner))
            self.session.add(registration)

        registration.status = RegistrationStatus.PENDING
        registration.title = title.strip()
        registration.description = description.strip()
        registration.submitted_at = utcnow()
        registration.reviewed_at = None
        registration.reviewed_by = None
        registration.comments = None
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.REGISTRATION_SUBMITTED,
            entity_type="registration",
            entity_id=registration.id,
            user_id=student.id,
            payload={"owner": owner.key, "title": registration.title},
            ip_address=ip_address,
        )
        label = await self.directory.owner_label(owner)
        await self.notifier.dispatch(
            supervisor_id,
            Message(
                type=NotificationType.THESIS_REGISTRATION,
                title="New Thesis Registration",
                message=f'{label} registered the thesis "{registration.title}" for your approval.',
                related_type="registration",
                related_id=registration.id,
            ),
            sender_id=student.id,
        )
        return registration

    async def review(
        self,
        faculty: User,
        student_id: uuid.UUID,
        approve: bool,
        comments: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> ThesisRegistration:
        """Approve or reject the pending registration governing a student."""
        student = await self.directory.require_user(student_id, UserRole.STUDENT, label="Student")
        owner = await self.directory.resolve_owner(student)
        supervisor_id = await self.directory.owner_supervisor_id(owner)
        if faculty.id != supervisor_id:
            raise NotAuthorized("Only the supervisor can review this thesis registration")

        registration = await self.directory.get_registration(owner)
        if not registration or registration.status != RegistrationStatus.PENDING:
            raise InvalidState("There is no pending thesis registration to review")

        registration.status = RegistrationStatus.APPROVED if approve else RegistrationStatus.REJECTED
        registration.reviewed_at = utcnow()
        registration.reviewed_by = faculty.id
        registration.comments = comments
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.REGISTRATION_REVIEWED,
            entity_type="registration",
            entity_id=registration.id,
            user_id=faculty.id,
            payload={"owner": owner.key, "status": registration.status},
            ip_address=ip_address,
        )
        outcome = "approved" if approve else "rejected"
        text = f'Your thesis registration "{registration.title}" has been {outcome}.'
        if comments:
            text += f" Comments: {comments}"
        await self.notifier.dispatch_many(
            await self.directory.owner_student_ids(owner),
            Message(
                type=NotificationType.THESIS_REGISTRATION_RESPONSE,
                title=f"Thesis Registration {outcome.capitalize()}",
                message=text,
                related_type="registration",
                related_id=registration.id,
            ),
            sender_id=faculty.id,
        )
        return registration

    async def pending_for(self, faculty: User) -> List[ThesisRegistration]:
        """Pending registrations of the faculty's students and groups."""
        supervised_groups = select(Group.id).where(Group.supervisor_id == faculty.id)
        supervised_students = select(User.id).where(User.supervisor_id == faculty.id)
        result = await self.session.execute(
            select(ThesisRegistration)
            .where(
                ThesisRegistration.status == RegistrationStatus.PENDING,
                or_(
                    ThesisRegistration.group_id.in_(supervised_groups),
                    ThesisRegistration.student_id.in_(supervised_students),
                ),
            )
            .order_by(ThesisRegistration.submitted_at)
        )
        return list(result.scalars().all())

    async def view_for(self, student: User) -> RegistrationView:
        owner = await self.directory.resolve_owner(student)
        registration = await self.directory.get_registration(owner)
        status = (
            RegistrationStatus(registration.status)
            if registration
            else RegistrationStatus.NOT_SUBMITTED
        )
        return RegistrationView(owner=owner, status=status, registration=registration)
