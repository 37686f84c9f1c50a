"""
Supervision workflow.

Students and groups request faculty as supervisor; faculty accept (taking
a seat through the seat allocator) or reject. Accepting one request
rejects every other pending request of the same owner.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_portal.engines.seats import SeatAllocator
from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import InvalidState, NotAuthorized, NotFound
from thesis_portal.kernel.events.event_store import EventStore
from thesis_portal.kernel.models.base import utcnow
from thesis_portal.kernel.models.event_log import EventType
from thesis_portal.kernel.models.notification import NotificationType
from thesis_portal.kernel.models.supervision import SupervisorRequest, SupervisorRequestStatus
from thesis_portal.kernel.models.user import User, UserRole
from thesis_portal.kernel.ownership import GroupRef, OwnerRef, owner_columns
from thesis_portal.orchestration.notifications import Message, NotificationDispatcher

logger = logging.getLogger(__name__)


def _owner_filter(owner: OwnerRef):
    if isinstance(owner, GroupRef):
        return SupervisorRequest.group_id == owner.group_id
    return SupervisorRequest.student_id == owner.student_id


class SupervisionService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = Directory(session)
        self.notifier = NotificationDispatcher(session)
        self.allocator = SeatAllocator(session, self.directory, self.notifier)
        self.event_store = EventStore(session)

    async def request(
        self,
        student: User,
        faculty_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> SupervisorRequest:
        """
        Ask a faculty member to supervise the student's owner.

        Raises:
            NotFound: faculty does not exist
            InvalidState: owner already supervised, or already asked this faculty
        """
        if student.role != UserRole.STUDENT:
            raise NotAuthorized("Only students can request a supervisor")
        faculty = await self.directory.require_user(faculty_id, UserRole.FACULTY, label="Faculty")

        owner = await self.directory.resolve_owner(student)
        if await self.directory.owner_supervisor_id(owner) is not None:
            raise InvalidState("You already have a supervisor")

        existing = await self.session.execute(
            select(SupervisorRequest.id).where(
                SupervisorRequest.faculty_id == faculty.id,
                _owner_filter(owner),
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise InvalidState("A request has already been sent to this faculty member")

        request = SupervisorRequest(
            faculty_id=faculty.id,
            requested_by=student.id,
            **owner_columns(owner),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(request)
        except IntegrityError:
            raise InvalidState("A request has already been sent to this faculty member")

        await self.event_store.log(
            event_type=EventType.SUPERVISOR_REQUESTED,
            entity_type="supervision",
            entity_id=request.id,
            user_id=student.id,
            payload={"faculty_id": faculty.id, "owner": owner.key},
            ip_address=ip_address,
        )

        label = await self.directory.owner_label(owner)
        is_group = isinstance(owner, GroupRef)
        await self.notifier.dispatch(
            faculty.id,
            Message(
                type=(
                    NotificationType.GROUP_SUPERVISOR_REQUEST
                    if is_group
                    else NotificationType.SUPERVISOR_REQUEST
                ),
                title="New Supervision Request",
                message=f"{label} has requested you as {'their group' if is_group else 'their'} supervisor.",
                related_type="supervisor_request",
                related_id=request.id,
            ),
            sender_id=student.id,
        )
        return request

    async def _pending_request(self, faculty_id: uuid.UUID, owner: OwnerRef) -> Optional[SupervisorRequest]:
        result = await self.session.execute(
            select(SupervisorRequest).where(
                SupervisorRequest.faculty_id == faculty_id,
                SupervisorRequest.status == SupervisorRequestStatus.PENDING,
                _owner_filter(owner),
            )
        )
        return result.scalar_one_or_none()

    async def respond(
        self,
        faculty: User,
        owner: OwnerRef,
        accept: bool,
        ip_address: Optional[str] = None,
    ) -> SupervisorRequest:
        """
        Accept or reject a pending request from a student or group.

        Accepting takes a seat, links the owner (and every group member) to
        the faculty, and auto-rejects the owner's other pending requests.
        """
        if faculty.role != UserRole.FACULTY:
            raise NotAuthorized("Only faculty members can respond to supervision requests")

        request = await self._pending_request(faculty.id, owner)
        if not request:
            raise NotFound("Supervision request not found")

        now = utcnow()
        if accept:
            await self.allocator.accept_supervision(faculty.id, owner)
            request.status = SupervisorRequestStatus.ACCEPTED
        else:
            request.status = SupervisorRequestStatus.REJECTED
        request.responded_at = now

        await self.event_store.log(
            event_type=(
                EventType.SUPERVISOR_REQUEST_ACCEPTED
                if accept
                else EventType.SUPERVISOR_REQUEST_REJECTED
            ),
            entity_type="supervision",
            entity_id=request.id,
            user_id=faculty.id,
            payload={"faculty_id": faculty.id, "owner": owner.key},
            ip_address=ip_address,
        )

        if accept:
            await self._auto_reject_others(request, owner)

        outcome = "accepted" if accept else "rejected"
        await self.notifier.dispatch_many(
            await self.directory.owner_student_ids(owner),
            Message(
                type=NotificationType.SUPERVISOR_RESPONSE,
                title=f"Supervision Request {outcome.capitalize()}",
                message=f"{faculty.full_name} has {outcome} your supervision request.",
                related_type="supervisor_request",
                related_id=request.id,
            ),
            sender_id=faculty.id,
        )
        await self.session.flush()
        return request

    async def _auto_reject_others(self, accepted: SupervisorRequest, owner: OwnerRef) -> List[SupervisorRequest]:
        result = await self.session.execute(
            select(SupervisorRequest).where(
                SupervisorRequest.id != accepted.id,
                SupervisorRequest.status == SupervisorRequestStatus.PENDING,
                _owner_filter(owner),
            )
        )
        others = list(result.scalars().all())
        if not others:
            return others

        label = await self.directory.owner_label(owner)
        for other in others:
            other.status = SupervisorRequestStatus.REJECTED
            other.responded_at = accepted.responded_at
            await self.event_store.log(
                event_type=EventType.SUPERVISOR_REQUEST_AUTO_REJECTED,
                entity_type="supervision",
                entity_id=other.id,
                payload={
                    "faculty_id": other.faculty_id,
                    "owner": owner.key,
                    "accepted_request_id": accepted.id,
                },
            )
            await self.notifier.dispatch(
                other.faculty_id,
                Message(
                    type=NotificationType.SUPERVISOR_RESPONSE,
                    title="Supervision Request Withdrawn",
                    message=f"{label} has been accepted by another supervisor.",
                    related_type="supervisor_request",
                    related_id=other.id,
                ),
            )
        logger.info("Auto-rejected %d pending request(s) for %s", len(others), owner.key)
        return others

    async def pending_for(self, faculty: User) -> List[SupervisorRequest]:
        result = await self.session.execute(
            select(SupervisorRequest)
            .where(
                SupervisorRequest.faculty_id == faculty.id,
                SupervisorRequest.status == SupervisorRequestStatus.PENDING,
            )
            .order_by(SupervisorRequest.requested_at)
        )
        return list(result.scalars().all())

    async def release(
        self,
        actor: User,
        faculty_id: uuid.UUID,
        owner: OwnerRef,
    ) -> List[uuid.UUID]:
        """Drop a supervisee. Allowed for that supervisor or an admin."""
        if actor.role != UserRole.ADMIN and actor.id != faculty_id:
            raise NotAuthorized("Only the supervisor or an administrator can release a supervisee")

        faculty = await self.directory.require_user(faculty_id, UserRole.FACULTY, label="Faculty")
        cleared = await self.allocator.release_supervision(faculty.id, owner, actor_id=actor.id)

        await self.notifier.dispatch_many(
            cleared,
            Message(
                type=NotificationType.SUPERVISOR_REMOVED,
                title="Supervisor Removed",
                message=f"{faculty.full_name} is no longer your supervisor.",
                related_type="supervision",
                related_id=owner.id,
            ),
            sender_id=actor.id,
        )
        return cleared
