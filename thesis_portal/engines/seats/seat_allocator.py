"""
Seat Allocator - supervision capacity accounting.

One supervisee row is one consumed seat, whether it holds a student or a
whole group. Capacity is checked while holding a row lock on the faculty
record, and the unique supervisee columns stop an owner from holding two
seats.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import (
    CapacityExceeded,
    InvalidState,
    NotAuthorized,
    NotFound,
)
from thesis_portal.kernel.events.event_store import EventStore
from thesis_portal.kernel.models.base import utcnow
from thesis_portal.kernel.models.event_log import EventType
from thesis_portal.kernel.models.notification import NotificationType
from thesis_portal.kernel.models.supervision import Supervisee, SupervisorRequest
from thesis_portal.kernel.models.user import (
    SeatIncreaseRequest,
    SeatRequestStatus,
    User,
    UserRole,
)
from thesis_portal.kernel.ownership import GroupRef, OwnerKind, SuperviseeRef, owner_columns
from thesis_portal.orchestration.notifications import Message, NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class SeatInfo:
    faculty_id: uuid.UUID
    capacity: int
    used: int
    available: int
    individual_count: int
    group_count: int
    has_pending_request: bool = False


def _owner_filter(model, owner: SuperviseeRef):
    if isinstance(owner, GroupRef):
        return model.group_id == owner.group_id
    return model.student_id == owner.student_id


class SeatAllocator:
    """Accepts and releases supervisees against a faculty member's capacity."""

    def __init__(
        self,
        session: AsyncSession,
        directory: Optional[Directory] = None,
        notifier: Optional[NotificationDispatcher] = None,
    ):
        self.session = session
        self.directory = directory or Directory(session)
        self.notifier = notifier or NotificationDispatcher(session)
        self.event_store = EventStore(session)

    async def _require_faculty(self, faculty_id: uuid.UUID, lock: bool = False) -> User:
        if lock:
            faculty = await self.directory.lock_user(faculty_id)
        else:
            faculty = await self.directory.get_user(faculty_id)
        if not faculty or faculty.role != UserRole.FACULTY:
            raise NotFound("Faculty not found")
        return faculty

    async def used_seats(self, faculty_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(Supervisee.id)).where(Supervisee.faculty_id == faculty_id)
        )
        return result.scalar() or 0

    async def seat_holder(self, owner: SuperviseeRef) -> Optional[Supervisee]:
        """The seat an owner currently holds, with any faculty."""
        result = await self.session.execute(
            select(Supervisee).where(_owner_filter(Supervisee, owner))
        )
        return result.scalar_one_or_none()

    async def accept_supervision(self, faculty_id: uuid.UUID, owner: SuperviseeRef) -> Supervisee:
        """
        Consume one seat for the owner and link it to the faculty.

        Raises:
            CapacityExceeded: every seat is already taken
            InvalidState: the owner already holds a seat
        """
        faculty = await self._require_faculty(faculty_id, lock=True)

        if await self.seat_holder(owner) is not None:
            raise InvalidState("This student or group already has a supervisor")

        used = await self.used_seats(faculty_id)
        if used >= faculty.seat_capacity:
            raise CapacityExceeded(capacity=faculty.seat_capacity, used=used)

        seat = Supervisee(faculty_id=faculty_id, **owner_columns(owner))
        try:
            async with self.session.begin_nested():
                self.session.add(seat)
        except IntegrityError:
            raise InvalidState("This student or group already has a supervisor")

        await self.directory.set_owner_supervisor(owner, faculty_id)
        logger.info("Seat %d/%d taken on %s by %s", used + 1, faculty.seat_capacity, faculty_id, owner.key)
        return seat

    async def release_supervision(
        self,
        faculty_id: uuid.UUID,
        owner: SuperviseeRef,
        actor_id: Optional[uuid.UUID] = None,
    ) -> List[uuid.UUID]:
        """
        Free the owner's seat and clear its supervisor links.

        Existing submissions keep their stored supervisor. The request
        between the pair is removed so the owner may ask again later.
        Returns the students whose supervisor link was cleared.
        """
        result = await self.session.execute(
            select(Supervisee).where(
                Supervisee.faculty_id == faculty_id,
                _owner_filter(Supervisee, owner),
            )
        )
        seat = result.scalar_one_or_none()
        if not seat:
            raise NotFound("Supervisee not found")

        await self.session.delete(seat)
        await self.session.flush()
        await self.session.execute(
            delete(SupervisorRequest).where(
                SupervisorRequest.faculty_id == faculty_id,
                _owner_filter(SupervisorRequest, owner),
            )
        )
        cleared = await self.directory.set_owner_supervisor(owner, None)

        await self.event_store.log(
            event_type=EventType.SUPERVISION_RELEASED,
            entity_type="supervision",
            entity_id=owner.id,
            user_id=actor_id,
            payload={"faculty_id": faculty_id, "owner_kind": owner.kind},
        )
        return cleared

    async def seat_info(self, faculty_id: uuid.UUID) -> SeatInfo:
        faculty = await self._require_faculty(faculty_id)
        result = await self.session.execute(
            select(Supervisee.owner_kind, func.count(Supervisee.id))
            .where(Supervisee.faculty_id == faculty_id)
            .group_by(Supervisee.owner_kind)
        )
        counts = {kind: count for kind, count in result.all()}
        individual_count = counts.get(OwnerKind.INDIVIDUAL.value, 0)
        group_count = counts.get(OwnerKind.GROUP.value, 0)
        used = individual_count + group_count
        pending = await self._pending_request(faculty_id)
        return SeatInfo(
            faculty_id=faculty_id,
            capacity=faculty.seat_capacity,
            used=used,
            available=max(faculty.seat_capacity - used, 0),
            individual_count=individual_count,
            group_count=group_count,
            has_pending_request=pending is not None,
        )

    async def supervisees(self, faculty_id: uuid.UUID, viewer: User) -> List[Supervisee]:
        """Seats held with one faculty member, visible to that member and to admins."""
        if viewer.role != UserRole.ADMIN and viewer.id != faculty_id:
            raise NotAuthorized("You can only list your own supervisees")
        await self._require_faculty(faculty_id)
        result = await self.session.execute(
            select(Supervisee)
            .where(Supervisee.faculty_id == faculty_id)
            .order_by(Supervisee.accepted_at)
        )
        return list(result.scalars().all())

    async def set_capacity(self, actor: User, faculty_id: uuid.UUID, capacity: int) -> SeatInfo:
        """Admin capacity change. Decreases below the seats in use are refused."""
        if actor.role != UserRole.ADMIN:
            raise NotAuthorized("Only administrators can change seat capacity")
        if capacity < 0:
            raise InvalidState("Seat capacity cannot be negative")

        faculty = await self._require_faculty(faculty_id, lock=True)
        used = await self.used_seats(faculty_id)
        if capacity < used:
            raise InvalidState(
                f"Cannot set capacity to {capacity}: {used} seats are currently in use"
            )

        previous = faculty.seat_capacity
        faculty.seat_capacity = capacity
        await self.event_store.log(
            event_type=EventType.SEAT_CAPACITY_CHANGED,
            entity_type="faculty",
            entity_id=faculty_id,
            user_id=actor.id,
            payload={"from": previous, "to": capacity},
        )
        await self.session.flush()
        return await self.seat_info(faculty_id)

    # Seat increase requests

    async def _pending_request(self, faculty_id: uuid.UUID) -> Optional[SeatIncreaseRequest]:
        result = await self.session.execute(
            select(SeatIncreaseRequest).where(
                SeatIncreaseRequest.faculty_id == faculty_id,
                SeatIncreaseRequest.status == SeatRequestStatus.PENDING,
            )
        )
        return result.scalars().first()

    async def request_seat_increase(
        self,
        faculty: User,
        requested_seats: int,
        reason: str,
    ) -> SeatIncreaseRequest:
        if faculty.role != UserRole.FACULTY:
            raise NotAuthorized("Only faculty members can request additional seats")
        if requested_seats < 1:
            raise InvalidState("Requested seats must be at least 1")
        if not reason or not reason.strip():
            raise InvalidState("A reason is required")
        if await self._pending_request(faculty.id) is not None:
            raise InvalidState("You already have a pending seat increase request")

        request = SeatIncreaseRequest(
            faculty_id=faculty.id,
            requested_seats=requested_seats,
            reason=reason.strip(),
        )
        self.session.add(request)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.SEAT_INCREASE_REQUESTED,
            entity_type="faculty",
            entity_id=faculty.id,
            user_id=faculty.id,
            payload={"request_id": request.id, "requested_seats": requested_seats},
        )
        admins = await self.directory.admins()
        await self.notifier.dispatch_many(
            [admin.id for admin in admins],
            Message(
                type=NotificationType.SEAT_INCREASE_REQUEST,
                title="Seat Increase Request",
                message=(
                    f"{faculty.full_name} requested {requested_seats} additional "
                    f"seat(s). Reason: {request.reason}"
                ),
                related_type="seat_request",
                related_id=request.id,
            ),
            sender_id=faculty.id,
        )
        return request

    async def pending_seat_requests(self) -> List[SeatIncreaseRequest]:
        result = await self.session.execute(
            select(SeatIncreaseRequest)
            .where(SeatIncreaseRequest.status == SeatRequestStatus.PENDING)
            .order_by(SeatIncreaseRequest.requested_at)
        )
        return list(result.scalars().all())

    async def review_seat_increase(
        self,
        admin: User,
        request_id: uuid.UUID,
        approve: bool,
        comments: Optional[str] = None,
    ) -> SeatIncreaseRequest:
        """Approve (adding the seats) or reject a pending request."""
        if admin.role != UserRole.ADMIN:
            raise NotAuthorized("Only administrators can review seat requests")

        result = await self.session.execute(
            select(SeatIncreaseRequest).where(SeatIncreaseRequest.id == request_id)
        )
        request = result.scalar_one_or_none()
        if not request:
            raise NotFound("Seat increase request not found")
        if request.status != SeatRequestStatus.PENDING:
            raise InvalidState("This request has already been reviewed")

        faculty = await self._require_faculty(request.faculty_id, lock=True)
        request.status = SeatRequestStatus.APPROVED if approve else SeatRequestStatus.REJECTED
        request.reviewed_at = utcnow()
        request.reviewed_by = admin.id
        request.comments = comments

        if approve:
            faculty.seat_capacity = faculty.seat_capacity + request.requested_seats
            message = Message(
                type=NotificationType.SEAT_INCREASE_APPROVED,
                title="Seat Increase Approved",
                message=(
                    f"Your request for {request.requested_seats} additional seat(s) was "
                    f"approved. New capacity: {faculty.seat_capacity}."
                ),
                related_type="seat_request",
                related_id=request.id,
            )
        else:
            message = Message(
                type=NotificationType.SEAT_INCREASE_REJECTED,
                title="Seat Increase Rejected",
                message=(
                    f"Your request for {request.requested_seats} additional seat(s) was rejected."
                    + (f" Comments: {comments}" if comments else "")
                ),
                related_type="seat_request",
                related_id=request.id,
            )

        await self.event_store.log(
            event_type=EventType.SEAT_INCREASE_REVIEWED,
            entity_type="faculty",
            entity_id=faculty.id,
            user_id=admin.id,
            payload={
                "request_id": request.id,
                "status": request.status,
                "seat_capacity": faculty.seat_capacity,
            },
        )
        await self.notifier.dispatch(faculty.id, message, sender_id=admin.id)
        await self.session.flush()
        return request
