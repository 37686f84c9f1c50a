"""Integration tests for supervision seats and seat increase requests."""

import pytest
from sqlalchemy import select

from thesis_portal.engines.seats import SeatAllocator
from thesis_portal.kernel.errors import CapacityExceeded, InvalidState, NotAuthorized, NotFound
from thesis_portal.kernel.models import User, UserRole
from thesis_portal.kernel.models.notification import Notification, NotificationType
from thesis_portal.kernel.models.user import SeatRequestStatus
from thesis_portal.kernel.ownership import GroupRef, IndividualRef
from thesis_portal.orchestration.supervision import SupervisionService


class TestAcceptSupervision:
    @pytest.mark.asyncio
    async def test_takes_one_seat(self, db_session, student, faculty):
        allocator = SeatAllocator(db_session)

        await allocator.accept_supervision(faculty.id, IndividualRef(student.id))

        assert await allocator.used_seats(faculty.id) == 1
        assert student.supervisor_id == faculty.id

    @pytest.mark.asyncio
    async def test_link_visible_on_student_loaded_without_it(self, db_session, faculty):
        student = User(email="lazy@university.test", full_name="Lazy Loaded", role=UserRole.STUDENT)
        db_session.add(student)
        await db_session.flush()

        await SeatAllocator(db_session).accept_supervision(faculty.id, IndividualRef(student.id))

        assert student.supervisor_id == faculty.id
        await db_session.refresh(student)
        assert student.supervisor_id == faculty.id

    @pytest.mark.asyncio
    async def test_single_seat_then_full_for_any_owner(self, db_session, make_user, form_group):
        faculty = await make_user(UserRole.FACULTY, seat_capacity=1)
        group = await form_group([await make_user(UserRole.STUDENT) for _ in range(4)])
        allocator = SeatAllocator(db_session)
        await allocator.accept_supervision(faculty.id, GroupRef(group.id))
        assert (await allocator.seat_info(faculty.id)).used == 1

        other_group = await form_group([await make_user(UserRole.STUDENT) for _ in range(2)])
        loner = await make_user(UserRole.STUDENT)
        for owner in (GroupRef(other_group.id), IndividualRef(loner.id)):
            with pytest.raises(CapacityExceeded):
                await allocator.accept_supervision(faculty.id, owner)

    @pytest.mark.asyncio
    async def test_full_capacity_rejected(self, db_session, make_user):
        faculty = await make_user(UserRole.FACULTY, seat_capacity=2)
        allocator = SeatAllocator(db_session)
        for _ in range(2):
            student = await make_user(UserRole.STUDENT)
            await allocator.accept_supervision(faculty.id, IndividualRef(student.id))

        late = await make_user(UserRole.STUDENT)
        with pytest.raises(CapacityExceeded) as exc:
            await allocator.accept_supervision(faculty.id, IndividualRef(late.id))

        assert exc.value.capacity == 2
        assert exc.value.used == 2
        assert late.supervisor_id is None
        assert await allocator.used_seats(faculty.id) == 2

    @pytest.mark.asyncio
    async def test_group_counts_as_one_seat(self, db_session, make_user, form_group):
        faculty = await make_user(UserRole.FACULTY, seat_capacity=1)
        members = [await make_user(UserRole.STUDENT) for _ in range(4)]
        group = await form_group(members)
        allocator = SeatAllocator(db_session)

        await allocator.accept_supervision(faculty.id, GroupRef(group.id))

        assert await allocator.used_seats(faculty.id) == 1
        assert group.supervisor_id == faculty.id
        assert all(m.supervisor_id == faculty.id for m in members)

        other = await make_user(UserRole.STUDENT)
        with pytest.raises(CapacityExceeded):
            await allocator.accept_supervision(faculty.id, IndividualRef(other.id))

    @pytest.mark.asyncio
    async def test_owner_holds_at_most_one_seat(self, db_session, make_user, student, faculty):
        second = await make_user(UserRole.FACULTY)
        allocator = SeatAllocator(db_session)
        await allocator.accept_supervision(faculty.id, IndividualRef(student.id))

        with pytest.raises(InvalidState):
            await allocator.accept_supervision(second.id, IndividualRef(student.id))
        assert await allocator.used_seats(second.id) == 0

    @pytest.mark.asyncio
    async def test_unknown_faculty(self, db_session, student):
        with pytest.raises(NotFound):
            await SeatAllocator(db_session).accept_supervision(student.id, IndividualRef(student.id))


class TestReleaseAndInfo:
    @pytest.mark.asyncio
    async def test_seat_info_counts_by_kind(self, db_session, make_user, faculty, form_group):
        allocator = SeatAllocator(db_session)
        group = await form_group([await make_user(UserRole.STUDENT) for _ in range(2)])
        await allocator.accept_supervision(faculty.id, GroupRef(group.id))
        for _ in range(2):
            student = await make_user(UserRole.STUDENT)
            await allocator.accept_supervision(faculty.id, IndividualRef(student.id))

        info = await allocator.seat_info(faculty.id)

        assert info.capacity == 9
        assert info.used == 3
        assert info.available == 6
        assert info.individual_count == 2
        assert info.group_count == 1
        assert info.has_pending_request is False

    @pytest.mark.asyncio
    async def test_release_frees_seat(self, db_session, student, faculty, supervise):
        owner = await supervise(student, faculty)
        allocator = SeatAllocator(db_session)

        cleared = await allocator.release_supervision(faculty.id, owner, actor_id=faculty.id)

        assert cleared == [student.id]
        assert student.supervisor_id is None
        assert await allocator.used_seats(faculty.id) == 0
        # The pair may start over
        await SupervisionService(db_session).request(student, faculty.id)

    @pytest.mark.asyncio
    async def test_release_unknown_seat(self, db_session, student, faculty):
        with pytest.raises(NotFound):
            await SeatAllocator(db_session).release_supervision(faculty.id, IndividualRef(student.id))


    @pytest.mark.asyncio
    async def test_lists_supervisees(self, db_session, make_user, faculty, form_group):
        allocator = SeatAllocator(db_session)
        group = await form_group([await make_user(UserRole.STUDENT) for _ in range(2)])
        loner = await make_user(UserRole.STUDENT)
        await allocator.accept_supervision(faculty.id, GroupRef(group.id))
        await allocator.accept_supervision(faculty.id, IndividualRef(loner.id))

        seats = await allocator.supervisees(faculty.id, faculty)

        assert {seat.owner for seat in seats} == {GroupRef(group.id), IndividualRef(loner.id)}

    @pytest.mark.asyncio
    async def test_supervisees_private_to_faculty_and_admins(self, db_session, make_user, admin, faculty):
        other = await make_user(UserRole.FACULTY)
        allocator = SeatAllocator(db_session)

        assert await allocator.supervisees(faculty.id, admin) == []
        with pytest.raises(NotAuthorized):
            await allocator.supervisees(faculty.id, other)


class TestCapacity:
    @pytest.mark.asyncio
    async def test_admin_sets_capacity(self, db_session, admin, faculty):
        info = await SeatAllocator(db_session).set_capacity(admin, faculty.id, 3)
        assert info.capacity == 3
        assert faculty.seat_capacity == 3

    @pytest.mark.asyncio
    async def test_cannot_go_below_used(self, db_session, admin, student, faculty):
        allocator = SeatAllocator(db_session)
        await allocator.accept_supervision(faculty.id, IndividualRef(student.id))

        with pytest.raises(InvalidState):
            await allocator.set_capacity(admin, faculty.id, 0)
        assert (await allocator.set_capacity(admin, faculty.id, 1)).available == 0

    @pytest.mark.asyncio
    async def test_admin_only(self, db_session, faculty):
        with pytest.raises(NotAuthorized):
            await SeatAllocator(db_session).set_capacity(faculty, faculty.id, 20)


class TestSeatIncrease:
    @pytest.mark.asyncio
    async def test_request_notifies_admins(self, db_session, admin, faculty):
        allocator = SeatAllocator(db_session)

        request = await allocator.request_seat_increase(faculty, 2, "New cohort")

        assert request.status == SeatRequestStatus.PENDING
        assert (await allocator.seat_info(faculty.id)).has_pending_request is True
        result = await db_session.execute(
            select(Notification).where(Notification.recipient_id == admin.id)
        )
        notification = result.scalar_one()
        assert notification.type == NotificationType.SEAT_INCREASE_REQUEST

    @pytest.mark.asyncio
    async def test_one_pending_request_at_a_time(self, db_session, faculty):
        allocator = SeatAllocator(db_session)
        await allocator.request_seat_increase(faculty, 2, "New cohort")

        with pytest.raises(InvalidState):
            await allocator.request_seat_increase(faculty, 1, "Another")

    @pytest.mark.parametrize("seats, reason", [(0, "Reason"), (2, "   ")])
    @pytest.mark.asyncio
    async def test_validates_input(self, db_session, faculty, seats, reason):
        with pytest.raises(InvalidState):
            await SeatAllocator(db_session).request_seat_increase(faculty, seats, reason)

    @pytest.mark.asyncio
    async def test_approval_adds_seats(self, db_session, admin, faculty):
        allocator = SeatAllocator(db_session)
        request = await allocator.request_seat_increase(faculty, 3, "New cohort")

        reviewed = await allocator.review_seat_increase(admin, request.id, approve=True, comments="ok")

        assert reviewed.status == SeatRequestStatus.APPROVED
        assert reviewed.reviewed_by == admin.id
        assert faculty.seat_capacity == 12
        assert await allocator.pending_seat_requests() == []
        with pytest.raises(InvalidState):
            await allocator.review_seat_increase(admin, request.id, approve=False)

    @pytest.mark.asyncio
    async def test_rejection_keeps_capacity(self, db_session, admin, faculty):
        allocator = SeatAllocator(db_session)
        request = await allocator.request_seat_increase(faculty, 3, "New cohort")

        await allocator.review_seat_increase(admin, request.id, approve=False)

        assert faculty.seat_capacity == 9
        result = await db_session.execute(
            select(Notification.type).where(Notification.recipient_id == faculty.id)
        )
        assert result.scalars().all() == [NotificationType.SEAT_INCREASE_REJECTED.value]
