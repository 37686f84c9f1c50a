"""Integration tests for group formation and membership."""

import pytest
from sqlalchemy import select

from thesis_portal.kernel.errors import InvalidState, NotAuthorized, NotFound
from thesis_portal.kernel.models import UserRole
from thesis_portal.kernel.models.group import Group, GroupMember, GroupRequestStatus
from thesis_portal.kernel.models.supervision import Supervisee, SupervisorRequestStatus
from thesis_portal.orchestration.groups import GroupService
from thesis_portal.orchestration.supervision import SupervisionService


class TestFormation:
    @pytest.mark.asyncio
    async def test_accept_forms_group_of_two(self, db_session, make_user):
        alice = await make_user(UserRole.STUDENT, full_name="Alice")
        bob = await make_user(UserRole.STUDENT, full_name="Bob")
        service = GroupService(db_session)

        await service.send_request(alice, bob.id)
        group = await service.accept_request(bob, alice.id)

        assert group.name == "Group: Alice & Bob"
        assert set(await service.directory.member_ids(group.id)) == {alice.id, bob.id}
        assert await service.pending_requests(bob) == []

    @pytest.mark.asyncio
    async def test_invitee_joins_existing_group(self, db_session, make_user, form_group):
        students = [await make_user(UserRole.STUDENT) for _ in range(3)]
        group = await form_group(students[:2])
        service = GroupService(db_session)

        await service.send_request(students[1], students[2].id)
        joined = await service.accept_request(students[2], students[1].id)

        assert joined.id == group.id
        assert len(await service.directory.member_ids(group.id)) == 3

    @pytest.mark.asyncio
    async def test_at_most_four_members(self, db_session, make_user, form_group):
        students = [await make_user(UserRole.STUDENT) for _ in range(5)]
        await form_group(students[:4])

        with pytest.raises(InvalidState):
            await GroupService(db_session).send_request(students[0], students[4].id)

    @pytest.mark.asyncio
    async def test_duplicate_invitation(self, db_session, make_user):
        a, b = [await make_user(UserRole.STUDENT) for _ in range(2)]
        service = GroupService(db_session)
        await service.send_request(a, b.id)

        with pytest.raises(InvalidState):
            await service.send_request(a, b.id)

    @pytest.mark.asyncio
    async def test_rejected_invitation_can_be_resent(self, db_session, make_user):
        a, b = [await make_user(UserRole.STUDENT) for _ in range(2)]
        service = GroupService(db_session)
        first = await service.send_request(a, b.id)
        await service.reject_request(b, a.id)

        again = await service.send_request(a, b.id)

        assert again.id == first.id
        assert again.status == GroupRequestStatus.PENDING
        group = await service.accept_request(b, a.id)
        with pytest.raises(InvalidState):
            await service.reject_request(b, a.id)
        assert group is not None

    @pytest.mark.asyncio
    async def test_cannot_invite_self(self, db_session, student):
        with pytest.raises(InvalidState):
            await GroupService(db_session).send_request(student, student.id)

    @pytest.mark.asyncio
    async def test_supervised_students_cannot_group(self, db_session, make_user, student, faculty, supervise):
        await supervise(student, faculty)
        peer = await make_user(UserRole.STUDENT)

        with pytest.raises(InvalidState):
            await GroupService(db_session).send_request(student, peer.id)
        with pytest.raises(InvalidState):
            await GroupService(db_session).send_request(peer, student.id)

    @pytest.mark.asyncio
    async def test_target_already_grouped(self, db_session, make_user, form_group):
        students = [await make_user(UserRole.STUDENT) for _ in range(3)]
        await form_group(students[:2])

        with pytest.raises(InvalidState):
            await GroupService(db_session).send_request(students[2], students[0].id)

    @pytest.mark.asyncio
    async def test_unknown_invitation(self, db_session, make_user):
        a, b = [await make_user(UserRole.STUDENT) for _ in range(2)]
        with pytest.raises(NotFound):
            await GroupService(db_session).accept_request(b, a.id)

    @pytest.mark.asyncio
    async def test_joining_voids_individual_supervisor_requests(self, db_session, make_user, faculty):
        a, b = [await make_user(UserRole.STUDENT) for _ in range(2)]
        request = await SupervisionService(db_session).request(b, faculty.id)
        service = GroupService(db_session)

        await service.send_request(a, b.id)
        await service.accept_request(b, a.id)
        await db_session.refresh(request)

        assert request.status == SupervisorRequestStatus.REJECTED


class TestRemoveMember:
    @pytest.mark.asyncio
    async def test_admin_removes_member(self, db_session, make_user, admin, faculty, form_group, supervise):
        students = [await make_user(UserRole.STUDENT) for _ in range(3)]
        group = await form_group(students)
        await supervise(students[0], faculty)
        service = GroupService(db_session)

        remaining = await service.remove_member(admin, group.id, students[2].id)

        assert remaining.id == group.id
        assert students[2].id not in await service.directory.member_ids(group.id)
        assert students[2].supervisor_id is None
        assert students[0].supervisor_id == faculty.id

    @pytest.mark.asyncio
    async def test_group_keeps_minimum_size(self, db_session, make_user, admin, form_group):
        students = [await make_user(UserRole.STUDENT) for _ in range(2)]
        group = await form_group(students)

        with pytest.raises(InvalidState):
            await GroupService(db_session).remove_member(admin, group.id, students[0].id)

    @pytest.mark.asyncio
    async def test_admin_only(self, db_session, make_user, form_group):
        students = [await make_user(UserRole.STUDENT) for _ in range(3)]
        group = await form_group(students)

        with pytest.raises(NotAuthorized):
            await GroupService(db_session).remove_member(students[0], group.id, students[1].id)

    @pytest.mark.asyncio
    async def test_not_a_member(self, db_session, make_user, admin, form_group):
        students = [await make_user(UserRole.STUDENT) for _ in range(3)]
        group = await form_group(students[:2])

        with pytest.raises(NotFound):
            await GroupService(db_session).remove_member(admin, group.id, students[2].id)

    @pytest.mark.asyncio
    async def test_last_member_deletes_group_and_frees_seat(self, db_session, admin, student, faculty):
        group = Group(name="Solo", supervisor_id=faculty.id)
        db_session.add(group)
        await db_session.flush()
        db_session.add(GroupMember(group_id=group.id, student_id=student.id))
        db_session.add(Supervisee(faculty_id=faculty.id, owner_kind="group", group_id=group.id))
        student.supervisor_id = faculty.id
        await db_session.flush()
        service = GroupService(db_session)

        result = await service.remove_member(admin, group.id, student.id)

        assert result is None
        assert await service.directory.get_group(group.id) is None
        seats = await db_session.execute(select(Supervisee).where(Supervisee.faculty_id == faculty.id))
        assert seats.scalars().all() == []
        assert student.supervisor_id is None


class TestDetails:
    @pytest.mark.asyncio
    async def test_details_for_member(self, db_session, make_user, faculty, form_group, supervise):
        students = [await make_user(UserRole.STUDENT) for _ in range(2)]
        group = await form_group(students)
        await supervise(students[0], faculty)

        details = await GroupService(db_session).details_for(students[1])

        assert details.group.id == group.id
        assert {m.id for m in details.members} == {s.id for s in students}
        assert details.supervisor.id == faculty.id

    @pytest.mark.asyncio
    async def test_no_group(self, db_session, student):
        with pytest.raises(NotFound):
            await GroupService(db_session).details_for(student)

    @pytest.mark.asyncio
    async def test_outsiders_cannot_view(self, db_session, make_user, admin, faculty, form_group):
        students = [await make_user(UserRole.STUDENT) for _ in range(3)]
        group = await form_group(students[:2])
        service = GroupService(db_session)

        with pytest.raises(NotAuthorized):
            await service.details_by_id(students[2], group.id)
        with pytest.raises(NotAuthorized):
            await service.details_by_id(faculty, group.id)
        assert (await service.details_by_id(admin, group.id)).group.id == group.id
