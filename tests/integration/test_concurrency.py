"""
Racing writers on SQLite.

Each test commits its setup, then drives two sessions: the first holds the
write lock while the second queues behind it and, once the first commits,
sees the committed state and fails with the domain error.
"""

import asyncio

import pytest

from thesis_portal.database import async_session_maker
from thesis_portal.engines.eligibility import DenialReason
from thesis_portal.engines.seats import SeatAllocator
from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import CapacityExceeded, IneligibleSubmission
from thesis_portal.kernel.models import UserRole
from thesis_portal.kernel.models.submission import Phase
from thesis_portal.kernel.ownership import IndividualRef
from thesis_portal.orchestration.state_machine import SubmissionStateMachine


@pytest.mark.asyncio
async def test_last_seat_goes_to_one_of_two_racing_accepts(db_session, make_user):
    faculty = await make_user(UserRole.FACULTY, seat_capacity=1)
    first_student = await make_user(UserRole.STUDENT)
    second_student = await make_user(UserRole.STUDENT)
    await db_session.commit()

    async with async_session_maker() as first, async_session_maker() as second:
        await SeatAllocator(first).accept_supervision(faculty.id, IndividualRef(first_student.id))
        contender = asyncio.create_task(
            SeatAllocator(second).accept_supervision(faculty.id, IndividualRef(second_student.id))
        )
        await asyncio.sleep(0.2)
        await first.commit()

        with pytest.raises(CapacityExceeded):
            await contender
        await second.rollback()

        assert await SeatAllocator(second).used_seats(faculty.id) == 1
        await second.rollback()


@pytest.mark.asyncio
async def test_racing_group_members_submit_one_phase_once(
    db_session, make_user, faculty, content, form_group, onboard
):
    students = [await make_user(UserRole.STUDENT) for _ in range(2)]
    await form_group(students)
    await onboard(students[0], faculty)
    await db_session.commit()

    async with async_session_maker() as first, async_session_maker() as second:
        author = await Directory(first).get_user(students[0].id)
        await SubmissionStateMachine(first).create(author, Phase.P1, content())

        async def _submit_as_other_member():
            member = await Directory(second).get_user(students[1].id)
            return await SubmissionStateMachine(second).create(member, Phase.P1, content())

        contender = asyncio.create_task(_submit_as_other_member())
        await asyncio.sleep(0.2)
        await first.commit()

        with pytest.raises(IneligibleSubmission) as exc:
            await contender
        assert exc.value.reason == DenialReason.ALREADY_SUBMITTED
        await second.rollback()
