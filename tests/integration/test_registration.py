"""Integration tests for thesis registration."""

import pytest

from thesis_portal.kernel.errors import InvalidState, NotAuthorized
from thesis_portal.kernel.models import UserRole
from thesis_portal.kernel.models.registration import RegistrationStatus, ThesisRegistration
from thesis_portal.kernel.ownership import GroupRef, IndividualRef, OwnerKind
from thesis_portal.orchestration.registration import RegistrationService


@pytest.mark.asyncio
async def test_requires_supervisor(db_session, student):
    with pytest.raises(InvalidState):
        await RegistrationService(db_session).submit(student, "Title", "Description")


@pytest.mark.asyncio
async def test_submit_and_approve(db_session, student, faculty, supervise):
    await supervise(student, faculty)
    service = RegistrationService(db_session)

    registration = await service.submit(student, "  Consensus  ", "Raft vs Paxos")
    assert registration.status == RegistrationStatus.PENDING
    assert registration.title == "Consensus"
    assert [r.id for r in await service.pending_for(faculty)] == [registration.id]

    reviewed = await service.review(faculty, student.id, approve=True, comments="Good topic")

    assert reviewed.status == RegistrationStatus.APPROVED
    assert reviewed.reviewed_by == faculty.id
    assert await service.pending_for(faculty) == []
    view = await service.view_for(student)
    assert view.status == RegistrationStatus.APPROVED
    assert view.owner == IndividualRef(student.id)
    assert view.is_group is False


@pytest.mark.asyncio
async def test_pending_blocks_resubmit(db_session, student, faculty, supervise):
    await supervise(student, faculty)
    service = RegistrationService(db_session)
    await service.submit(student, "Title", "Description")

    with pytest.raises(InvalidState):
        await service.submit(student, "Another", "Description")


@pytest.mark.asyncio
async def test_rejected_can_be_resubmitted(db_session, student, faculty, supervise):
    await supervise(student, faculty)
    service = RegistrationService(db_session)
    first = await service.submit(student, "Title", "Description")
    await service.review(faculty, student.id, approve=False, comments="Too broad")

    second = await service.submit(student, "Narrower title", "Description")

    assert second.id == first.id
    assert second.status == RegistrationStatus.PENDING
    assert second.comments is None
    assert second.reviewed_by is None


@pytest.mark.asyncio
async def test_only_supervisor_reviews(db_session, make_user, student, faculty, supervise):
    await supervise(student, faculty)
    other = await make_user(UserRole.FACULTY)
    service = RegistrationService(db_session)
    await service.submit(student, "Title", "Description")

    with pytest.raises(NotAuthorized):
        await service.review(other, student.id, approve=True)


@pytest.mark.asyncio
async def test_review_requires_pending(db_session, student, faculty, supervise):
    await supervise(student, faculty)
    with pytest.raises(InvalidState):
        await RegistrationService(db_session).review(faculty, student.id, approve=True)


@pytest.mark.asyncio
async def test_view_without_registration(db_session, student):
    view = await RegistrationService(db_session).view_for(student)
    assert view.status == RegistrationStatus.NOT_SUBMITTED
    assert view.registration is None


@pytest.mark.asyncio
async def test_group_registration_shared_by_members(db_session, make_user, faculty, form_group, supervise):
    members = [await make_user(UserRole.STUDENT) for _ in range(3)]
    group = await form_group(members)
    await supervise(members[0], faculty)
    service = RegistrationService(db_session)

    registration = await service.submit(members[2], "Group topic", "Description")
    assert registration.owner_kind == OwnerKind.GROUP
    assert registration.group_id == group.id

    await service.review(faculty, members[1].id, approve=True)

    for member in members:
        view = await service.view_for(member)
        assert view.owner == GroupRef(group.id)
        assert view.status == RegistrationStatus.APPROVED
        assert view.is_group is True


@pytest.mark.asyncio
async def test_member_registration_counts_for_group(db_session, make_user, faculty, form_group):
    members = [await make_user(UserRole.STUDENT) for _ in range(2)]
    group = await form_group(members)
    db_session.add(
        ThesisRegistration(
            owner_kind=OwnerKind.INDIVIDUAL,
            student_id=members[1].id,
            status=RegistrationStatus.APPROVED,
            title="Earlier topic",
        )
    )
    await db_session.flush()

    service = RegistrationService(db_session)
    assert await service.directory.registration_approved(GroupRef(group.id)) is True
    assert await service.directory.registration_approved(IndividualRef(members[0].id)) is False
