"""Group formation endpoints."""

import uuid

from fastapi import APIRouter, status

from thesis_portal.api.deps import CurrentUser, DbSession, StudentUser
from thesis_portal.orchestration.groups import GroupDetails, GroupService
from thesis_portal.schemas.common import SuccessResponse
from thesis_portal.schemas.group import (
    GroupMemberRemove,
    GroupRequestAnswer,
    GroupRequestCreate,
    GroupRequestResponse,
    GroupResponse,
    UserSummary,
)

router = APIRouter()


def _group_response(details: GroupDetails) -> GroupResponse:
    group = details.group
    return GroupResponse(
        id=group.id,
        name=group.name,
        status=group.status,
        supervisor_id=group.supervisor_id,
        supervisor=UserSummary.model_validate(details.supervisor) if details.supervisor else None,
        members=[UserSummary.model_validate(member) for member in details.members],
    )


@router.post("/requests", response_model=GroupRequestResponse, status_code=status.HTTP_201_CREATED)
async def send_group_request(data: GroupRequestCreate, user: CurrentUser, db: DbSession):
    return await GroupService(db).send_request(user, data.target_student_id)


@router.get("/requests", response_model=list[GroupRequestResponse])
async def incoming_group_requests(user: StudentUser, db: DbSession):
    return await GroupService(db).pending_requests(user)


@router.post("/requests/accept", response_model=GroupResponse)
async def accept_group_request(data: GroupRequestAnswer, user: StudentUser, db: DbSession):
    service = GroupService(db)
    group = await service.accept_request(user, data.from_student_id)
    return _group_response(await service.details(group))


@router.post("/requests/reject", response_model=GroupRequestResponse)
async def reject_group_request(data: GroupRequestAnswer, user: StudentUser, db: DbSession):
    return await GroupService(db).reject_request(user, data.from_student_id)


@router.get("/mine", response_model=GroupResponse)
async def my_group(user: StudentUser, db: DbSession):
    return _group_response(await GroupService(db).details_for(user))


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(group_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return _group_response(await GroupService(db).details_by_id(user, group_id))


@router.post("/{group_id}/remove-member", response_model=SuccessResponse)
async def remove_group_member(
    group_id: uuid.UUID,
    data: GroupMemberRemove,
    user: CurrentUser,
    db: DbSession,
):
    """Remove a student from a group (admin only). Emptied groups are deleted."""
    group = await GroupService(db).remove_member(user, group_id, data.student_id)
    message = "Member removed from group" if group is not None else "Member removed; empty group deleted"
    return SuccessResponse(message=message)
