"""Supervisor request endpoints."""

from fastapi import APIRouter, Request, status

from thesis_portal.api.deps import CurrentUser, DbSession, FacultyUser, get_client_ip
from thesis_portal.kernel.errors import InvalidState
from thesis_portal.kernel.models.user import UserRole
from thesis_portal.orchestration.supervision import SupervisionService
from thesis_portal.schemas.common import SuccessResponse
from thesis_portal.schemas.supervision import (
    SupervisionRelease,
    SupervisorRequestCreate,
    SupervisorRequestRespond,
    SupervisorRequestResponse,
)

router = APIRouter()


@router.post("/requests", response_model=SupervisorRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_supervisor(
    data: SupervisorRequestCreate,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Ask a faculty member to supervise the caller (or the caller's group)."""
    service = SupervisionService(db)
    return await service.request(user, data.faculty_id, ip_address=get_client_ip(request))


@router.post("/requests/respond", response_model=SupervisorRequestResponse)
async def respond_supervisor_request(
    data: SupervisorRequestRespond,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Accept (taking a seat) or reject a pending request."""
    service = SupervisionService(db)
    return await service.respond(user, data.owner.to_owner(), data.accept, ip_address=get_client_ip(request))


@router.get("/requests/pending", response_model=list[SupervisorRequestResponse])
async def pending_supervisor_requests(user: FacultyUser, db: DbSession):
    return await SupervisionService(db).pending_for(user)


@router.post("/release", response_model=SuccessResponse)
async def release_supervision(data: SupervisionRelease, user: CurrentUser, db: DbSession):
    """Drop a supervisee and free the seat."""
    faculty_id = data.faculty_id
    if faculty_id is None:
        if user.role != UserRole.FACULTY:
            raise InvalidState("faculty_id is required")
        faculty_id = user.id
    cleared = await SupervisionService(db).release(user, faculty_id, data.owner.to_owner())
    return SuccessResponse(
        message="Supervision released",
        data={"student_ids": [str(student_id) for student_id in cleared]},
    )
