"""Thesis registration endpoints."""

from fastapi import APIRouter, Request, status

from thesis_portal.api.deps import CurrentUser, DbSession, FacultyUser, StudentUser, get_client_ip
from thesis_portal.kernel.ownership import owner_columns
from thesis_portal.orchestration.registration import RegistrationService
from thesis_portal.schemas.registration import (
    RegistrationResponse,
    RegistrationReview,
    RegistrationSubmit,
)

router = APIRouter()


@router.post("", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def submit_registration(
    data: RegistrationSubmit,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Submit a thesis topic to the supervisor (for the caller's group if they have one)."""
    service = RegistrationService(db)
    return await service.submit(user, data.title, data.description, ip_address=get_client_ip(request))


@router.post("/review", response_model=RegistrationResponse)
async def review_registration(
    data: RegistrationReview,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Approve or reject the registration governing a supervised student."""
    service = RegistrationService(db)
    return await service.review(
        user,
        data.student_id,
        data.approve,
        comments=data.comments,
        ip_address=get_client_ip(request),
    )


@router.get("/pending", response_model=list[RegistrationResponse])
async def pending_registrations(user: FacultyUser, db: DbSession):
    return await RegistrationService(db).pending_for(user)


@router.get("/me", response_model=RegistrationResponse)
async def my_registration(user: StudentUser, db: DbSession):
    """The caller's registration, or their group's."""
    view = await RegistrationService(db).view_for(user)
    if view.registration is not None:
        return view.registration
    return RegistrationResponse(status=view.status, **owner_columns(view.owner))
