"""Thesis submission endpoints."""

import uuid

from fastapi import APIRouter, Request, status

from thesis_portal.api.deps import CurrentUser, DbSession, FacultyUser, StudentUser, get_client_ip
from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import NotFound
from thesis_portal.kernel.ownership import OwnerKind, make_owner
from thesis_portal.kernel.registry import SubmissionRegistry
from thesis_portal.orchestration.state_machine import SubmissionStateMachine
from thesis_portal.schemas.common import SuccessResponse
from thesis_portal.schemas.submission import (
    CommentCreate,
    CommentResponse,
    SubmissionContentIn,
    SubmissionCreate,
    SubmissionResponse,
    SubmissionReview,
)

router = APIRouter()


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    data: SubmissionCreate,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Submit a thesis phase. Group members submit on behalf of their group."""
    content = SubmissionContentIn(**data.model_dump(exclude={"submission_type"})).to_content()
    machine = SubmissionStateMachine(db)
    return await machine.create(user, data.submission_type, content, ip_address=get_client_ip(request))


@router.get("/mine", response_model=list[SubmissionResponse])
async def my_submissions(user: StudentUser, db: DbSession):
    """Every submission of the caller's owner (their group's, if grouped)."""
    directory = Directory(db)
    owner = await directory.resolve_owner(user)
    return await SubmissionRegistry(db, directory).for_owner(owner)


@router.get("/pending-review", response_model=list[SubmissionResponse])
async def pending_review(user: FacultyUser, db: DbSession):
    return await SubmissionRegistry(db).pending_for_supervisor(user.id)


@router.get("/supervisee/{kind}/{owner_id}", response_model=list[SubmissionResponse])
async def supervisee_submissions(
    kind: OwnerKind,
    owner_id: uuid.UUID,
    user: FacultyUser,
    db: DbSession,
):
    """Submissions of one supervisee that the caller reviews."""
    owner = make_owner(kind, student_id=owner_id, group_id=owner_id)
    directory = Directory(db)
    if not await directory.owner_exists(owner):
        raise NotFound("Supervisee not found")
    return await SubmissionRegistry(db, directory).for_supervisee(user.id, owner)


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(submission_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return await SubmissionRegistry(db).require_visible(submission_id, user)


@router.post("/{submission_id}/review", response_model=SubmissionResponse)
async def review_submission(
    submission_id: uuid.UUID,
    data: SubmissionReview,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Approve or reject a pending submission (assigned supervisor only)."""
    machine = SubmissionStateMachine(db)
    return await machine.review(
        submission_id,
        user,
        data.status,
        allow_resubmission=data.allow_resubmission,
        ip_address=get_client_ip(request),
    )


@router.post("/{submission_id}/allow-resubmission", response_model=SubmissionResponse)
async def allow_resubmission(
    submission_id: uuid.UUID,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    machine = SubmissionStateMachine(db)
    return await machine.allow_resubmission(submission_id, user, ip_address=get_client_ip(request))


@router.post("/{submission_id}/resubmit", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def resubmit(
    submission_id: uuid.UUID,
    data: SubmissionContentIn,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Create a new submission superseding a rejected one."""
    machine = SubmissionStateMachine(db)
    return await machine.resubmit(submission_id, user, data.to_content(), ip_address=get_client_ip(request))


@router.get("/{submission_id}/comments", response_model=list[CommentResponse])
async def list_comments(submission_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return await SubmissionStateMachine(db).comments(submission_id, user)


@router.post("/{submission_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    submission_id: uuid.UUID,
    data: CommentCreate,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    """Comment on a submission. Visible to everyone who can see the submission."""
    machine = SubmissionStateMachine(db)
    return await machine.add_comment(submission_id, user, data.comment, ip_address=get_client_ip(request))


@router.delete("/{submission_id}", response_model=SuccessResponse)
async def delete_submission(
    submission_id: uuid.UUID,
    request: Request,
    user: CurrentUser,
    db: DbSession,
):
    machine = SubmissionStateMachine(db)
    await machine.delete(submission_id, user, ip_address=get_client_ip(request))
    return SuccessResponse(message="Submission deleted")
