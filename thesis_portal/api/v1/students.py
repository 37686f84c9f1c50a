"""Per-student views."""

import uuid

from fastapi import APIRouter

from thesis_portal.api.deps import AdminUser, CurrentUser, DbSession
from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import NotAuthorized
from thesis_portal.kernel.models.user import UserRole
from thesis_portal.kernel.registry import SubmissionRegistry
from thesis_portal.orchestration.state_machine import SubmissionStateMachine
from thesis_portal.schemas.submission import PhaseProgressResponse, ProgressSyncResponse

router = APIRouter()


@router.post("/progress/sync", response_model=ProgressSyncResponse)
async def sync_progress(user: AdminUser, db: DbSession):
    """Rebuild every student's phase progress from approved submissions."""
    outcome = await SubmissionStateMachine(db).sync_progress(user)
    return ProgressSyncResponse(**vars(outcome))


@router.get("/{student_id}/progress", response_model=list[PhaseProgressResponse])
async def phase_progress(student_id: uuid.UUID, user: CurrentUser, db: DbSession):
    """Approved phases as seen by one student, including approvals earned by their group."""
    directory = Directory(db)
    student = await directory.require_user(student_id, UserRole.STUDENT, label="Student")
    if user.role != UserRole.ADMIN and user.id not in (student.id, student.supervisor_id):
        raise NotAuthorized("You cannot view this student's progress")
    return await SubmissionRegistry(db, directory).progress_for_student(student.id)
