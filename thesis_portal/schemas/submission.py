"""Thesis submission schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from thesis_portal.kernel.models.submission import Phase, Semester, SubmissionStatus
from thesis_portal.kernel.ownership import OwnerKind
from thesis_portal.orchestration.state_machine import SubmissionContent


class SubmissionContentIn(BaseModel):
    """File reference and metadata for a submission or resubmission."""

    title: str = Field(..., min_length=1, max_length=500)
    abstract: str = Field(..., min_length=1)
    keywords: List[str] = Field(default_factory=list)
    department: str = Field(..., min_length=1, max_length=255)
    year: int = Field(..., ge=1900, le=2100)
    semester: Semester
    file_url: str = Field(..., min_length=1, max_length=1000)
    file_name: str = Field(..., min_length=1, max_length=500)
    file_size: Optional[int] = Field(None, ge=0)

    def to_content(self) -> SubmissionContent:
        return SubmissionContent(**self.model_dump())


class SubmissionCreate(SubmissionContentIn):
    submission_type: Phase


class SubmissionReview(BaseModel):
    status: SubmissionStatus
    allow_resubmission: bool = False


class SubmissionResponse(BaseModel):
    id: uuid.UUID
    title: str
    abstract: str
    keywords: Optional[List[str]] = None
    department: str
    year: int
    semester: Semester
    file_url: str
    file_name: str
    file_size: Optional[int] = None
    author_id: uuid.UUID
    owner_kind: OwnerKind
    group_id: Optional[uuid.UUID] = None
    supervisor_id: uuid.UUID
    submission_type: Phase
    status: SubmissionStatus
    can_resubmit: bool
    is_group_submission: bool
    is_resubmission: bool
    original_submission_id: Optional[uuid.UUID] = None
    submitted_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class PhaseProgressResponse(BaseModel):
    submission_type: Phase
    status: SubmissionStatus
    submission_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    submitted_at: Optional[datetime] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    id: uuid.UUID
    submission_id: uuid.UUID
    author_id: uuid.UUID
    comment: str
    created_at: datetime

    class Config:
        from_attributes = True


class ProgressSyncResponse(BaseModel):
    submissions: int
    synced: int
    failed: int
