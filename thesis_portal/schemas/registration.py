"""Thesis registration schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from thesis_portal.kernel.models.registration import RegistrationStatus
from thesis_portal.kernel.ownership import OwnerKind


class RegistrationSubmit(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)


class RegistrationReview(BaseModel):
    student_id: uuid.UUID
    approve: bool
    comments: Optional[str] = None


class RegistrationResponse(BaseModel):
    id: Optional[uuid.UUID] = None
    owner_kind: OwnerKind
    student_id: Optional[uuid.UUID] = None
    group_id: Optional[uuid.UUID] = None
    status: RegistrationStatus
    title: Optional[str] = None
    description: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[uuid.UUID] = None
    comments: Optional[str] = None

    class Config:
        from_attributes = True
