"""Supervisor request and seat schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from thesis_portal.kernel.models.supervision import SupervisorRequestStatus
from thesis_portal.kernel.models.user import SeatRequestStatus
from thesis_portal.kernel.ownership import OwnerKind
from thesis_portal.schemas.common import OwnerRefSchema


class SupervisorRequestCreate(BaseModel):
    faculty_id: uuid.UUID


class SupervisorRequestRespond(BaseModel):
    owner: OwnerRefSchema
    accept: bool


class SupervisionRelease(BaseModel):
    owner: OwnerRefSchema
    # Admins name the faculty; a supervisor releasing their own supervisee may omit it
    faculty_id: Optional[uuid.UUID] = None


class SupervisorRequestResponse(BaseModel):
    id: uuid.UUID
    faculty_id: uuid.UUID
    owner_kind: OwnerKind
    student_id: Optional[uuid.UUID] = None
    group_id: Optional[uuid.UUID] = None
    requested_by: Optional[uuid.UUID] = None
    status: SupervisorRequestStatus
    requested_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SeatInfoResponse(BaseModel):
    faculty_id: uuid.UUID
    capacity: int
    used: int
    available: int
    individual_count: int
    group_count: int
    has_pending_request: bool = False


class SeatCapacityUpdate(BaseModel):
    seat_capacity: int = Field(..., ge=0)


class SeatIncreaseCreate(BaseModel):
    requested_seats: int = Field(..., ge=1)
    reason: str = Field(..., min_length=1)


class SeatIncreaseReview(BaseModel):
    request_id: uuid.UUID
    approve: bool
    comments: Optional[str] = None


class SeatIncreaseResponse(BaseModel):
    id: uuid.UUID
    faculty_id: uuid.UUID
    requested_seats: int
    reason: str
    status: SeatRequestStatus
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[uuid.UUID] = None
    comments: Optional[str] = None

    class Config:
        from_attributes = True


class SuperviseeResponse(BaseModel):
    id: uuid.UUID
    owner: OwnerRefSchema
    label: str
    accepted_at: datetime
