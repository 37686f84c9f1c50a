"""Group schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from thesis_portal.kernel.models.group import GroupRequestStatus, GroupStatus


class GroupRequestCreate(BaseModel):
    target_student_id: uuid.UUID


class GroupRequestAnswer(BaseModel):
    from_student_id: uuid.UUID


class GroupMemberRemove(BaseModel):
    student_id: uuid.UUID


class GroupRequestResponse(BaseModel):
    id: uuid.UUID
    from_student_id: uuid.UUID
    to_student_id: uuid.UUID
    status: GroupRequestStatus
    requested_at: datetime

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: uuid.UUID
    full_name: str
    email: str
    department: Optional[str] = None
    student_number: Optional[str] = None

    class Config:
        from_attributes = True


class GroupResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: GroupStatus
    supervisor_id: Optional[uuid.UUID] = None
    supervisor: Optional[UserSummary] = None
    members: List[UserSummary] = []
