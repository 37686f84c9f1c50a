"""
Common schema types used across the API.
"""

import uuid
from typing import Any, Optional

from pydantic import BaseModel

from thesis_portal.kernel.ownership import OwnerKind, OwnerRef, make_owner


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: Optional[str] = None
    reason: Optional[str] = None
    request_id: Optional[str] = None


class SuccessResponse(BaseModel):
    """Standard success response."""

    message: str
    data: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"


class OwnerRefSchema(BaseModel):
    """A student or a group, addressed by kind and id."""

    kind: OwnerKind
    id: uuid.UUID

    def to_owner(self) -> OwnerRef:
        if self.kind == OwnerKind.GROUP:
            return make_owner(self.kind, group_id=self.id)
        return make_owner(self.kind, student_id=self.id)

    @classmethod
    def from_owner(cls, owner: OwnerRef) -> "OwnerRefSchema":
        return cls(kind=owner.kind, id=owner.id)
