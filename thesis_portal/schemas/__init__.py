"""Pydantic request and response schemas."""

from thesis_portal.schemas.common import ErrorResponse, HealthResponse, OwnerRefSchema, SuccessResponse

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "OwnerRefSchema",
    "SuccessResponse",
]
