"""
Domain error taxonomy.

Services raise these; the API layer maps them to HTTP responses. Every error
carries a human-readable message that is shown to the caller unchanged.
"""

from typing import Optional


class PortalError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    code: str = "portal_error"
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class IneligibleSubmission(PortalError):
    """Eligibility checker denied a submission."""

    status_code = 400
    code = "ineligible_submission"

    def __init__(self, reason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or str(getattr(reason, "value", reason)))


class NotAuthorized(PortalError):
    status_code = 403
    code = "not_authorized"
    default_message = "You are not authorized to perform this action"


class AlreadyReviewed(PortalError):
    status_code = 409
    code = "already_reviewed"
    default_message = "This submission has already been reviewed"


class InvalidState(PortalError):
    status_code = 409
    code = "invalid_state"
    default_message = "Operation not allowed in the current state"


class ResubmissionNotAllowed(PortalError):
    status_code = 400
    code = "resubmission_not_allowed"
    default_message = "Resubmission not allowed for this thesis"


class CapacityExceeded(PortalError):
    """Faculty has no free supervision seat."""

    status_code = 409
    code = "capacity_exceeded"

    def __init__(self, capacity: int, used: int, message: Optional[str] = None):
        self.capacity = capacity
        self.used = used
        super().__init__(
            message
            or f"No seats available. Faculty has reached maximum capacity ({used}/{capacity})."
        )


class NotFound(PortalError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InvalidInput(PortalError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid input"
