"""Submission eligibility rules."""

from thesis_portal.engines.eligibility.eligibility_checker import (
    Allowed,
    Decision,
    Denied,
    DenialReason,
    EligibilitySnapshot,
    SubmissionSnapshot,
    check_eligibility,
    denial_message,
)

__all__ = [
    "Allowed",
    "Decision",
    "Denied",
    "DenialReason",
    "EligibilitySnapshot",
    "SubmissionSnapshot",
    "check_eligibility",
    "denial_message",
]
