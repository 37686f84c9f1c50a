"""
Unit tests for the eligibility checker.

Pure decision logic, no database.
"""

import uuid

import pytest

from thesis_portal.engines.eligibility import (
    Allowed,
    Denied,
    DenialReason,
    EligibilitySnapshot,
    SubmissionSnapshot,
    check_eligibility,
)
from thesis_portal.kernel.models.submission import Phase, SubmissionStatus
from thesis_portal.kernel.ownership import GroupRef, IndividualRef

SUPERVISOR = uuid.uuid4()


def _sub(phase: Phase, status: SubmissionStatus) -> SubmissionSnapshot:
    return SubmissionSnapshot(id=uuid.uuid4(), phase=phase, status=status)


def _snapshot(*submissions, owner=None, supervisor_id=SUPERVISOR, registered=True):
    return EligibilitySnapshot(
        owner=owner or IndividualRef(uuid.uuid4()),
        supervisor_id=supervisor_id,
        registration_approved=registered,
        submissions=list(submissions),
    )


class TestDecisionOrder:
    def test_no_supervisor_checked_first(self):
        decision = check_eligibility(_snapshot(supervisor_id=None, registered=False), Phase.P2)
        assert isinstance(decision, Denied)
        assert decision.reason == DenialReason.NO_SUPERVISOR

    def test_registration_checked_before_phase_order(self):
        decision = check_eligibility(_snapshot(registered=False), Phase.P3)
        assert decision.reason == DenialReason.REGISTRATION_NOT_APPROVED

    def test_previous_phase_checked_before_duplicates(self):
        snapshot = _snapshot(_sub(Phase.P2, SubmissionStatus.PENDING))
        decision = check_eligibility(snapshot, Phase.P2)
        assert decision.reason == DenialReason.P1_NOT_APPROVED


class TestPhaseOrdering:
    def test_first_p1_allowed(self):
        decision = check_eligibility(_snapshot(), Phase.P1)
        assert isinstance(decision, Allowed)
        assert decision.allowed is True
        assert decision.supervisor_id == SUPERVISOR

    @pytest.mark.parametrize("status", [None, SubmissionStatus.PENDING, SubmissionStatus.REJECTED])
    def test_p2_requires_approved_p1(self, status):
        subs = [_sub(Phase.P1, status)] if status else []
        decision = check_eligibility(_snapshot(*subs), Phase.P2)
        assert decision.allowed is False
        assert decision.reason == DenialReason.P1_NOT_APPROVED
        assert decision.reason.value == "P1 not approved"

    def test_p3_requires_approved_p2(self):
        snapshot = _snapshot(_sub(Phase.P1, SubmissionStatus.APPROVED))
        decision = check_eligibility(snapshot, Phase.P3)
        assert decision.reason == DenialReason.P2_NOT_APPROVED

    def test_approval_anywhere_in_resubmission_chain_counts(self):
        snapshot = _snapshot(
            _sub(Phase.P1, SubmissionStatus.REJECTED),
            _sub(Phase.P1, SubmissionStatus.APPROVED),
        )
        assert check_eligibility(snapshot, Phase.P2).allowed is True

    def test_accepts_phase_as_string(self):
        snapshot = _snapshot(_sub(Phase.P1, SubmissionStatus.APPROVED))
        assert check_eligibility(snapshot, "P2").allowed is True


class TestAlreadySubmitted:
    @pytest.mark.parametrize("status", [SubmissionStatus.PENDING, SubmissionStatus.APPROVED])
    def test_second_p1_denied(self, status):
        decision = check_eligibility(_snapshot(_sub(Phase.P1, status)), Phase.P1)
        assert decision.reason == DenialReason.ALREADY_SUBMITTED
        assert decision.reason.value == "already submitted"

    def test_rejected_p1_does_not_block(self):
        decision = check_eligibility(_snapshot(_sub(Phase.P1, SubmissionStatus.REJECTED)), Phase.P1)
        assert decision.allowed is True


class TestMessages:
    def test_group_messages_mention_group(self):
        snapshot = _snapshot(owner=GroupRef(uuid.uuid4()), supervisor_id=None)
        decision = check_eligibility(snapshot, Phase.P1)
        assert decision.message.startswith("Your group")

    def test_each_reason_has_distinct_message(self):
        cases = [
            (_snapshot(supervisor_id=None), Phase.P1),
            (_snapshot(registered=False), Phase.P1),
            (_snapshot(_sub(Phase.P1, SubmissionStatus.PENDING)), Phase.P1),
            (_snapshot(), Phase.P2),
            (_snapshot(_sub(Phase.P1, SubmissionStatus.APPROVED)), Phase.P3),
        ]
        messages = {check_eligibility(snapshot, phase).message for snapshot, phase in cases}
        assert len(messages) == len(cases)
