import pytest

from contractgen.approval_policy import (
    calculate_review_priority,
    check_transition,
    evaluate_approval,
    review_flag_required,
    status_for_action,
)
from contractgen.error_handling import InvalidTransitionError


@pytest.mark.parametrize(
    "confidence, risk, expedited, auto_approved",
    [
        (90, 50, False, True),
        (89, 50, False, False),
        (90, 51, False, False),
        (95, 30, True, False),
        (100, 0, False, True),
    ],
)
def test_auto_approval_boundaries(confidence, risk, expedited, auto_approved):
    decision = evaluate_approval(confidence, risk, expedited)
    assert decision.auto_approved is auto_approved
    assert decision.requires_manual_review is (not auto_approved)
    assert decision.status == ("approved" if auto_approved else "pending_review")


def test_expedited_is_never_auto_approved():
    decision = evaluate_approval(100, 0, expedited=True)
    assert not decision.auto_approved
    assert decision.status == "pending_review"
    assert "Expedited requests are never auto-approved" in decision.reasons


def test_manual_review_request_wins_over_auto_approval():
    decision = evaluate_approval(95, 20, manual_review_requested=True)
    assert decision.auto_approved is True
    assert decision.requires_manual_review is True
    assert decision.status == "pending_review"


def test_fallback_confidence_with_high_risk_requires_review():
    decision = evaluate_approval(75, 75)
    assert decision.status == "pending_review"
    assert len(decision.reasons) == 3


@pytest.mark.parametrize(
    "confidence, risk, flagged",
    [(95, 70, False), (95, 71, True), (84, 10, True), (85, 10, False)],
)
def test_review_flag(confidence, risk, flagged):
    assert review_flag_required(confidence, risk) is flagged


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"risk_score": 75, "confidence_score": 95}, "high"),
        ({"risk_score": 20, "confidence_score": 95, "expedited": True}, "high"),
        ({"risk_score": 20, "confidence_score": 95, "urgency_reason": "Emergency relocation"}, "high"),
        ({"risk_score": 20, "confidence_score": 95, "price_range": "2.5M EGP"}, "high"),
        ({"risk_score": 45, "confidence_score": 95}, "medium"),
        ({"risk_score": 20, "confidence_score": 80}, "medium"),
        ({"risk_score": 20, "confidence_score": 95, "price_range": "900,000 EGP"}, "low"),
    ],
)
def test_review_priority(kwargs, expected):
    assert calculate_review_priority(**kwargs) == expected


def test_review_actions_map_to_statuses():
    assert status_for_action("approve") == "approved"
    assert status_for_action("reject") == "rejected"
    assert status_for_action("request_changes") == "pending_review"
    with pytest.raises(InvalidTransitionError):
        status_for_action("escalate")


@pytest.mark.parametrize(
    "current, target",
    [
        ("generated", "approved"),
        ("generated", "pending_review"),
        ("pending_review", "approved"),
        ("pending_review", "rejected"),
        ("pending_review", "pending_review"),
    ],
)
def test_allowed_transitions(current, target):
    check_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        ("approved", "rejected"),
        ("approved", "pending_review"),
        ("rejected", "approved"),
        ("generated", "rejected"),
        ("archived", "approved"),
    ],
)
def test_disallowed_transitions(current, target):
    with pytest.raises(InvalidTransitionError):
        check_transition(current, target)
