"""Approval policy for generated contracts.

Auto-approval:
    auto_approved = confidence >= 90 AND risk <= 50 AND NOT expedited
    requires_manual_review = manual review requested OR NOT auto_approved OR risk > 70

Expedited requests are never auto-approved, whatever the scores. A
contract that requires manual review is stored as ``pending_review``
even when the scores alone would have approved it.

Also defines the review-queue priority and the allowed status transitions.
"""

from typing import Dict, FrozenSet, Optional

from contractgen.error_handling import InvalidTransitionError
from contractgen.models import ApprovalDecision, ContractStatus, ReviewAction, ReviewPriority
from tools.price_parser import has_million_marker

AUTO_APPROVE_MIN_CONFIDENCE = 90
AUTO_APPROVE_MAX_RISK = 50
MANUAL_REVIEW_RISK_THRESHOLD = 70
REVIEW_FLAG_MIN_CONFIDENCE = 85

HIGH_PRIORITY_RISK = 70
MEDIUM_PRIORITY_RISK = 40

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "generated": frozenset({"approved", "pending_review"}),
    "pending_review": frozenset({"approved", "rejected", "pending_review"}),
    "approved": frozenset(),
    "rejected": frozenset(),
}

ACTION_STATUS: Dict[str, ContractStatus] = {
    "approve": "approved",
    "reject": "rejected",
    "request_changes": "pending_review",
}


def should_auto_approve(confidence_score: float, risk_score: int, expedited: bool) -> bool:
    return (
        confidence_score >= AUTO_APPROVE_MIN_CONFIDENCE
        and risk_score <= AUTO_APPROVE_MAX_RISK
        and not expedited
    )


def requires_manual_review(manual_review_requested: bool, auto_approved: bool, risk_score: int) -> bool:
    return manual_review_requested or not auto_approved or risk_score > MANUAL_REVIEW_RISK_THRESHOLD


def evaluate_approval(
    confidence_score: float,
    risk_score: int,
    expedited: bool = False,
    manual_review_requested: bool = False
) -> ApprovalDecision:
    """Apply the approval policy and explain the outcome."""
    auto_approved = should_auto_approve(confidence_score, risk_score, expedited)
    manual = requires_manual_review(manual_review_requested, auto_approved, risk_score)

    reasons = []
    if expedited:
        reasons.append("Expedited requests are never auto-approved")
    if confidence_score < AUTO_APPROVE_MIN_CONFIDENCE:
        reasons.append(f"AI confidence {confidence_score} below {AUTO_APPROVE_MIN_CONFIDENCE}")
    if risk_score > AUTO_APPROVE_MAX_RISK:
        reasons.append(f"Legal risk score {risk_score} above {AUTO_APPROVE_MAX_RISK}")
    if risk_score > MANUAL_REVIEW_RISK_THRESHOLD:
        reasons.append(f"Legal risk score {risk_score} above manual review threshold {MANUAL_REVIEW_RISK_THRESHOLD}")
    if manual_review_requested:
        reasons.append("Manual review requested")

    status: ContractStatus = "pending_review" if manual else "approved"
    return ApprovalDecision(
        auto_approved=auto_approved,
        requires_manual_review=manual,
        status=status,
        reasons=reasons,
    )


def review_flag_required(confidence_score: float, risk_score: int) -> bool:
    """Whether the stored review row is flagged for a specialist."""
    return risk_score > MANUAL_REVIEW_RISK_THRESHOLD or confidence_score < REVIEW_FLAG_MIN_CONFIDENCE


def calculate_review_priority(
    risk_score: int,
    confidence_score: float,
    expedited: bool = False,
    urgency_reason: Optional[str] = None,
    price_range: Optional[str] = None
) -> ReviewPriority:
    """Queue priority for a contract awaiting review."""
    if (
        risk_score >= HIGH_PRIORITY_RISK
        or expedited
        or "emergency" in (urgency_reason or "").lower()
        or has_million_marker(price_range)
    ):
        return "high"
    if risk_score >= MEDIUM_PRIORITY_RISK or confidence_score < REVIEW_FLAG_MIN_CONFIDENCE:
        return "medium"
    return "low"


def status_for_action(action: ReviewAction) -> ContractStatus:
    try:
        return ACTION_STATUS[action]
    except KeyError:
        raise InvalidTransitionError(f"Unknown review action: {action}") from None


def check_transition(current: str, target: str) -> None:
    """Raise unless ``current -> target`` is an allowed status change.

    Raises:
        InvalidTransitionError: For a disallowed or unknown transition
    """
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(f"Cannot move contract from '{current}' to '{target}'")
