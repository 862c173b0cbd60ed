"""
Scheme State Machine

Status transitions driven by the review actions (verify, reject).

Two modes:
- permissive (default): verify and reject may fire from any status,
  so a verified scheme can still be rejected and vice versa.
- strict (SCHEME_STRICT_TRANSITIONS=true): verify and reject only fire
  from Pending Verification.

Active and Completed are reserved statuses. No review action leads to
them; they are only reachable through a direct status edit.
"""

from typing import Dict, List, Optional

from schemehub.config import settings
from schemehub.core.exceptions import ValidationError
from schemehub.models.scheme import SchemeStatus, HistoryAction


# Strict transition table: current status -> statuses a review may move it to
SCHEME_TRANSITIONS: Dict[str, List[str]] = {
    SchemeStatus.PENDING_VERIFICATION.value: [
        SchemeStatus.VERIFIED.value,
        SchemeStatus.REJECTED.value,
    ],
    SchemeStatus.VERIFIED.value: [],
    SchemeStatus.REJECTED.value: [],
    SchemeStatus.ACTIVE.value: [],
    SchemeStatus.COMPLETED.value: [],
}

# History action recorded for each review target status
REVIEW_ACTIONS: Dict[str, HistoryAction] = {
    SchemeStatus.VERIFIED.value: HistoryAction.VERIFIED,
    SchemeStatus.REJECTED.value: HistoryAction.REJECTED,
}


def can_transition(current_status: str, new_status: str, strict: Optional[bool] = None) -> bool:
    """Check if a review may move a scheme from current_status to new_status."""
    if strict is None:
        strict = settings.SCHEME_STRICT_TRANSITIONS
    if new_status not in REVIEW_ACTIONS:
        return False
    if not strict:
        return True
    return new_status in SCHEME_TRANSITIONS.get(current_status, [])


def validate_transition(current_status: str, new_status: str, strict: Optional[bool] = None) -> None:
    """
    Validate a review transition.

    Raises:
        ValidationError: if the transition is not allowed
    """
    if not can_transition(current_status, new_status, strict):
        raise ValidationError(
            f"Cannot change scheme from '{current_status}' to '{new_status}'. "
            f"Only schemes in '{SchemeStatus.PENDING_VERIFICATION.value}' can be reviewed."
        )


def history_action_for(new_status: str) -> HistoryAction:
    return REVIEW_ACTIONS[new_status]
