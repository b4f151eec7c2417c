"""Status enums and the quote request state machine."""

from enum import Enum
from typing import Mapping

from quote_engine.errors import BusinessRuleError


class QuoteRequestStatus(str, Enum):
    """Lifecycle states of a quote request."""

    PENDING = "pending"
    CONTRACTORS_SELECTED = "contractors_selected"
    QUOTES_RECEIVED = "quotes_received"
    IN_PROGRESS = "in_progress"
    QUOTE_SELECTED = "quote_selected"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AssignmentStatus(str, Enum):
    """Contractor response state for an assignment."""

    ASSIGNED = "assigned"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class AssignmentResponse(str, Enum):
    """Responses a contractor may give to an assignment."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


class AdminStatus(str, Enum):
    """Admin review state of a contractor quote."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewDecision(str, Enum):
    """Decisions an admin may take on a pending quote."""

    APPROVED = "approved"
    REJECTED = "rejected"


S = QuoteRequestStatus

# Terminal states never leave; quote_selected may still accrue penalties.
TERMINAL_STATUSES = frozenset({S.QUOTE_SELECTED, S.CANCELLED})

# Request states in which contractors may still submit bids
BIDDING_STATUSES = frozenset({S.PENDING, S.CONTRACTORS_SELECTED, S.QUOTES_RECEIVED})

# States that move to quotes_received when the first bid lands
PRE_BID_STATUSES = frozenset({S.PENDING, S.CONTRACTORS_SELECTED})

# States whose status is derived from the assignment tally
ASSIGNMENT_DRIVEN_STATUSES = frozenset(
    {S.PENDING, S.CONTRACTORS_SELECTED, S.IN_PROGRESS, S.REJECTED}
)

ALLOWED_TRANSITIONS: Mapping[QuoteRequestStatus, frozenset] = {
    S.PENDING: frozenset(
        {S.CONTRACTORS_SELECTED, S.IN_PROGRESS, S.QUOTES_RECEIVED, S.QUOTE_SELECTED, S.CANCELLED}
    ),
    S.CONTRACTORS_SELECTED: frozenset(
        {S.CONTRACTORS_SELECTED, S.IN_PROGRESS, S.QUOTES_RECEIVED, S.REJECTED,
         S.QUOTE_SELECTED, S.CANCELLED}
    ),
    S.IN_PROGRESS: frozenset({S.IN_PROGRESS, S.REJECTED, S.QUOTE_SELECTED, S.CANCELLED}),
    S.QUOTES_RECEIVED: frozenset({S.IN_PROGRESS, S.QUOTE_SELECTED, S.CANCELLED}),
    S.REJECTED: frozenset({S.IN_PROGRESS, S.QUOTE_SELECTED, S.CANCELLED}),
    S.QUOTE_SELECTED: frozenset(),
    S.CANCELLED: frozenset(),
}


def can_transition(current: QuoteRequestStatus, target: QuoteRequestStatus) -> bool:
    """Return True if the request may move from current to target."""
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: QuoteRequestStatus, target: QuoteRequestStatus) -> None:
    """
    Validate a status transition.

    Raises:
        BusinessRuleError: QUOTE_ALREADY_SELECTED when the request already has
            a selected quote, INVALID_STATUS_TRANSITION for any other illegal move
    """
    if can_transition(current, target):
        return
    if current == S.QUOTE_SELECTED:
        raise BusinessRuleError(
            "A quote has already been selected for this request",
            "QUOTE_ALREADY_SELECTED",
            {"current_status": current.value, "target_status": target.value},
        )
    raise BusinessRuleError(
        f"Cannot move quote request from {current.value} to {target.value}",
        "INVALID_STATUS_TRANSITION",
        {"current_status": current.value, "target_status": target.value},
    )


def status_from_assignments(
    current: QuoteRequestStatus,
    counts: Mapping[AssignmentStatus, int],
) -> QuoteRequestStatus:
    """
    Derive the request status from the full tally of assignment statuses.

    At least one acceptance puts the request in progress. When every invited
    contractor has rejected (none accepted, assigned or viewed) the request is
    rejected. Otherwise the current status stands.

    Args:
        current: Current request status
        counts: Number of assignments per status for the request

    Returns:
        The status the request should hold
    """
    if current not in ASSIGNMENT_DRIVEN_STATUSES:
        return current

    accepted = counts.get(AssignmentStatus.ACCEPTED, 0)
    rejected = counts.get(AssignmentStatus.REJECTED, 0)
    open_count = counts.get(AssignmentStatus.ASSIGNED, 0) + counts.get(AssignmentStatus.VIEWED, 0)

    if accepted > 0:
        target = S.IN_PROGRESS
    elif rejected > 0 and open_count == 0:
        target = S.REJECTED
    else:
        return current

    if target == current or not can_transition(current, target):
        return current
    return target
