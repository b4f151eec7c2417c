"""Tests for the quote request state machine."""

import pytest

from quote_engine.errors import BusinessRuleError
from quote_engine.quotes.states import (
    BIDDING_STATUSES,
    PRE_BID_STATUSES,
    AssignmentStatus,
    QuoteRequestStatus as S,
    can_transition,
    ensure_transition,
    status_from_assignments,
)


@pytest.mark.parametrize("terminal", [S.QUOTE_SELECTED, S.CANCELLED])
def test_terminal_states_have_no_exits(terminal):
    for target in S:
        assert not can_transition(terminal, target)


def test_selection_allowed_from_bidding_states():
    for current in (S.PENDING, S.CONTRACTORS_SELECTED, S.IN_PROGRESS, S.QUOTES_RECEIVED, S.REJECTED):
        assert can_transition(current, S.QUOTE_SELECTED)


def test_already_selected_has_its_own_code():
    with pytest.raises(BusinessRuleError) as exc_info:
        ensure_transition(S.QUOTE_SELECTED, S.QUOTE_SELECTED)

    assert exc_info.value.code == "QUOTE_ALREADY_SELECTED"


def test_invalid_transition_code():
    with pytest.raises(BusinessRuleError) as exc_info:
        ensure_transition(S.CANCELLED, S.IN_PROGRESS)

    assert exc_info.value.code == "INVALID_STATUS_TRANSITION"


def test_acceptance_moves_request_in_progress():
    counts = {AssignmentStatus.ACCEPTED: 1, AssignmentStatus.ASSIGNED: 1}
    assert status_from_assignments(S.CONTRACTORS_SELECTED, counts) == S.IN_PROGRESS


def test_all_rejected_rejects_request():
    counts = {AssignmentStatus.REJECTED: 2}
    assert status_from_assignments(S.CONTRACTORS_SELECTED, counts) == S.REJECTED


def test_open_assignments_keep_current_status():
    counts = {AssignmentStatus.REJECTED: 1, AssignmentStatus.VIEWED: 1}
    assert status_from_assignments(S.CONTRACTORS_SELECTED, counts) == S.CONTRACTORS_SELECTED


def test_rejected_request_recovers_on_acceptance():
    counts = {AssignmentStatus.REJECTED: 1, AssignmentStatus.ACCEPTED: 1}
    assert status_from_assignments(S.REJECTED, counts) == S.IN_PROGRESS


@pytest.mark.parametrize("current", [S.QUOTES_RECEIVED, S.QUOTE_SELECTED, S.CANCELLED])
def test_later_states_are_not_recomputed(current):
    counts = {AssignmentStatus.REJECTED: 3}
    assert status_from_assignments(current, counts) == current


def test_only_pre_bid_states_move_to_quotes_received():
    assert can_transition(S.PENDING, S.QUOTES_RECEIVED)
    assert can_transition(S.CONTRACTORS_SELECTED, S.QUOTES_RECEIVED)
    assert not can_transition(S.IN_PROGRESS, S.QUOTES_RECEIVED)
    assert not can_transition(S.REJECTED, S.QUOTES_RECEIVED)


def test_bidding_window():
    assert BIDDING_STATUSES == {S.PENDING, S.CONTRACTORS_SELECTED, S.QUOTES_RECEIVED}
    assert S.IN_PROGRESS not in PRE_BID_STATUSES
