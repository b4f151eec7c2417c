"""Contractor assignment manager."""

import logging
from datetime import datetime
from typing import Optional, Sequence

from quote_engine import metrics
from quote_engine.db.models import ContractorQuoteAssignment, QuoteRequest
from quote_engine.db.repositories import AssignmentRepository, QuoteRequestRepository
from quote_engine.db.session import SessionFactory
from quote_engine.errors import BusinessRuleError, NotFoundError, service_operation
from quote_engine.logging_config import audit
from quote_engine.pagination import Page, page_window
from quote_engine.quotes.states import (
    TERMINAL_STATUSES,
    AssignmentResponse,
    AssignmentStatus,
    QuoteRequestStatus,
    ensure_transition,
    status_from_assignments,
)

logger = logging.getLogger(__name__)

OPEN_ASSIGNMENT_STATUSES = frozenset({AssignmentStatus.ASSIGNED, AssignmentStatus.VIEWED})


async def notify_contractors(notifier, request_id: int, contractor_ids: Sequence[str]) -> None:
    """Send the assignment notification; a failure is logged and never propagates."""
    try:
        await notifier.notify_contractors_assigned(request_id, list(contractor_ids))
    except Exception:
        logger.exception(f"Failed to notify contractors for request {request_id}")


def normalize_contractor_ids(contractor_ids: Sequence[str]) -> list[str]:
    """Strip blanks and duplicates, keeping first-seen order."""
    ids = [cid.strip() for cid in contractor_ids if cid and cid.strip()]
    ids = list(dict.fromkeys(ids))
    if not ids:
        raise BusinessRuleError("At least one contractor must be assigned", "NO_CONTRACTORS")
    return ids


class AssignmentManager:
    """Links quote requests to invited contractors and tracks their responses."""

    def __init__(
        self,
        session_factory: SessionFactory,
        identity,
        notifier,
        max_page_size: int = 100,
    ):
        self._session_factory = session_factory
        self._identity = identity
        self._notifier = notifier
        self._max_page_size = max_page_size

    @service_operation("assign_contractors")
    async def assign_contractors(
        self,
        request_id: int,
        contractor_ids: Sequence[str],
        assigned_by: Optional[str] = None,
    ) -> list[ContractorQuoteAssignment]:
        """
        Replace every assignment of a request with fresh ones.

        Prior assignments are deleted whatever their status, one new
        assignment per contractor is inserted as 'assigned', and the request
        moves to in_progress.

        Raises:
            NotFoundError: Unknown request
            BusinessRuleError: Empty contractor list or a final request
        """
        ids = normalize_contractor_ids(contractor_ids)

        async with self._session_factory() as db:
            async with db.begin():
                requests = QuoteRequestRepository(db)
                request = await requests.get_for_update(request_id)
                if request is None:
                    raise NotFoundError("Quote request", details={"request_id": request_id})

                ensure_transition(QuoteRequestStatus(request.status), QuoteRequestStatus.IN_PROGRESS)

                assignments = await AssignmentRepository(db).replace_for_request(
                    request_id, ids, assigned_by=assigned_by
                )
                request.selected_contractors = ids
                await requests.update_status(request, QuoteRequestStatus.IN_PROGRESS)

        logger.info(f"Assigned {len(ids)} contractors to request {request_id}")
        audit(
            "CONTRACTORS_ASSIGNED",
            request_id=request_id,
            contractor_ids=ids,
            assigned_by=assigned_by,
        )
        await notify_contractors(self._notifier, request_id, ids)
        return assignments

    @service_operation("respond_to_assignment")
    async def respond(
        self,
        contractor_id: str,
        request_id: int,
        response: AssignmentResponse,
        notes: Optional[str] = None,
    ) -> tuple[ContractorQuoteAssignment, QuoteRequest]:
        """
        Record a contractor's accept/reject and recompute the request status.

        The request row is locked first, then the status is derived from a
        fresh tally of every assignment so concurrent responses cannot drift.

        Raises:
            NotFoundError: Unknown request or assignment
            BusinessRuleError: ALREADY_RESPONDED, or INVALID_REQUEST_STATUS on a final request
        """
        response = AssignmentResponse(response)

        async with self._session_factory() as db:
            async with db.begin():
                requests = QuoteRequestRepository(db)
                assignments = AssignmentRepository(db)

                request = await requests.get_for_update(request_id)
                if request is None:
                    raise NotFoundError("Quote request", details={"request_id": request_id})

                assignment = await assignments.get_for_update(request_id, contractor_id)
                if assignment is None:
                    raise NotFoundError(
                        "Assignment",
                        details={"request_id": request_id, "contractor_id": contractor_id},
                    )
                if AssignmentStatus(assignment.status) not in OPEN_ASSIGNMENT_STATUSES:
                    raise BusinessRuleError(
                        "Contractor has already responded to this assignment",
                        "ALREADY_RESPONDED",
                        {"status": assignment.status},
                    )

                current = QuoteRequestStatus(request.status)
                if current in TERMINAL_STATUSES:
                    raise BusinessRuleError(
                        f"Quote request is {current.value}",
                        "INVALID_REQUEST_STATUS",
                        {"status": current.value},
                    )

                assignment.status = AssignmentStatus(response.value).value
                assignment.responded_at = datetime.utcnow()
                assignment.response_notes = notes
                await db.flush()

                counts = await assignments.status_counts(request_id)
                target = status_from_assignments(current, counts)
                if target != current:
                    await requests.update_status(request, target)

        metrics.assignment_responses_total.labels(response=response.value).inc()
        logger.info(
            f"Contractor {contractor_id} {response.value} request {request_id} "
            f"(request status {request.status})"
        )
        audit(
            "ASSIGNMENT_RESPONDED",
            request_id=request_id,
            contractor_id=contractor_id,
            response=response,
            request_status=request.status,
        )
        return assignment, request

    @service_operation("mark_assignment_viewed")
    async def mark_viewed(self, contractor_id: str, request_id: int) -> ContractorQuoteAssignment:
        """Move an assignment from assigned to viewed; other states are left alone."""
        async with self._session_factory() as db:
            async with db.begin():
                assignment = await AssignmentRepository(db).get_for_update(request_id, contractor_id)
                if assignment is None:
                    raise NotFoundError(
                        "Assignment",
                        details={"request_id": request_id, "contractor_id": contractor_id},
                    )
                if assignment.status == AssignmentStatus.ASSIGNED.value:
                    assignment.status = AssignmentStatus.VIEWED.value
                    assignment.viewed_at = datetime.utcnow()
        return assignment

    @service_operation("list_assignments")
    async def list_assignments(self, request_id: int) -> list[dict]:
        """Assignments of a request, each with the contractor's profile."""
        async with self._session_factory() as db:
            request = await QuoteRequestRepository(db).get(request_id)
            if request is None:
                raise NotFoundError("Quote request", details={"request_id": request_id})
            rows = await AssignmentRepository(db).list_for_request(request_id)

        profiles = await self._identity.get_contractors_info(a.contractor_id for a in rows)
        return [
            {"assignment": assignment, "contractor": profiles[assignment.contractor_id]}
            for assignment in rows
        ]

    @service_operation("list_contractor_assignments")
    async def list_contractor_assignments(
        self,
        contractor_id: str,
        status: Optional[AssignmentStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[ContractorQuoteAssignment]:
        page, limit, offset = page_window(page, limit, self._max_page_size)
        async with self._session_factory() as db:
            rows, total = await AssignmentRepository(db).list_for_contractor(
                contractor_id, status, offset, limit
            )
        return Page(items=rows, total=total, page=page, limit=limit)
