"""Contractor routes: assignments, bids and penalties."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from quote_engine.api.deps import get_contractor_id, get_services
from quote_engine.api.schemas import (
    AssignmentOut,
    AssignmentRespondRequest,
    AssignmentRespondResponse,
    ContractorAssignmentOut,
    DisputePenaltyRequest,
    Paginated,
    PenaltyResponse,
    QuoteDetailResponse,
    QuoteResponse,
    QuoteSubmitRequest,
)
from quote_engine.container import Services
from quote_engine.penalties.rules import PenaltyStatus, PenaltyType
from quote_engine.pricing.line_items import LineItemInput
from quote_engine.quotes.contractor_quotes import QuoteSubmission
from quote_engine.quotes.states import AdminStatus, AssignmentStatus

router = APIRouter(prefix="/api/contractor", tags=["contractor"])


@router.get("/assignments", response_model=Paginated[ContractorAssignmentOut])
async def list_assignments(
    status: Optional[AssignmentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """Requests the caller has been invited to bid on."""
    result = await services.assignments.list_contractor_assignments(
        contractor_id, status, page, limit
    )
    return result.to_dict()


@router.post("/assignments/{request_id}/view", response_model=AssignmentOut)
async def view_assignment(
    request_id: int,
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """Mark an assignment as viewed."""
    return await services.assignments.mark_viewed(contractor_id, request_id)


@router.post("/assignments/{request_id}/respond", response_model=AssignmentRespondResponse)
async def respond_to_assignment(
    request_id: int,
    data: AssignmentRespondRequest,
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """Accept or reject an invitation to bid."""
    assignment, request = await services.assignments.respond(
        contractor_id, request_id, data.response, data.notes
    )
    return {"assignment": assignment, "request_status": request.status}


@router.post("/quotes", response_model=QuoteResponse, status_code=201)
async def submit_quote(
    data: QuoteSubmitRequest,
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """Submit a bid for a request."""
    values = data.model_dump(exclude={"line_items"})
    submission = QuoteSubmission(
        **values,
        line_items=[LineItemInput(**item.model_dump()) for item in data.line_items],
    )
    return await services.quotes.submit_quote(contractor_id, submission)


@router.get("/quotes", response_model=Paginated[QuoteResponse])
async def list_my_quotes(
    admin_status: Optional[AdminStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """The caller's bids, newest first."""
    result = await services.quotes.list_contractor_quotes(contractor_id, admin_status, page, limit)
    return result.to_dict()


@router.get("/quotes/{quote_id}", response_model=QuoteDetailResponse)
async def get_my_quote(
    quote_id: int,
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """One of the caller's bids with its line items."""
    return await services.quotes.get_quote_detail(quote_id, contractor_id=contractor_id)


@router.get("/penalties", response_model=Paginated[PenaltyResponse])
async def list_my_penalties(
    status: Optional[PenaltyStatus] = None,
    penalty_type: Optional[PenaltyType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """Penalties raised against the caller."""
    result = await services.penalties.list_contractor_penalties(
        contractor_id, status, penalty_type, page, limit
    )
    return result.to_dict()


@router.post("/penalties/{penalty_id}/dispute", response_model=PenaltyResponse)
async def dispute_penalty(
    penalty_id: int,
    data: DisputePenaltyRequest,
    contractor_id: str = Depends(get_contractor_id),
    services: Services = Depends(get_services),
):
    """Dispute an applied penalty."""
    return await services.penalties.dispute_penalty(penalty_id, contractor_id, data.reason)
