"""Admin routes: dashboard, quote review, assignments and invoices."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from quote_engine.api.deps import get_admin_id, get_services, require_admin_api_key
from quote_engine.api.schemas import (
    AdminQuoteView,
    AssignContractorsRequest,
    AssignmentOut,
    AssignmentWithContractor,
    DashboardResponse,
    InvoiceResponse,
    Paginated,
    QuoteResponse,
    QuoteReviewDetail,
    QuoteWithContractor,
    ReviewQuoteRequest,
)
from quote_engine.container import Services
from quote_engine.quotes.states import AdminStatus

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_api_key)],
)


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(services: Services = Depends(get_services)):
    """Quote counts, platform revenue and recent activity."""
    return await services.admin.dashboard()


@router.get("/quotes", response_model=Paginated[AdminQuoteView])
async def list_quotes(
    admin_status: Optional[AdminStatus] = None,
    request_id: Optional[int] = None,
    contractor_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    services: Services = Depends(get_services),
):
    """All quotes with requester and contractor details."""
    result = await services.admin.list_quotes(admin_status, request_id, contractor_id, page, limit)
    return result.to_dict()


@router.get("/quotes/pending", response_model=Paginated[AdminQuoteView])
async def pending_quotes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    services: Services = Depends(get_services),
):
    """Review queue, oldest first."""
    result = await services.admin.pending_quotes(page, limit)
    return result.to_dict()


@router.get("/quotes/{quote_id}", response_model=QuoteReviewDetail)
async def get_quote(quote_id: int, services: Services = Depends(get_services)):
    """Quote detail with the pricing config it will be approved against."""
    return await services.admin.quote_for_review(quote_id)


@router.post("/quotes/{quote_id}/review", response_model=QuoteResponse)
async def review_quote(
    quote_id: int,
    data: ReviewQuoteRequest,
    admin_id: str = Depends(get_admin_id),
    services: Services = Depends(get_services),
):
    """Approve or reject a pending quote."""
    return await services.admin.review_quote(
        admin_id, quote_id, data.decision, data.notes, data.rejection_reason
    )


@router.get("/quotes/{quote_id}/invoice", response_model=InvoiceResponse)
async def invoice_preview(
    quote_id: int,
    include_vat: bool = True,
    services: Services = Depends(get_services),
):
    """Invoice figures for an approved quote."""
    return await services.admin.invoice_preview(quote_id, include_vat)


@router.post("/quote-requests/{request_id}/assign", response_model=List[AssignmentOut])
async def assign_contractors(
    request_id: int,
    data: AssignContractorsRequest,
    admin_id: str = Depends(get_admin_id),
    services: Services = Depends(get_services),
):
    """Replace the set of contractors invited to bid on a request."""
    return await services.admin.assign_contractors(admin_id, request_id, data.contractor_ids)


@router.get(
    "/quote-requests/{request_id}/assignments", response_model=List[AssignmentWithContractor]
)
async def list_assignments(request_id: int, services: Services = Depends(get_services)):
    """Assignments of a request with contractor profiles."""
    return await services.assignments.list_assignments(request_id)


@router.get("/quote-requests/{request_id}/quotes", response_model=List[QuoteWithContractor])
async def list_request_quotes(request_id: int, services: Services = Depends(get_services)):
    """Every quote of a request regardless of review state."""
    return await services.quotes.list_quotes_for_request(request_id)
