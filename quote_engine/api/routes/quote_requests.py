"""Requester routes: quote requests, their quotes and comparisons."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from quote_engine.api.deps import get_services, get_user_id
from quote_engine.api.schemas import (
    CancelRequest,
    CompareQuotesRequest,
    CompareQuotesResponse,
    Paginated,
    QuoteRequestCreate,
    QuoteRequestResponse,
    QuoteRequestSummary,
    UserQuoteWithContractor,
)
from quote_engine.container import Services
from quote_engine.quotes.requests import NewQuoteRequest
from quote_engine.quotes.states import QuoteRequestStatus

router = APIRouter(prefix="/api/quote-requests", tags=["quote-requests"])


@router.post("", response_model=QuoteRequestResponse, status_code=201)
async def create_quote_request(
    data: QuoteRequestCreate,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Create a quote request, optionally naming contractors up front."""
    return await services.requests.create_request(user_id, NewQuoteRequest(**data.model_dump()))


@router.get("", response_model=Paginated[QuoteRequestSummary])
async def list_quote_requests(
    status: Optional[QuoteRequestStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """List the caller's quote requests, newest first."""
    result = await services.requests.list_user_requests(user_id, status, page, limit)
    return result.to_dict()


@router.get("/{request_id}", response_model=QuoteRequestResponse)
async def get_quote_request(
    request_id: int,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Get one of the caller's quote requests."""
    return await services.requests.get_request(request_id, user_id=user_id)


@router.post("/{request_id}/cancel", response_model=QuoteRequestResponse)
async def cancel_quote_request(
    request_id: int,
    data: CancelRequest,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Cancel a request that has not reached a final state."""
    return await services.requests.cancel_request(user_id, request_id, data.reason)


@router.get("/{request_id}/quotes", response_model=List[UserQuoteWithContractor])
async def list_request_quotes(
    request_id: int,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Approved quotes for the request, cheapest first."""
    return await services.quotes.list_quotes_for_request(request_id, user_id=user_id)


@router.post("/{request_id}/compare", response_model=CompareQuotesResponse)
async def compare_quotes(
    request_id: int,
    data: CompareQuotesRequest,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Compare approved quotes side by side."""
    return await services.quotes.compare_quotes(user_id, request_id, data.quote_ids, data.criteria)
