"""Requester routes addressing a single quote."""

from fastapi import APIRouter, Depends

from quote_engine.api.deps import get_services, get_user_id
from quote_engine.api.schemas import SelectQuoteRequest, SelectQuoteResponse, UserQuoteDetailResponse
from quote_engine.container import Services

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


@router.get("/{quote_id}", response_model=UserQuoteDetailResponse)
async def get_quote(
    quote_id: int,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Approved quote on one of the caller's requests."""
    return await services.quotes.get_quote_detail(quote_id, user_id=user_id)


@router.post("/{quote_id}/select", response_model=SelectQuoteResponse)
async def select_quote(
    quote_id: int,
    data: SelectQuoteRequest,
    user_id: str = Depends(get_user_id),
    services: Services = Depends(get_services),
):
    """Select the winning quote; the request becomes quote_selected."""
    quote, request = await services.quotes.select_quote(user_id, quote_id, data.reason)
    return {"quote": quote, "request": request}
