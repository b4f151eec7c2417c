"""Quote request store: creation, lookup, listing and cancellation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from quote_engine.db.models import QuoteRequest
from quote_engine.db.repositories import (
    AssignmentRepository,
    ContractorQuoteRepository,
    QuoteRequestRepository,
)
from quote_engine.db.session import SessionFactory
from quote_engine.errors import BusinessRuleError, NotFoundError, service_operation
from quote_engine.logging_config import audit
from quote_engine.pagination import Page, page_window
from quote_engine.pricing.calculator import to_decimal
from quote_engine.pricing.config_store import read_pricing_config
from quote_engine.quotes.assignments import notify_contractors
from quote_engine.quotes.states import QuoteRequestStatus, ensure_transition

logger = logging.getLogger(__name__)


@dataclass
class NewQuoteRequest:
    """Requester input for a new quote request."""

    system_size_kwp: Decimal
    location_address: str
    service_area: str
    property_details: Optional[dict[str, Any]] = None
    electricity_consumption: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    contractor_ids: list[str] = field(default_factory=list)


def ensure_owner(request: QuoteRequest, user_id: str) -> None:
    """Raise UNAUTHORIZED_ACCESS unless the user owns the request."""
    if request.user_id != user_id:
        raise BusinessRuleError(
            "Quote request belongs to another user",
            "UNAUTHORIZED_ACCESS",
            {"request_id": request.id},
        )


class QuoteRequestService:
    """Owns QuoteRequest rows and their status field."""

    def __init__(self, session_factory: SessionFactory, notifier, max_page_size: int = 100):
        self._session_factory = session_factory
        self._notifier = notifier
        self._max_page_size = max_page_size

    @service_operation("create_quote_request")
    async def create_request(self, user_id: str, data: NewQuoteRequest) -> QuoteRequest:
        """
        Create a request, optionally inviting contractors straight away.

        Raises:
            BusinessRuleError: Size outside the configured range or missing location
        """
        size = to_decimal(data.system_size_kwp, "system_size_kwp")
        if not data.location_address or not data.location_address.strip():
            raise BusinessRuleError("Location address is required", "INVALID_LOCATION")
        if not data.service_area or not data.service_area.strip():
            raise BusinessRuleError("Service area is required", "INVALID_SERVICE_AREA")

        contractor_ids = list(dict.fromkeys(data.contractor_ids or []))

        async with self._session_factory() as db:
            async with db.begin():
                config = await read_pricing_config(db)
                if size < config.min_system_size_kwp:
                    raise BusinessRuleError(
                        f"System size must be at least {config.min_system_size_kwp} kWp",
                        "SYSTEM_SIZE_TOO_SMALL",
                        {"system_size_kwp": str(size)},
                    )
                if size > config.max_system_size_kwp:
                    raise BusinessRuleError(
                        f"System size cannot exceed {config.max_system_size_kwp} kWp",
                        "SYSTEM_SIZE_TOO_LARGE",
                        {"system_size_kwp": str(size)},
                    )

                request = await QuoteRequestRepository(db).add(
                    QuoteRequest(
                        user_id=user_id,
                        system_size_kwp=size,
                        location_address=data.location_address.strip(),
                        service_area=data.service_area.strip(),
                        property_details=data.property_details,
                        electricity_consumption=data.electricity_consumption,
                        selected_contractors=contractor_ids or None,
                        notes=data.notes,
                        status=QuoteRequestStatus.PENDING.value,
                    )
                )

                if contractor_ids:
                    await AssignmentRepository(db).replace_for_request(
                        request.id, contractor_ids, assigned_by=user_id
                    )
                    await QuoteRequestRepository(db).update_status(
                        request, QuoteRequestStatus.CONTRACTORS_SELECTED
                    )

        logger.info(f"Quote request {request.id} created by user {user_id}")
        audit(
            "QUOTE_REQUEST_CREATED",
            request_id=request.id,
            user_id=user_id,
            system_size_kwp=size,
            contractor_ids=contractor_ids,
        )

        if contractor_ids:
            await notify_contractors(self._notifier, request.id, contractor_ids)

        return request

    @service_operation("get_quote_request")
    async def get_request(self, request_id: int, user_id: Optional[str] = None) -> QuoteRequest:
        async with self._session_factory() as db:
            request = await QuoteRequestRepository(db).get(request_id)
            if request is None:
                raise NotFoundError("Quote request", details={"request_id": request_id})
            if user_id is not None:
                ensure_owner(request, user_id)
            return request

    @service_operation("list_user_quote_requests")
    async def list_user_requests(
        self,
        user_id: str,
        status: Optional[QuoteRequestStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[dict]:
        """List a user's requests, each with its number of approved quotes."""
        page, limit, offset = page_window(page, limit, self._max_page_size)
        async with self._session_factory() as db:
            requests, total = await QuoteRequestRepository(db).list_for_user(
                user_id, status, offset, limit
            )
            counts = await ContractorQuoteRepository(db).approved_counts([r.id for r in requests])

        items = [
            {"request": request, "approved_quotes_count": counts.get(request.id, 0)}
            for request in requests
        ]
        return Page(items=items, total=total, page=page, limit=limit)

    @service_operation("cancel_quote_request")
    async def cancel_request(
        self, user_id: str, request_id: int, reason: Optional[str] = None
    ) -> QuoteRequest:
        """
        Cancel a request on behalf of its owner.

        Raises:
            NotFoundError: Unknown request
            BusinessRuleError: Not the owner, or the request is already final
        """
        async with self._session_factory() as db:
            async with db.begin():
                repo = QuoteRequestRepository(db)
                request = await repo.get_for_update(request_id)
                if request is None:
                    raise NotFoundError("Quote request", details={"request_id": request_id})
                ensure_owner(request, user_id)

                current = QuoteRequestStatus(request.status)
                ensure_transition(current, QuoteRequestStatus.CANCELLED)

                request.cancellation_reason = reason
                request.cancelled_at = datetime.utcnow()
                await repo.update_status(request, QuoteRequestStatus.CANCELLED)

        logger.info(f"Quote request {request_id} cancelled by user {user_id}")
        audit(
            "QUOTE_REQUEST_CANCELLED",
            request_id=request_id,
            user_id=user_id,
            previous_status=current,
            reason=reason,
        )
        return request
