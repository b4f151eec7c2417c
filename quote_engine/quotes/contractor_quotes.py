"""Contractor quote manager: bids, admin review, comparison and selection."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from quote_engine import metrics
from quote_engine.db.models import ContractorQuote, QuoteRequest
from quote_engine.db.repositories import (
    ComparisonRepository,
    ContractorQuoteRepository,
    LineItemRepository,
    QuoteRequestRepository,
)
from quote_engine.db.session import SessionFactory
from quote_engine.errors import BusinessRuleError, ConflictError, NotFoundError, service_operation
from quote_engine.logging_config import audit
from quote_engine.pagination import Page, page_window
from quote_engine.pricing.calculator import FinancialBreakdown, calculate, qmoney
from quote_engine.pricing.config_store import read_pricing_config
from quote_engine.pricing.line_items import (
    LineItemInput,
    aggregate,
    ensure_base_price_matches,
    price_line_items,
)
from quote_engine.quotes.requests import ensure_owner
from quote_engine.quotes.states import (
    BIDDING_STATUSES,
    PRE_BID_STATUSES,
    AdminStatus,
    QuoteRequestStatus,
    ReviewDecision,
    ensure_transition,
)

logger = logging.getLogger(__name__)


@dataclass
class QuoteSubmission:
    """Contractor input for a bid."""

    request_id: int
    base_price: Decimal
    price_per_kwp: Decimal
    installation_timeline_days: int
    system_specs: Optional[dict[str, Any]] = None
    panel_brand: Optional[str] = None
    panel_model: Optional[str] = None
    panel_quantity: Optional[int] = None
    inverter_brand: Optional[str] = None
    inverter_model: Optional[str] = None
    inverter_quantity: Optional[int] = None
    warranty_terms: Optional[str] = None
    maintenance_terms: Optional[str] = None
    notes: Optional[str] = None
    line_items: list[LineItemInput] = field(default_factory=list)


def apply_breakdown(quote: ContractorQuote, breakdown: FinancialBreakdown) -> None:
    """Copy a freshly computed breakdown onto the quote row."""
    quote.base_price = breakdown.base_price
    quote.price_per_kwp = breakdown.price_per_kwp
    quote.overprice_amount = breakdown.overprice_amount
    quote.total_user_price = breakdown.total_user_price
    quote.commission_amount = breakdown.commission_amount
    quote.contractor_net_amount = breakdown.contractor_net_amount
    quote.platform_revenue = breakdown.platform_revenue
    quote.overprice_percent = breakdown.overprice_percent
    quote.commission_percent = breakdown.commission_percent


def breakdown_from_quote(quote: ContractorQuote, system_size_kwp: Decimal) -> FinancialBreakdown:
    """Rebuild the stored breakdown of a quote without recomputing it."""
    return FinancialBreakdown(
        base_price=quote.base_price,
        price_per_kwp=quote.price_per_kwp,
        system_size_kwp=system_size_kwp,
        overprice_percent=quote.overprice_percent,
        commission_percent=quote.commission_percent,
        overprice_amount=quote.overprice_amount,
        total_user_price=quote.total_user_price,
        commission_amount=quote.commission_amount,
        contractor_net_amount=quote.contractor_net_amount,
        platform_revenue=quote.platform_revenue,
    )


def price_summary(quotes: Sequence[ContractorQuote]) -> dict[str, Any]:
    """Min/avg/max/range of the user-facing prices."""
    prices = [quote.total_user_price for quote in quotes]
    if not prices:
        return {"count": 0, "min_price": None, "max_price": None, "avg_price": None, "price_range": None}
    low, high = min(prices), max(prices)
    return {
        "count": len(prices),
        "min_price": low,
        "max_price": high,
        "avg_price": qmoney(sum(prices, Decimal("0")) / len(prices)),
        "price_range": high - low,
    }


class ContractorQuoteManager:
    """Owns contractor bids and the single-selection invariant."""

    def __init__(
        self,
        session_factory: SessionFactory,
        identity,
        quote_validity_days: int = 30,
        vat_percent: Decimal = Decimal("15"),
        max_page_size: int = 100,
    ):
        self._session_factory = session_factory
        self._identity = identity
        self._quote_validity_days = quote_validity_days
        self._vat_percent = Decimal(str(vat_percent))
        self._max_page_size = max_page_size

    @service_operation("submit_quote")
    async def submit_quote(self, contractor_id: str, submission: QuoteSubmission) -> ContractorQuote:
        """
        Persist a contractor bid with its financial breakdown.

        The request row is locked for the whole insert so that the
        first-quote check (count inside the same transaction) cannot be won
        by two concurrent submissions.

        Raises:
            NotFoundError: Unknown request
            ConflictError: DUPLICATE_QUOTE for a second bid by the same contractor
            BusinessRuleError: Request not accepting bids, or pricing validation failure
        """
        if submission.installation_timeline_days is None or submission.installation_timeline_days <= 0:
            raise BusinessRuleError(
                "Installation timeline must be a positive number of days",
                "INVALID_INSTALLATION_TIMELINE",
            )

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    requests = QuoteRequestRepository(db)
                    quotes = ContractorQuoteRepository(db)

                    request = await requests.get_for_update(submission.request_id)
                    if request is None:
                        raise NotFoundError(
                            "Quote request", details={"request_id": submission.request_id}
                        )

                    current = QuoteRequestStatus(request.status)
                    if current not in BIDDING_STATUSES:
                        raise BusinessRuleError(
                            f"Quote request is not accepting quotes (status {current.value})",
                            "INVALID_REQUEST_STATUS",
                            {"status": current.value},
                        )

                    if await quotes.exists_for(request.id, contractor_id):
                        raise ConflictError(
                            "Contractor has already submitted a quote for this request",
                            "DUPLICATE_QUOTE",
                            {"request_id": request.id, "contractor_id": contractor_id},
                        )

                    config = await read_pricing_config(db)
                    breakdown = calculate(
                        submission.base_price,
                        submission.price_per_kwp,
                        request.system_size_kwp,
                        config,
                    )

                    priced_items = []
                    if submission.line_items:
                        priced_items = price_line_items(submission.line_items, config)
                        ensure_base_price_matches(
                            breakdown.base_price, aggregate(priced_items, self._vat_percent)
                        )

                    now = datetime.utcnow()
                    quote = ContractorQuote(
                        request_id=request.id,
                        contractor_id=contractor_id,
                        system_specs=submission.system_specs,
                        panel_brand=submission.panel_brand,
                        panel_model=submission.panel_model,
                        panel_quantity=submission.panel_quantity,
                        inverter_brand=submission.inverter_brand,
                        inverter_model=submission.inverter_model,
                        inverter_quantity=submission.inverter_quantity,
                        installation_timeline_days=submission.installation_timeline_days,
                        warranty_terms=submission.warranty_terms,
                        maintenance_terms=submission.maintenance_terms,
                        notes=submission.notes,
                        admin_status=AdminStatus.PENDING.value,
                        is_selected=False,
                        created_at=now,
                        updated_at=now,
                        expires_at=now + timedelta(days=self._quote_validity_days),
                    )
                    apply_breakdown(quote, breakdown)
                    await quotes.add(quote)

                    if priced_items:
                        await LineItemRepository(db).add_many(quote.id, priced_items)

                    # Count after insert, under the request lock
                    if current in PRE_BID_STATUSES and await quotes.count_for_request(request.id) == 1:
                        await requests.update_status(request, QuoteRequestStatus.QUOTES_RECEIVED)
        except IntegrityError as exc:
            raise ConflictError(
                "Contractor has already submitted a quote for this request",
                "DUPLICATE_QUOTE",
                {"request_id": submission.request_id, "contractor_id": contractor_id},
            ) from exc

        metrics.quotes_submitted_total.inc()
        logger.info(f"Quote {quote.id} submitted by contractor {contractor_id} for request {request.id}")
        audit(
            "QUOTE_SUBMITTED",
            quote_id=quote.id,
            request_id=request.id,
            contractor_id=contractor_id,
            line_items=len(priced_items),
            **breakdown.to_dict(),
        )
        return quote

    @service_operation("review_quote")
    async def approve_or_reject(
        self,
        admin_id: str,
        quote_id: int,
        decision: ReviewDecision,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> ContractorQuote:
        """
        Take the one-way admin decision on a pending quote.

        On approval the breakdown is recomputed against the current pricing
        config and stored; those are the authoritative numbers from then on.

        Raises:
            NotFoundError: Unknown quote
            ConflictError: QUOTE_ALREADY_REVIEWED when the quote is not pending
            BusinessRuleError: REJECTION_REASON_REQUIRED, or pricing no longer valid
        """
        decision = ReviewDecision(decision)
        if decision == ReviewDecision.REJECTED and not (rejection_reason or "").strip():
            raise BusinessRuleError(
                "A rejection reason is required", "REJECTION_REASON_REQUIRED"
            )

        async with self._session_factory() as db:
            async with db.begin():
                quotes = ContractorQuoteRepository(db)
                quote = await quotes.get_for_update(quote_id)
                if quote is None:
                    raise NotFoundError("Quote", details={"quote_id": quote_id})
                if quote.admin_status != AdminStatus.PENDING.value:
                    raise ConflictError(
                        f"Quote has already been {quote.admin_status}",
                        "QUOTE_ALREADY_REVIEWED",
                        {"quote_id": quote_id, "admin_status": quote.admin_status},
                    )

                if decision == ReviewDecision.APPROVED:
                    request = await QuoteRequestRepository(db).get(quote.request_id)
                    config = await read_pricing_config(db)
                    breakdown = calculate(
                        quote.base_price, quote.price_per_kwp, request.system_size_kwp, config
                    )
                    apply_breakdown(quote, breakdown)
                    quote.admin_status = AdminStatus.APPROVED.value
                    quote.rejection_reason = None
                else:
                    quote.admin_status = AdminStatus.REJECTED.value
                    quote.rejection_reason = rejection_reason.strip()

                now = datetime.utcnow()
                quote.admin_notes = notes
                quote.reviewed_by = admin_id
                quote.reviewed_at = now
                quote.updated_at = now

        metrics.record_quote_review(decision.value)
        logger.info(f"Quote {quote_id} {decision.value} by admin {admin_id}")
        audit(
            "QUOTE_APPROVAL_PROCESSED",
            quote_id=quote_id,
            admin_id=admin_id,
            decision=decision,
            rejection_reason=quote.rejection_reason,
            base_price=quote.base_price,
            overprice_amount=quote.overprice_amount,
            total_user_price=quote.total_user_price,
            commission_amount=quote.commission_amount,
            contractor_net_amount=quote.contractor_net_amount,
            platform_revenue=quote.platform_revenue,
        )
        return quote

    @service_operation("select_quote")
    async def select_quote(
        self, user_id: str, quote_id: int, reason: Optional[str] = None
    ) -> tuple[ContractorQuote, QuoteRequest]:
        """
        Select an approved quote on behalf of the requester.

        Selecting the quote, demoting its siblings and moving the request to
        quote_selected happen in one transaction under the request lock.

        Raises:
            NotFoundError: Unknown quote or request
            BusinessRuleError: UNAUTHORIZED_ACCESS, QUOTE_NOT_APPROVED,
                QUOTE_ALREADY_SELECTED, INVALID_STATUS_TRANSITION
        """
        async with self._session_factory() as db:
            async with db.begin():
                quotes = ContractorQuoteRepository(db)
                requests = QuoteRequestRepository(db)

                quote = await quotes.get(quote_id)
                if quote is None:
                    raise NotFoundError("Quote", details={"quote_id": quote_id})

                request = await requests.get_for_update(quote.request_id)
                if request is None:
                    raise NotFoundError("Quote request", details={"request_id": quote.request_id})
                ensure_owner(request, user_id)

                quote = await quotes.get_for_update(quote_id)
                if quote.admin_status != AdminStatus.APPROVED.value:
                    raise BusinessRuleError(
                        "Only approved quotes can be selected",
                        "QUOTE_NOT_APPROVED",
                        {"quote_id": quote_id, "admin_status": quote.admin_status},
                    )

                ensure_transition(QuoteRequestStatus(request.status), QuoteRequestStatus.QUOTE_SELECTED)

                await quotes.set_selected(quote)
                await requests.update_status(request, QuoteRequestStatus.QUOTE_SELECTED)
                await ComparisonRepository(db).record_selection(request.id, user_id, quote.id, reason)

        metrics.quote_selections_total.inc()
        logger.info(f"Quote {quote_id} selected for request {request.id} by user {user_id}")
        audit(
            "QUOTE_SELECTED",
            quote_id=quote_id,
            request_id=request.id,
            user_id=user_id,
            contractor_id=quote.contractor_id,
            total_user_price=quote.total_user_price,
            reason=reason,
        )
        return quote, request

    @service_operation("compare_quotes")
    async def compare_quotes(
        self,
        user_id: str,
        request_id: int,
        quote_ids: Sequence[int],
        criteria: Optional[dict] = None,
    ) -> dict[str, Any]:
        """
        Compare approved quotes of a request and record the comparison.

        Raises:
            NotFoundError: Unknown request
            BusinessRuleError: UNAUTHORIZED_ACCESS, or INVALID_QUOTES when any id
                is not an approved quote of the request
        """
        ids = list(dict.fromkeys(quote_ids))
        if not ids:
            raise BusinessRuleError("Select at least one quote to compare", "INVALID_QUOTES")

        async with self._session_factory() as db:
            async with db.begin():
                request = await QuoteRequestRepository(db).get(request_id)
                if request is None:
                    raise NotFoundError("Quote request", details={"request_id": request_id})
                ensure_owner(request, user_id)

                found = await ContractorQuoteRepository(db).list_by_ids(request_id, ids)
                approved = [q for q in found if q.admin_status == AdminStatus.APPROVED.value]
                if len(approved) != len(ids):
                    invalid = sorted(set(ids) - {q.id for q in approved})
                    raise BusinessRuleError(
                        "Only approved quotes of this request can be compared",
                        "INVALID_QUOTES",
                        {"invalid_quote_ids": invalid},
                    )

                comparison = await ComparisonRepository(db).record_view(
                    request_id, user_id, ids, criteria
                )

        approved.sort(key=lambda q: (q.total_user_price, q.id))
        profiles = await self._identity.get_contractors_info(q.contractor_id for q in approved)

        audit(
            "QUOTES_COMPARED",
            request_id=request_id,
            user_id=user_id,
            quote_ids=ids,
            views_count=comparison.views_count,
        )
        return {
            "comparison_id": comparison.id,
            "request_id": request_id,
            "views_count": comparison.views_count,
            "quotes": [
                {"quote": quote, "contractor": profiles[quote.contractor_id]} for quote in approved
            ],
            "summary": price_summary(approved),
        }

    @service_operation("list_request_quotes")
    async def list_quotes_for_request(
        self, request_id: int, user_id: Optional[str] = None
    ) -> list[dict]:
        """
        Quotes of a request sorted by base price, with contractor profiles.

        When user_id is given the caller is the requester: ownership is
        checked and only approved quotes are returned.
        """
        async with self._session_factory() as db:
            request = await QuoteRequestRepository(db).get(request_id)
            if request is None:
                raise NotFoundError("Quote request", details={"request_id": request_id})
            admin_status = None
            if user_id is not None:
                ensure_owner(request, user_id)
                admin_status = AdminStatus.APPROVED
            rows = await ContractorQuoteRepository(db).list_for_request(request_id, admin_status)

        profiles = await self._identity.get_contractors_info(q.contractor_id for q in rows)
        return [{"quote": quote, "contractor": profiles[quote.contractor_id]} for quote in rows]

    @service_operation("list_contractor_quotes")
    async def list_contractor_quotes(
        self,
        contractor_id: str,
        admin_status: Optional[AdminStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[ContractorQuote]:
        page, limit, offset = page_window(page, limit, self._max_page_size)
        async with self._session_factory() as db:
            rows, total = await ContractorQuoteRepository(db).search(
                admin_status=admin_status,
                contractor_id=contractor_id,
                offset=offset,
                limit=limit,
            )
        return Page(items=rows, total=total, page=page, limit=limit)

    @service_operation("get_quote_detail")
    async def get_quote_detail(
        self,
        quote_id: int,
        contractor_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Quote with its request, line items and line-item totals.

        A contractor may only read their own quotes; a requester only the
        approved quotes of their own requests.
        """
        async with self._session_factory() as db:
            quote = await ContractorQuoteRepository(db).get_with_line_items(quote_id)
            if quote is None:
                raise NotFoundError("Quote", details={"quote_id": quote_id})

            if contractor_id is not None and quote.contractor_id != contractor_id:
                raise BusinessRuleError(
                    "Quote belongs to another contractor",
                    "UNAUTHORIZED_ACCESS",
                    {"quote_id": quote_id},
                )
            if user_id is not None:
                ensure_owner(quote.request, user_id)
                if quote.admin_status != AdminStatus.APPROVED.value:
                    raise NotFoundError("Quote", details={"quote_id": quote_id})

            line_items = list(quote.line_items)
            request = quote.request

        return {
            "quote": quote,
            "request": request,
            "line_items": line_items,
            "totals": aggregate(line_items, self._vat_percent) if line_items else None,
        }
