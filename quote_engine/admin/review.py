"""Admin review surface: dashboard, quote review and administrative actions."""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from quote_engine.db.repositories import (
    ContractorQuoteRepository,
    PenaltyInstanceRepository,
    QuoteRequestRepository,
)
from quote_engine.db.session import SessionFactory
from quote_engine.errors import BusinessRuleError, NotFoundError, service_operation
from quote_engine.pagination import Page, page_window
from quote_engine.penalties.engine import PenaltyEngine
from quote_engine.penalties.rules import PenaltyType, SeverityLevel
from quote_engine.pricing.calculator import InvoiceBreakdown, PricingConfig, calculate_invoice
from quote_engine.pricing.config_store import PricingConfigStore
from quote_engine.quotes.assignments import AssignmentManager
from quote_engine.quotes.contractor_quotes import ContractorQuoteManager, breakdown_from_quote
from quote_engine.quotes.states import AdminStatus, ReviewDecision

logger = logging.getLogger(__name__)

ACTIVITY_WINDOW_DAYS = 30


class AdminReviewService:
    """Aggregates request and quote state for administrators."""

    def __init__(
        self,
        session_factory: SessionFactory,
        quotes: ContractorQuoteManager,
        assignments: AssignmentManager,
        penalties: PenaltyEngine,
        pricing: PricingConfigStore,
        identity,
        vat_percent: Decimal = Decimal("15"),
        max_page_size: int = 100,
    ):
        self._session_factory = session_factory
        self.quotes = quotes
        self.assignments = assignments
        self.penalties = penalties
        self.pricing = pricing
        self._identity = identity
        self._vat_percent = Decimal(str(vat_percent))
        self._max_page_size = max_page_size

    async def _enrich(self, quotes: Sequence[Any]) -> list[dict]:
        """Attach contractor and requester profiles; lookups degrade to placeholders."""
        contractors = await self._identity.get_contractors_info(q.contractor_id for q in quotes)
        users = await self._identity.get_users_info(q.request.user_id for q in quotes)
        return [
            {
                "quote": quote,
                "request": quote.request,
                "contractor": contractors[quote.contractor_id],
                "user": users[quote.request.user_id],
            }
            for quote in quotes
        ]

    @service_operation("admin_dashboard")
    async def dashboard(self) -> dict[str, Any]:
        """Headline numbers for the admin home page."""
        since = datetime.utcnow() - timedelta(days=ACTIVITY_WINDOW_DAYS)
        async with self._session_factory() as db:
            quotes = ContractorQuoteRepository(db)
            status_counts = await quotes.admin_status_counts()
            revenue = await quotes.platform_revenue()
            active_contractors = await quotes.count_active_contractors(since)
            active_users = await QuoteRequestRepository(db).count_active_users(since)
            penalty_rows = await PenaltyInstanceRepository(db).statistics()
            recent = await quotes.recent(limit=10)

        penalty_counts: dict[str, int] = {}
        for status, _penalty_type, count, _amount in penalty_rows:
            penalty_counts[status] = penalty_counts.get(status, 0) + count

        return {
            "quotes": {
                "pending": status_counts.get(AdminStatus.PENDING.value, 0),
                "approved": status_counts.get(AdminStatus.APPROVED.value, 0),
                "rejected": status_counts.get(AdminStatus.REJECTED.value, 0),
                "total": sum(status_counts.values()),
            },
            "revenue": {
                "approved_commission": revenue["approved_commission"],
                "approved_markup": revenue["approved_markup"],
                "selected_commission": revenue["selected_commission"],
                "selected_markup": revenue["selected_markup"],
                "selected_total": revenue["selected_commission"] + revenue["selected_markup"],
            },
            "activity": {
                "window_days": ACTIVITY_WINDOW_DAYS,
                "active_contractors": active_contractors,
                "active_users": active_users,
            },
            "penalties": penalty_counts,
            "recent_quotes": recent,
        }

    @service_operation("admin_list_quotes")
    async def list_quotes(
        self,
        admin_status: Optional[AdminStatus] = None,
        request_id: Optional[int] = None,
        contractor_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        oldest_first: bool = False,
    ) -> Page[dict]:
        page, limit, offset = page_window(page, limit, self._max_page_size)
        async with self._session_factory() as db:
            rows, total = await ContractorQuoteRepository(db).search(
                admin_status=admin_status,
                request_id=request_id,
                contractor_id=contractor_id,
                offset=offset,
                limit=limit,
                oldest_first=oldest_first,
            )
        return Page(items=await self._enrich(rows), total=total, page=page, limit=limit)

    async def pending_quotes(self, page: int = 1, limit: int = 20) -> Page[dict]:
        """Review queue, oldest submission first."""
        return await self.list_quotes(
            admin_status=AdminStatus.PENDING, page=page, limit=limit, oldest_first=True
        )

    @service_operation("quote_for_review")
    async def quote_for_review(self, quote_id: int) -> dict[str, Any]:
        """Everything an admin needs to decide on one quote."""
        detail = await self.quotes.get_quote_detail(quote_id)
        quote = detail["quote"]
        contractor = await self._identity.get_contractor_info(quote.contractor_id)
        user = await self._identity.get_user_info(detail["request"].user_id)
        config = await self.pricing.get_config()
        return {
            **detail,
            "contractor": contractor,
            "user": user,
            "current_pricing_config": config,
        }

    async def review_quote(
        self,
        admin_id: str,
        quote_id: int,
        decision: ReviewDecision,
        notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ):
        return await self.quotes.approve_or_reject(
            admin_id, quote_id, decision, notes, rejection_reason
        )

    async def assign_contractors(self, admin_id: str, request_id: int, contractor_ids: Sequence[str]):
        return await self.assignments.assign_contractors(
            request_id, contractor_ids, assigned_by=admin_id
        )

    async def apply_manual_penalty(
        self,
        admin_id: str,
        contractor_id: str,
        quote_id: int,
        penalty_type: PenaltyType,
        description: str,
        custom_amount: Optional[Decimal] = None,
        severity: Optional[SeverityLevel] = None,
        days_overdue: Optional[int] = None,
        evidence: Optional[dict] = None,
    ):
        return await self.penalties.apply_penalty(
            contractor_id=contractor_id,
            quote_id=quote_id,
            penalty_type=penalty_type,
            description=description,
            applied_by=admin_id,
            custom_amount=custom_amount,
            severity=severity,
            days_overdue=days_overdue,
            evidence=evidence,
        )

    @service_operation("invoice_preview")
    async def invoice_preview(self, quote_id: int, include_vat: bool = True) -> InvoiceBreakdown:
        """
        Invoice for an approved quote using its locked-in breakdown.

        Raises:
            NotFoundError: Unknown quote
            BusinessRuleError: QUOTE_NOT_APPROVED
        """
        async with self._session_factory() as db:
            quote = await ContractorQuoteRepository(db).get_with_line_items(quote_id)
            if quote is None:
                raise NotFoundError("Quote", details={"quote_id": quote_id})
            if quote.admin_status != AdminStatus.APPROVED.value:
                raise BusinessRuleError(
                    "Invoices can only be previewed for approved quotes",
                    "QUOTE_NOT_APPROVED",
                    {"quote_id": quote_id, "admin_status": quote.admin_status},
                )
            breakdown = breakdown_from_quote(quote, quote.request.system_size_kwp)

        return calculate_invoice(breakdown, include_vat, self._vat_percent)

    async def update_pricing_config(self, changes: Mapping[str, Any], admin_id: str) -> PricingConfig:
        return await self.pricing.update_config(changes, admin_id)
