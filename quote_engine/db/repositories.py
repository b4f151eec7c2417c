"""Repositories: typed data access per entity.

Each repository wraps an AsyncSession owned by the caller. Repositories never
commit; the service that opened the transaction decides when to.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quote_engine.db.models import (
    BusinessConfig,
    BusinessConfigHistory,
    ContractorQuote,
    ContractorQuoteAssignment,
    PenaltyInstance,
    PenaltyRule,
    QuotationLineItem,
    QuoteComparison,
    QuoteRequest,
)
from quote_engine.penalties.rules import ACTIVE_PENALTY_STATUSES, PenaltyStatus, PenaltyType
from quote_engine.pricing.line_items import PricedLineItem
from quote_engine.quotes.states import AdminStatus, AssignmentStatus, QuoteRequestStatus


def _values(statuses: Iterable) -> list[str]:
    return [status.value for status in statuses]


class QuoteRequestRepository:
    """Data access for quote requests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, request: QuoteRequest) -> QuoteRequest:
        self.db.add(request)
        await self.db.flush()
        return request

    async def get(self, request_id: int) -> Optional[QuoteRequest]:
        return await self.db.get(QuoteRequest, request_id)

    async def get_for_update(self, request_id: int) -> Optional[QuoteRequest]:
        """Load a request and lock its row until the transaction ends."""
        result = await self.db.execute(
            select(QuoteRequest)
            .where(QuoteRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_status(self, request: QuoteRequest, status: QuoteRequestStatus) -> None:
        request.status = status.value
        request.updated_at = datetime.utcnow()
        await self.db.flush()

    async def list_for_user(
        self,
        user_id: str,
        status: Optional[QuoteRequestStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[QuoteRequest], int]:
        query = select(QuoteRequest).where(QuoteRequest.user_id == user_id)
        if status is not None:
            query = query.where(QuoteRequest.status == status.value)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(QuoteRequest.created_at.desc(), QuoteRequest.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def count_active_users(self, since: datetime) -> int:
        return await self.db.scalar(
            select(func.count(func.distinct(QuoteRequest.user_id))).where(
                QuoteRequest.created_at >= since
            )
        ) or 0


class AssignmentRepository:
    """Data access for contractor assignments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def replace_for_request(
        self,
        request_id: int,
        contractor_ids: Sequence[str],
        assigned_by: Optional[str] = None,
    ) -> list[ContractorQuoteAssignment]:
        """Delete every assignment of the request and insert fresh ones."""
        await self.db.execute(
            delete(ContractorQuoteAssignment).where(
                ContractorQuoteAssignment.request_id == request_id
            )
        )
        now = datetime.utcnow()
        assignments = [
            ContractorQuoteAssignment(
                request_id=request_id,
                contractor_id=contractor_id,
                status=AssignmentStatus.ASSIGNED.value,
                assigned_by=assigned_by,
                assigned_at=now,
            )
            for contractor_id in contractor_ids
        ]
        self.db.add_all(assignments)
        await self.db.flush()
        return assignments

    async def get(self, request_id: int, contractor_id: str) -> Optional[ContractorQuoteAssignment]:
        result = await self.db.execute(
            select(ContractorQuoteAssignment).where(
                ContractorQuoteAssignment.request_id == request_id,
                ContractorQuoteAssignment.contractor_id == contractor_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_for_update(
        self, request_id: int, contractor_id: str
    ) -> Optional[ContractorQuoteAssignment]:
        result = await self.db.execute(
            select(ContractorQuoteAssignment)
            .where(
                ContractorQuoteAssignment.request_id == request_id,
                ContractorQuoteAssignment.contractor_id == contractor_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_request(self, request_id: int) -> list[ContractorQuoteAssignment]:
        result = await self.db.execute(
            select(ContractorQuoteAssignment)
            .where(ContractorQuoteAssignment.request_id == request_id)
            .order_by(ContractorQuoteAssignment.id)
        )
        return list(result.scalars().all())

    async def list_for_contractor(
        self,
        contractor_id: str,
        status: Optional[AssignmentStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[ContractorQuoteAssignment], int]:
        query = select(ContractorQuoteAssignment).where(
            ContractorQuoteAssignment.contractor_id == contractor_id
        )
        if status is not None:
            query = query.where(ContractorQuoteAssignment.status == status.value)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.options(selectinload(ContractorQuoteAssignment.request))
            .order_by(ContractorQuoteAssignment.assigned_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def status_counts(self, request_id: int) -> dict[AssignmentStatus, int]:
        """Fresh tally of assignment statuses for a request."""
        result = await self.db.execute(
            select(ContractorQuoteAssignment.status, func.count())
            .where(ContractorQuoteAssignment.request_id == request_id)
            .group_by(ContractorQuoteAssignment.status)
        )
        return {AssignmentStatus(status): count for status, count in result.all()}


class ContractorQuoteRepository:
    """Data access for contractor quotes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, quote: ContractorQuote) -> ContractorQuote:
        self.db.add(quote)
        await self.db.flush()
        return quote

    async def get(self, quote_id: int) -> Optional[ContractorQuote]:
        return await self.db.get(ContractorQuote, quote_id)

    async def get_for_update(self, quote_id: int) -> Optional[ContractorQuote]:
        result = await self.db.execute(
            select(ContractorQuote)
            .where(ContractorQuote.id == quote_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_with_line_items(self, quote_id: int) -> Optional[ContractorQuote]:
        result = await self.db.execute(
            select(ContractorQuote)
            .where(ContractorQuote.id == quote_id)
            .options(
                selectinload(ContractorQuote.line_items),
                selectinload(ContractorQuote.request),
            )
        )
        return result.scalar_one_or_none()

    async def exists_for(self, request_id: int, contractor_id: str) -> bool:
        found = await self.db.scalar(
            select(ContractorQuote.id).where(
                ContractorQuote.request_id == request_id,
                ContractorQuote.contractor_id == contractor_id,
            )
        )
        return found is not None

    async def count_for_request(self, request_id: int) -> int:
        return await self.db.scalar(
            select(func.count()).where(ContractorQuote.request_id == request_id)
        ) or 0

    async def approved_counts(self, request_ids: Sequence[int]) -> dict[int, int]:
        if not request_ids:
            return {}
        result = await self.db.execute(
            select(ContractorQuote.request_id, func.count())
            .where(
                ContractorQuote.request_id.in_(request_ids),
                ContractorQuote.admin_status == AdminStatus.APPROVED.value,
            )
            .group_by(ContractorQuote.request_id)
        )
        return dict(result.all())

    async def list_for_request(
        self,
        request_id: int,
        admin_status: Optional[AdminStatus] = None,
    ) -> list[ContractorQuote]:
        query = select(ContractorQuote).where(ContractorQuote.request_id == request_id)
        if admin_status is not None:
            query = query.where(ContractorQuote.admin_status == admin_status.value)
        result = await self.db.execute(
            query.order_by(ContractorQuote.base_price.asc(), ContractorQuote.id.asc())
        )
        return list(result.scalars().all())

    async def list_by_ids(self, request_id: int, quote_ids: Sequence[int]) -> list[ContractorQuote]:
        result = await self.db.execute(
            select(ContractorQuote).where(
                ContractorQuote.request_id == request_id,
                ContractorQuote.id.in_(quote_ids),
            )
        )
        return list(result.scalars().all())

    async def search(
        self,
        admin_status: Optional[AdminStatus] = None,
        request_id: Optional[int] = None,
        contractor_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
        oldest_first: bool = False,
    ) -> tuple[list[ContractorQuote], int]:
        query = select(ContractorQuote)
        if admin_status is not None:
            query = query.where(ContractorQuote.admin_status == admin_status.value)
        if request_id is not None:
            query = query.where(ContractorQuote.request_id == request_id)
        if contractor_id is not None:
            query = query.where(ContractorQuote.contractor_id == contractor_id)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        order = ContractorQuote.created_at.asc() if oldest_first else ContractorQuote.created_at.desc()
        result = await self.db.execute(
            query.options(selectinload(ContractorQuote.request))
            .order_by(order, ContractorQuote.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def set_selected(self, quote: ContractorQuote) -> None:
        """Select one quote and demote every sibling of the same request."""
        now = datetime.utcnow()
        await self.db.execute(
            update(ContractorQuote)
            .where(
                ContractorQuote.request_id == quote.request_id,
                ContractorQuote.id != quote.id,
            )
            .values(is_selected=False, selected_at=None, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        quote.is_selected = True
        quote.selected_at = now
        quote.updated_at = now
        await self.db.flush()

    async def find_selected_approved(self) -> list[ContractorQuote]:
        """
        Selected, approved quotes without a live late-installation penalty.

        Deadline arithmetic is left to the caller so it stays dialect neutral.
        """
        live_penalty = (
            select(PenaltyInstance.id)
            .where(
                PenaltyInstance.quote_id == ContractorQuote.id,
                PenaltyInstance.penalty_type == PenaltyType.LATE_INSTALLATION.value,
                PenaltyInstance.status.in_(_values(ACTIVE_PENALTY_STATUSES)),
            )
            .exists()
        )
        result = await self.db.execute(
            select(ContractorQuote)
            .where(
                ContractorQuote.admin_status == AdminStatus.APPROVED.value,
                ContractorQuote.is_selected.is_(True),
                ~live_penalty,
            )
            .order_by(ContractorQuote.id)
        )
        return list(result.scalars().all())

    async def admin_status_counts(self) -> dict[str, int]:
        result = await self.db.execute(
            select(ContractorQuote.admin_status, func.count()).group_by(
                ContractorQuote.admin_status
            )
        )
        return dict(result.all())

    async def platform_revenue(self) -> dict[str, Decimal]:
        """Commission and markup over approved quotes, split by selection."""
        result = await self.db.execute(
            select(
                ContractorQuote.is_selected,
                func.coalesce(func.sum(ContractorQuote.commission_amount), 0),
                func.coalesce(func.sum(ContractorQuote.overprice_amount), 0),
            )
            .where(ContractorQuote.admin_status == AdminStatus.APPROVED.value)
            .group_by(ContractorQuote.is_selected)
        )
        totals = {
            "approved_commission": Decimal("0"),
            "approved_markup": Decimal("0"),
            "selected_commission": Decimal("0"),
            "selected_markup": Decimal("0"),
        }
        for is_selected, commission, markup in result.all():
            totals["approved_commission"] += Decimal(str(commission))
            totals["approved_markup"] += Decimal(str(markup))
            if is_selected:
                totals["selected_commission"] += Decimal(str(commission))
                totals["selected_markup"] += Decimal(str(markup))
        return totals

    async def count_active_contractors(self, since: datetime) -> int:
        return await self.db.scalar(
            select(func.count(func.distinct(ContractorQuote.contractor_id))).where(
                ContractorQuote.created_at >= since
            )
        ) or 0

    async def recent(self, limit: int = 10) -> list[ContractorQuote]:
        result = await self.db.execute(
            select(ContractorQuote)
            .order_by(ContractorQuote.created_at.desc(), ContractorQuote.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class LineItemRepository:
    """Data access for quotation line items."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_many(
        self, quotation_id: int, items: Sequence[PricedLineItem]
    ) -> list[QuotationLineItem]:
        rows = [
            QuotationLineItem(quotation_id=quotation_id, **item.to_dict())
            for item in items
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def list_for_quotation(self, quotation_id: int) -> list[QuotationLineItem]:
        result = await self.db.execute(
            select(QuotationLineItem)
            .where(QuotationLineItem.quotation_id == quotation_id)
            .order_by(QuotationLineItem.serial_number)
        )
        return list(result.scalars().all())


class ComparisonRepository:
    """Data access for quote comparison records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, request_id: int, user_id: str) -> Optional[QuoteComparison]:
        result = await self.db.execute(
            select(QuoteComparison)
            .where(
                QuoteComparison.request_id == request_id,
                QuoteComparison.user_id == user_id,
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def record_view(
        self,
        request_id: int,
        user_id: str,
        quote_ids: Sequence[int],
        criteria: Optional[dict] = None,
    ) -> QuoteComparison:
        """Insert the comparison or bump its view count."""
        now = datetime.utcnow()
        comparison = await self.get(request_id, user_id)
        if comparison is None:
            comparison = QuoteComparison(
                request_id=request_id,
                user_id=user_id,
                compared_quotes=list(quote_ids),
                comparison_criteria=criteria,
                views_count=1,
                last_viewed_at=now,
            )
            self.db.add(comparison)
        else:
            comparison.compared_quotes = list(quote_ids)
            if criteria is not None:
                comparison.comparison_criteria = criteria
            comparison.views_count = comparison.views_count + 1
            comparison.last_viewed_at = now
        await self.db.flush()
        return comparison

    async def record_selection(
        self,
        request_id: int,
        user_id: str,
        quote_id: int,
        reason: Optional[str],
    ) -> QuoteComparison:
        comparison = await self.get(request_id, user_id)
        if comparison is None:
            comparison = QuoteComparison(
                request_id=request_id,
                user_id=user_id,
                compared_quotes=[quote_id],
                views_count=1,
                last_viewed_at=datetime.utcnow(),
            )
            self.db.add(comparison)
        comparison.selected_quote_id = quote_id
        comparison.selection_reason = reason
        await self.db.flush()
        return comparison


class PenaltyRuleRepository:
    """Data access for penalty rules."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, rule: PenaltyRule) -> PenaltyRule:
        self.db.add(rule)
        await self.db.flush()
        return rule

    async def get(self, rule_id: int) -> Optional[PenaltyRule]:
        return await self.db.get(PenaltyRule, rule_id)

    async def list_rules(
        self,
        penalty_type: Optional[PenaltyType] = None,
        active_only: bool = False,
    ) -> list[PenaltyRule]:
        query = select(PenaltyRule)
        if penalty_type is not None:
            query = query.where(PenaltyRule.penalty_type == penalty_type.value)
        if active_only:
            query = query.where(PenaltyRule.is_active.is_(True))
        result = await self.db.execute(query.order_by(PenaltyRule.id))
        return list(result.scalars().all())


class PenaltyInstanceRepository:
    """Data access for penalty instances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, penalty: PenaltyInstance) -> PenaltyInstance:
        self.db.add(penalty)
        await self.db.flush()
        return penalty

    async def get(self, penalty_id: int) -> Optional[PenaltyInstance]:
        return await self.db.get(PenaltyInstance, penalty_id)

    async def get_for_update(self, penalty_id: int) -> Optional[PenaltyInstance]:
        result = await self.db.execute(
            select(PenaltyInstance)
            .where(PenaltyInstance.id == penalty_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active(
        self, contractor_id: str, quote_id: int, penalty_type: PenaltyType
    ) -> Optional[PenaltyInstance]:
        result = await self.db.execute(
            select(PenaltyInstance).where(
                PenaltyInstance.contractor_id == contractor_id,
                PenaltyInstance.quote_id == quote_id,
                PenaltyInstance.penalty_type == penalty_type.value,
                PenaltyInstance.status.in_(_values(ACTIVE_PENALTY_STATUSES)),
            )
        )
        return result.scalars().first()

    async def list_for_contractor(
        self,
        contractor_id: str,
        status: Optional[PenaltyStatus] = None,
        penalty_type: Optional[PenaltyType] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[PenaltyInstance], int]:
        query = select(PenaltyInstance).where(PenaltyInstance.contractor_id == contractor_id)
        if status is not None:
            query = query.where(PenaltyInstance.status == status.value)
        if penalty_type is not None:
            query = query.where(PenaltyInstance.penalty_type == penalty_type.value)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(PenaltyInstance.created_at.desc(), PenaltyInstance.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def list_pending(self, limit: int = 100) -> list[PenaltyInstance]:
        result = await self.db.execute(
            select(PenaltyInstance)
            .where(PenaltyInstance.status == PenaltyStatus.PENDING.value)
            .order_by(PenaltyInstance.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def statistics(self, since: Optional[datetime] = None) -> list[tuple[str, str, int, Decimal]]:
        """(status, penalty_type, count, total amount) rows."""
        query = select(
            PenaltyInstance.status,
            PenaltyInstance.penalty_type,
            func.count(),
            func.coalesce(func.sum(PenaltyInstance.amount), 0),
        )
        if since is not None:
            query = query.where(PenaltyInstance.created_at >= since)
        result = await self.db.execute(
            query.group_by(PenaltyInstance.status, PenaltyInstance.penalty_type)
        )
        return [
            (status, penalty_type, count, Decimal(str(total)))
            for status, penalty_type, count, total in result.all()
        ]


class BusinessConfigRepository:
    """Data access for keyed business configuration."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, config_key: str, for_update: bool = False) -> Optional[BusinessConfig]:
        query = select(BusinessConfig).where(BusinessConfig.config_key == config_key)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def save(
        self,
        config_key: str,
        value: dict,
        changed_by: str,
    ) -> BusinessConfig:
        """Replace the value in place, bump the version and append history."""
        row = await self.get(config_key, for_update=True)
        old_value = None
        if row is None:
            row = BusinessConfig(
                config_key=config_key,
                config_value=value,
                version=1,
                updated_by=changed_by,
            )
            self.db.add(row)
        else:
            old_value = row.config_value
            row.config_value = value
            row.version = row.version + 1
            row.updated_by = changed_by
            row.updated_at = datetime.utcnow()

        self.db.add(
            BusinessConfigHistory(
                config_key=config_key,
                version=row.version,
                old_value=old_value,
                new_value=value,
                changed_by=changed_by,
            )
        )
        await self.db.flush()
        return row

    async def history(self, config_key: str, limit: int = 20) -> list[BusinessConfigHistory]:
        result = await self.db.execute(
            select(BusinessConfigHistory)
            .where(BusinessConfigHistory.config_key == config_key)
            .order_by(BusinessConfigHistory.version.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
