"""SLA violation detection for overdue installations."""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from quote_engine.db.models import ContractorQuote
from quote_engine.db.repositories import ContractorQuoteRepository
from quote_engine.db.session import SessionFactory
from quote_engine.errors import service_operation
from quote_engine.penalties.rules import SeverityLevel, severity_for_days

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SLAViolation:
    """An approved, selected quote whose installation deadline has passed."""

    quote_id: int
    request_id: int
    contractor_id: str
    base_price: Decimal
    installation_timeline_days: int
    deadline: date
    days_overdue: int
    severity: SeverityLevel

    @property
    def description(self) -> str:
        return (
            f"Installation overdue by {self.days_overdue} days. "
            "Expected completion exceeded."
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["deadline"] = self.deadline.isoformat()
        data["base_price"] = str(self.base_price)
        return data


def installation_deadline(quote: ContractorQuote) -> date:
    """Quote creation date plus the promised installation timeline."""
    return quote.created_at.date() + timedelta(days=quote.installation_timeline_days)


def violation_for(quote: ContractorQuote, today: date) -> Optional[SLAViolation]:
    """Build the violation for a quote if its deadline has passed."""
    deadline = installation_deadline(quote)
    if today <= deadline:
        return None
    days_overdue = (today - deadline).days
    return SLAViolation(
        quote_id=quote.id,
        request_id=quote.request_id,
        contractor_id=quote.contractor_id,
        base_price=quote.base_price,
        installation_timeline_days=quote.installation_timeline_days,
        deadline=deadline,
        days_overdue=days_overdue,
        severity=severity_for_days(days_overdue),
    )


class SLAViolationDetector:
    """Finds overdue installations. Read only; applying penalties is a separate step."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    @service_operation("detect_sla_violations")
    async def detect(self, today: Optional[date] = None) -> list[SLAViolation]:
        """
        Scan selected, approved quotes without a live late-installation penalty.

        Args:
            today: Evaluation date, defaults to the current UTC date

        Returns:
            Violations ordered by days overdue, most overdue first
        """
        today = today or datetime.utcnow().date()
        async with self._session_factory() as db:
            candidates = await ContractorQuoteRepository(db).find_selected_approved()

        violations = [v for v in (violation_for(q, today) for q in candidates) if v is not None]
        violations.sort(key=lambda v: (-v.days_overdue, v.quote_id))

        logger.debug(
            f"SLA scan on {today.isoformat()}: {len(candidates)} candidates, "
            f"{len(violations)} violations"
        )
        return violations
