"""Penalty rule definitions and amount formulas."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

from quote_engine.errors import BusinessRuleError
from quote_engine.pricing.calculator import HUNDRED, qmoney, to_decimal


class PenaltyType(str, Enum):
    """Kinds of contractor penalties."""

    LATE_INSTALLATION = "late_installation"
    QUALITY_ISSUE = "quality_issue"
    COMMUNICATION_FAILURE = "communication_failure"
    DOCUMENTATION_ISSUE = "documentation_issue"
    CUSTOM = "custom"


class SeverityLevel(str, Enum):
    """Penalty severity, ordered from least to most severe."""

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [
    SeverityLevel.MINOR,
    SeverityLevel.MODERATE,
    SeverityLevel.MAJOR,
    SeverityLevel.CRITICAL,
]


class AmountCalculation(str, Enum):
    """How a rule turns into a monetary amount."""

    FIXED = "fixed"  # amount_value
    PERCENTAGE = "percentage"  # base_price * amount_value / 100, capped at maximum_amount
    DAILY = "daily"  # amount_value * days_overdue


class PenaltyStatus(str, Enum):
    """Lifecycle of a penalty instance."""

    PENDING = "pending"
    APPLIED = "applied"
    DISPUTED = "disputed"
    WAIVED = "waived"
    REVERSED = "reversed"


# Statuses that block a second penalty for the same (contractor, quote, type)
ACTIVE_PENALTY_STATUSES = frozenset(
    {PenaltyStatus.PENDING, PenaltyStatus.APPLIED, PenaltyStatus.DISPUTED}
)
CLOSED_PENALTY_STATUSES = frozenset({PenaltyStatus.WAIVED, PenaltyStatus.REVERSED})


def severity_for_days(days_overdue: int) -> SeverityLevel:
    """Map days overdue to severity: <=3 minor, <=7 moderate, <=14 major, else critical."""
    if days_overdue <= 3:
        return SeverityLevel.MINOR
    if days_overdue <= 7:
        return SeverityLevel.MODERATE
    if days_overdue <= 14:
        return SeverityLevel.MAJOR
    return SeverityLevel.CRITICAL


@dataclass
class PenaltyRuleSpec:
    """Snapshot of a stored penalty rule."""

    id: Optional[int]
    rule_name: str
    penalty_type: PenaltyType
    severity_level: SeverityLevel
    amount_calculation: AmountCalculation
    amount_value: Decimal
    maximum_amount: Optional[Decimal] = None
    is_active: bool = True

    @classmethod
    def from_model(cls, rule: Any) -> "PenaltyRuleSpec":
        return cls(
            id=rule.id,
            rule_name=rule.rule_name,
            penalty_type=PenaltyType(rule.penalty_type),
            severity_level=SeverityLevel(rule.severity_level),
            amount_calculation=AmountCalculation(rule.amount_calculation),
            amount_value=to_decimal(rule.amount_value),
            maximum_amount=(
                to_decimal(rule.maximum_amount) if rule.maximum_amount is not None else None
            ),
            is_active=rule.is_active,
        )

    def compute_amount(
        self,
        base_price: Decimal,
        days_overdue: Optional[int] = None,
    ) -> Decimal:
        """
        Resolve the penalty amount for a quote.

        Args:
            base_price: Base price of the penalised quote
            days_overdue: Required for daily rules

        Returns:
            Amount rounded to cents

        Raises:
            BusinessRuleError: DAYS_OVERDUE_REQUIRED for a daily rule without a day count
        """
        if self.amount_calculation == AmountCalculation.FIXED:
            return qmoney(self.amount_value)

        if self.amount_calculation == AmountCalculation.PERCENTAGE:
            amount = qmoney(to_decimal(base_price) * self.amount_value / HUNDRED)
            if self.maximum_amount is not None and amount > self.maximum_amount:
                amount = qmoney(self.maximum_amount)
            return amount

        if self.amount_calculation == AmountCalculation.DAILY:
            if days_overdue is None or days_overdue <= 0:
                raise BusinessRuleError(
                    "Daily penalty rules need a positive number of days overdue",
                    "DAYS_OVERDUE_REQUIRED",
                    {"rule_id": self.id},
                )
            return qmoney(self.amount_value * days_overdue)

        raise BusinessRuleError(
            f"Unsupported amount calculation {self.amount_calculation}",
            "INVALID_PENALTY_RULE",
            {"rule_id": self.id},
        )


def select_rule(
    rules: Iterable[PenaltyRuleSpec],
    severity: Optional[SeverityLevel] = None,
) -> Optional[PenaltyRuleSpec]:
    """
    Pick the rule to apply from the active rules of one type.

    Prefers a rule whose severity matches; otherwise the most severe rule.
    """
    candidates = [rule for rule in rules if rule.is_active]
    if not candidates:
        return None
    if severity is not None:
        for rule in candidates:
            if rule.severity_level == severity:
                return rule
    return max(candidates, key=lambda rule: (rule.severity_level.rank, rule.id or 0))
