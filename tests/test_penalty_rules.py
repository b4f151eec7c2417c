"""Tests for penalty amount formulas, rule selection and severity bands."""

from decimal import Decimal

import pytest

from quote_engine.errors import BusinessRuleError
from quote_engine.penalties.rules import (
    AmountCalculation,
    PenaltyRuleSpec,
    PenaltyType,
    SeverityLevel,
    select_rule,
    severity_for_days,
)


def make_rule(calculation, value, maximum=None, severity=SeverityLevel.MODERATE, rule_id=1):
    return PenaltyRuleSpec(
        id=rule_id,
        rule_name=f"rule-{rule_id}",
        penalty_type=PenaltyType.LATE_INSTALLATION,
        severity_level=severity,
        amount_calculation=calculation,
        amount_value=Decimal(value),
        maximum_amount=Decimal(maximum) if maximum is not None else None,
    )


def test_fixed_amount():
    rule = make_rule(AmountCalculation.FIXED, "250")
    assert rule.compute_amount(Decimal("20000")) == Decimal("250.00")


def test_percentage_amount():
    rule = make_rule(AmountCalculation.PERCENTAGE, "5")
    assert rule.compute_amount(Decimal("20000")) == Decimal("1000.00")


def test_percentage_amount_is_capped():
    rule = make_rule(AmountCalculation.PERCENTAGE, "5", maximum="5000")
    assert rule.compute_amount(Decimal("200000")) == Decimal("5000.00")


def test_daily_amount_scales_with_days_overdue():
    rule = make_rule(AmountCalculation.DAILY, "100")
    assert rule.compute_amount(Decimal("20000"), days_overdue=6) == Decimal("600.00")


def test_daily_amount_needs_days_overdue():
    rule = make_rule(AmountCalculation.DAILY, "100")
    with pytest.raises(BusinessRuleError) as exc_info:
        rule.compute_amount(Decimal("20000"))

    assert exc_info.value.code == "DAYS_OVERDUE_REQUIRED"


@pytest.mark.parametrize(
    "days,severity",
    [
        (1, SeverityLevel.MINOR),
        (3, SeverityLevel.MINOR),
        (4, SeverityLevel.MODERATE),
        (7, SeverityLevel.MODERATE),
        (8, SeverityLevel.MAJOR),
        (14, SeverityLevel.MAJOR),
        (15, SeverityLevel.CRITICAL),
        (90, SeverityLevel.CRITICAL),
    ],
)
def test_severity_bands(days, severity):
    assert severity_for_days(days) == severity


def test_select_rule_prefers_matching_severity():
    moderate = make_rule(AmountCalculation.DAILY, "100", severity=SeverityLevel.MODERATE, rule_id=1)
    major = make_rule(AmountCalculation.PERCENTAGE, "5", severity=SeverityLevel.MAJOR, rule_id=2)

    assert select_rule([moderate, major], SeverityLevel.MODERATE) is moderate
    assert select_rule([moderate, major], SeverityLevel.MAJOR) is major


def test_select_rule_falls_back_to_most_severe():
    moderate = make_rule(AmountCalculation.DAILY, "100", severity=SeverityLevel.MODERATE, rule_id=1)
    major = make_rule(AmountCalculation.PERCENTAGE, "5", severity=SeverityLevel.MAJOR, rule_id=2)

    assert select_rule([moderate, major], SeverityLevel.CRITICAL) is major
    assert select_rule([moderate, major]) is major


def test_select_rule_ignores_inactive_rules():
    rule = make_rule(AmountCalculation.FIXED, "250")
    rule.is_active = False

    assert select_rule([rule]) is None
