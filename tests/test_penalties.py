"""Tests for the penalty engine: creation, wallet debit, disputes and rules."""

from decimal import Decimal

import pytest
from conftest import ADMIN_ID, CONTRACTOR_A, CONTRACTOR_B

from quote_engine.errors import BusinessRuleError, ConflictError, NotFoundError
from quote_engine.penalties.rules import PenaltyStatus, PenaltyType, SeverityLevel

pytestmark = pytest.mark.usefixtures("penalty_rules")


async def apply(services, quote, penalty_type=PenaltyType.COMMUNICATION_FAILURE, **kwargs):
    values = dict(
        contractor_id=quote.contractor_id,
        quote_id=quote.id,
        penalty_type=penalty_type,
        description="Missed two scheduled site visits",
        applied_by=ADMIN_ID,
    )
    values.update(kwargs)
    return await services.penalties.apply_penalty(**values)


async def test_fixed_penalty_applied_and_debited(services, wallet, selected_quote):
    penalty = await apply(services, selected_quote)

    assert penalty.status == PenaltyStatus.APPLIED.value
    assert penalty.amount == Decimal("250.00")
    assert penalty.applied_at is not None
    assert penalty.debit_attempts == 1
    assert wallet.debits == [(CONTRACTOR_A, Decimal("250.00"), penalty.id)]


async def test_duplicate_penalty_rejected(services, wallet, selected_quote):
    await apply(services, selected_quote)

    with pytest.raises(ConflictError) as exc_info:
        await apply(services, selected_quote)

    assert exc_info.value.code == "DUPLICATE_PENALTY"
    assert len(wallet.debits) == 1


async def test_other_penalty_type_allowed_on_same_quote(services, selected_quote):
    await apply(services, selected_quote)
    late = await apply(
        services, selected_quote, PenaltyType.LATE_INSTALLATION, severity=SeverityLevel.MODERATE,
        days_overdue=5,
    )

    assert late.amount == Decimal("500.00")


async def test_contractor_must_own_quote(services, selected_quote):
    with pytest.raises(BusinessRuleError) as exc_info:
        await apply(services, selected_quote, contractor_id=CONTRACTOR_B)

    assert exc_info.value.code == "QUOTE_CONTRACTOR_MISMATCH"


async def test_unknown_quote(services):
    with pytest.raises(NotFoundError):
        await services.penalties.apply_penalty(
            contractor_id=CONTRACTOR_A,
            quote_id=999,
            penalty_type=PenaltyType.COMMUNICATION_FAILURE,
            description="No such quote",
            applied_by=ADMIN_ID,
        )


async def test_penalty_type_without_rule(services, selected_quote):
    with pytest.raises(BusinessRuleError) as exc_info:
        await apply(services, selected_quote, PenaltyType.DOCUMENTATION_ISSUE)

    assert exc_info.value.code == "NO_PENALTY_RULE"


async def test_description_required(services, selected_quote):
    with pytest.raises(BusinessRuleError) as exc_info:
        await apply(services, selected_quote, description="  ")

    assert exc_info.value.code == "DESCRIPTION_REQUIRED"


async def test_custom_amount_overrides_rule(services, wallet, selected_quote):
    penalty = await apply(services, selected_quote, custom_amount=Decimal("75.555"))

    assert penalty.amount == Decimal("75.56")
    assert wallet.debits[0][1] == Decimal("75.56")


async def test_custom_amount_must_be_positive(services, selected_quote):
    with pytest.raises(BusinessRuleError) as exc_info:
        await apply(services, selected_quote, custom_amount=Decimal("0"))

    assert exc_info.value.code == "INVALID_PENALTY_AMOUNT"


async def test_daily_rule_needs_days_overdue(services, selected_quote):
    with pytest.raises(BusinessRuleError) as exc_info:
        await apply(
            services, selected_quote, PenaltyType.LATE_INSTALLATION, severity=SeverityLevel.MODERATE
        )

    assert exc_info.value.code == "DAYS_OVERDUE_REQUIRED"


async def test_percentage_rule_is_capped(services, selected_quote):
    await services.penalties.create_rule(
        {
            "rule_name": "Quality issue",
            "penalty_type": PenaltyType.QUALITY_ISSUE,
            "severity_level": SeverityLevel.MAJOR,
            "amount_calculation": "percentage",
            "amount_value": Decimal("10"),
            "maximum_amount": Decimal("1500"),
        }
    )

    penalty = await apply(services, selected_quote, PenaltyType.QUALITY_ISSUE)

    assert penalty.amount == Decimal("1500.00")


async def test_wallet_failure_leaves_penalty_pending(services, wallet, selected_quote):
    wallet.fail = True

    penalty = await apply(services, selected_quote)

    assert penalty.status == PenaltyStatus.PENDING.value
    assert penalty.debit_attempts == 1
    assert "timed out" in penalty.last_debit_error
    assert wallet.debits == []

    # A pending penalty still blocks a duplicate
    with pytest.raises(ConflictError):
        await apply(services, selected_quote)

    wallet.fail = False
    result = await services.penalties.reconcile_pending_penalties()

    assert result == {"checked": 1, "applied": 1, "still_pending": 0}
    page = await services.penalties.list_contractor_penalties(CONTRACTOR_A)
    reconciled = page.items[0]
    assert reconciled.status == PenaltyStatus.APPLIED.value
    assert reconciled.debit_attempts == 2
    assert reconciled.last_debit_error is None


async def test_reconcile_keeps_failing_penalties_pending(services, wallet, selected_quote):
    wallet.fail = True
    await apply(services, selected_quote)

    result = await services.penalties.reconcile_pending_penalties()

    assert result == {"checked": 1, "applied": 0, "still_pending": 1}


async def test_dispute_applied_penalty(services, selected_quote):
    penalty = await apply(services, selected_quote)

    disputed = await services.penalties.dispute_penalty(penalty.id, CONTRACTOR_A, " Visit was rescheduled ")

    assert disputed.status == PenaltyStatus.DISPUTED.value
    assert disputed.dispute_reason == "Visit was rescheduled"
    assert disputed.disputed_at is not None

    with pytest.raises(BusinessRuleError) as exc_info:
        await services.penalties.dispute_penalty(penalty.id, CONTRACTOR_A, "Again")
    assert exc_info.value.code == "INVALID_PENALTY_STATUS"


async def test_dispute_rules(services, wallet, selected_quote):
    wallet.fail = True
    penalty = await apply(services, selected_quote)

    with pytest.raises(BusinessRuleError) as exc_info:
        await services.penalties.dispute_penalty(penalty.id, CONTRACTOR_A, "Not applied yet")
    assert exc_info.value.code == "INVALID_PENALTY_STATUS"

    with pytest.raises(BusinessRuleError) as exc_info:
        await services.penalties.dispute_penalty(penalty.id, CONTRACTOR_B, "Not mine")
    assert exc_info.value.code == "UNAUTHORIZED_ACCESS"

    with pytest.raises(BusinessRuleError) as exc_info:
        await services.penalties.dispute_penalty(penalty.id, CONTRACTOR_A, "")
    assert exc_info.value.code == "DISPUTE_REASON_REQUIRED"

    with pytest.raises(NotFoundError):
        await services.penalties.dispute_penalty(999, CONTRACTOR_A, "Unknown")


async def test_contractor_penalty_listing_filters(services, selected_quote):
    await apply(services, selected_quote)
    await apply(
        services, selected_quote, PenaltyType.LATE_INSTALLATION, severity=SeverityLevel.MODERATE,
        days_overdue=2,
    )

    everything = await services.penalties.list_contractor_penalties(CONTRACTOR_A)
    late = await services.penalties.list_contractor_penalties(
        CONTRACTOR_A, penalty_type=PenaltyType.LATE_INSTALLATION
    )
    pending = await services.penalties.list_contractor_penalties(
        CONTRACTOR_A, status=PenaltyStatus.PENDING
    )

    assert everything.total == 2
    assert late.total == 1
    assert late.items[0].amount == Decimal("200.00")
    assert pending.total == 0


async def test_penalty_statistics(services, wallet, selected_quote):
    await apply(services, selected_quote)
    wallet.fail = True
    await apply(
        services, selected_quote, PenaltyType.LATE_INSTALLATION, severity=SeverityLevel.MAJOR
    )

    stats = await services.penalties.penalty_statistics()

    assert stats["total_count"] == 2
    assert stats["total_amount"] == Decimal("1250.00")
    assert stats["by_status"]["applied"] == {"count": 1, "amount": Decimal("250.00")}
    assert stats["by_status"]["pending"] == {"count": 1, "amount": Decimal("1000.00")}
    assert stats["by_type"]["late_installation"]["count"] == 1


async def test_rule_management(services):
    rules = await services.penalties.list_rules(PenaltyType.LATE_INSTALLATION)
    assert len(rules) == 2

    rule = await services.penalties.create_rule(
        {
            "rule_name": "Missing permit documents",
            "penalty_type": "documentation_issue",
            "severity_level": "moderate",
            "amount_calculation": "fixed",
            "amount_value": Decimal("500"),
        }
    )
    assert rule.id is not None
    assert rule.is_active is True
    assert rule.grace_period_hours == 0

    updated = await services.penalties.update_rule(rule.id, {"is_active": False})
    assert updated.is_active is False

    active = await services.penalties.list_rules(PenaltyType.DOCUMENTATION_ISSUE, active_only=True)
    assert active == []


@pytest.mark.parametrize(
    "changes",
    [
        {"amount_value": Decimal("0")},
        {"severity_level": "extreme"},
        {"amount_calculation": "percentage", "amount_value": Decimal("150")},
    ],
)
async def test_invalid_rule_rejected(services, changes):
    data = {
        "rule_name": "Custom",
        "penalty_type": "custom",
        "severity_level": "minor",
        "amount_calculation": "fixed",
        "amount_value": Decimal("100"),
    }
    data.update(changes)

    with pytest.raises(BusinessRuleError) as exc_info:
        await services.penalties.create_rule(data)

    assert exc_info.value.code == "INVALID_PENALTY_RULE"


async def test_update_unknown_rule(services):
    with pytest.raises(NotFoundError):
        await services.penalties.update_rule(999, {"is_active": False})
