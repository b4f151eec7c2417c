"""Tests for the scheduled penalty jobs."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from conftest import CONTRACTOR_A, backdate_quote

from quote_engine.penalties.rules import PenaltyStatus
from quote_engine.worker.scheduler import scheduler_status, setup_scheduler
from quote_engine.worker.tasks import PenaltyTaskRunner

pytestmark = pytest.mark.usefixtures("penalty_rules")


async def test_daily_check_penalises_overdue_installation(services, session_factory, wallet, selected_quote):
    await backdate_quote(session_factory, selected_quote.id, days=40)

    result = await services.tasks.run_daily_penalty_check()

    assert result == {"violations_detected": 1, "penalties_applied": 1, "errors": 0}
    page = await services.penalties.list_contractor_penalties(CONTRACTOR_A)
    penalty = page.items[0]
    # 10 days overdue is major: 5% of 20000
    assert penalty.amount == Decimal("1000.00")
    assert penalty.status == PenaltyStatus.APPLIED.value
    assert penalty.applied_by == services.settings.auto_penalty_applied_by
    assert penalty.evidence["days_overdue"] == 10
    assert len(wallet.debits) == 1


async def test_daily_check_is_idempotent(services, session_factory, wallet, selected_quote):
    await backdate_quote(session_factory, selected_quote.id, days=40)
    await services.tasks.run_daily_penalty_check()

    second = await services.tasks.run_daily_penalty_check()

    assert second == {"violations_detected": 0, "penalties_applied": 0, "errors": 0}
    assert len(wallet.debits) == 1


async def test_daily_check_ignores_quotes_within_timeline(services, selected_quote):
    result = await services.tasks.run_daily_penalty_check()

    assert result == {"violations_detected": 0, "penalties_applied": 0, "errors": 0}


async def test_daily_check_counts_failed_applications(services, session_factory, selected_quote):
    await backdate_quote(session_factory, selected_quote.id, days=40)
    rules = await services.penalties.list_rules()
    for rule in rules:
        await services.penalties.update_rule(rule.id, {"is_active": False})

    result = await services.tasks.run_daily_penalty_check()

    assert result == {"violations_detected": 1, "penalties_applied": 0, "errors": 1}


async def test_wallet_outage_still_records_penalty(services, session_factory, wallet, selected_quote):
    await backdate_quote(session_factory, selected_quote.id, days=40)
    wallet.fail = True

    result = await services.tasks.run_daily_penalty_check()
    assert result["penalties_applied"] == 1

    wallet.fail = False
    reconciled = await services.tasks.run_pending_reconciliation()

    assert reconciled == {"checked": 1, "applied": 1, "still_pending": 0}
    assert len(wallet.debits) == 1


async def test_manual_check_runs_daily_job(services, session_factory, selected_quote):
    await backdate_quote(session_factory, selected_quote.id, days=40)

    result = await services.tasks.run_manual_penalty_check()

    assert result["penalties_applied"] == 1


async def test_hourly_check_counts_critical_violations(services, selected_quote):
    today = datetime.utcnow().date()

    assert await services.tasks.run_hourly_critical_check(today + timedelta(days=35)) == 0
    assert await services.tasks.run_hourly_critical_check(today + timedelta(days=45)) == 1

    page = await services.penalties.list_contractor_penalties(CONTRACTOR_A)
    assert page.total == 0


async def test_weekly_statistics(services, session_factory, selected_quote):
    await backdate_quote(session_factory, selected_quote.id, days=40)
    await services.tasks.run_daily_penalty_check()

    stats = await services.tasks.run_weekly_statistics()

    assert stats["total_count"] == 1
    assert stats["total_amount"] == Decimal("1000.00")


def test_scheduler_jobs(settings):
    runner = PenaltyTaskRunner(detector=None, penalties=None)
    scheduler = setup_scheduler(runner, settings)

    status = scheduler_status(scheduler)

    assert status["running"] is False
    assert {job["id"] for job in status["jobs"]} == {
        "daily_penalty_check",
        "hourly_critical_check",
        "weekly_statistics",
        "pending_reconciliation",
    }


def test_scheduler_status_without_scheduler():
    assert scheduler_status(None) == {"running": False, "jobs": []}
