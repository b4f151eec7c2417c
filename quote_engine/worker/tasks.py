"""Background penalty tasks run by the scheduler or on demand."""

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Any, Optional

from quote_engine import metrics
from quote_engine.errors import ConflictError, QuoteEngineError
from quote_engine.penalties.engine import PenaltyEngine
from quote_engine.penalties.rules import PenaltyType, SeverityLevel
from quote_engine.penalties.sla import SLAViolationDetector

logger = logging.getLogger(__name__)


class PenaltyTaskRunner:
    """
    Runner for the recurring penalty jobs.

    Every task is safe to run concurrently with itself: a second run that
    reaches the same overdue quote hits the duplicate-penalty guard and
    charges nothing.
    """

    def __init__(
        self,
        detector: SLAViolationDetector,
        penalties: PenaltyEngine,
        applied_by: str = "SYSTEM_AUTO",
    ):
        self.detector = detector
        self.penalties = penalties
        self.applied_by = applied_by

    async def run_daily_penalty_check(self, today: Optional[date] = None) -> dict[str, int]:
        """
        Detect SLA violations and apply a late-installation penalty for each.

        Returns:
            Counts of violations_detected, penalties_applied and errors, where
            errors is the number of violations that did not yield a new penalty
        """
        logger.info("Running daily penalty check")
        try:
            violations = await self.detector.detect(today)
            metrics.record_sla_violations(Counter(v.severity.value for v in violations))

            applied = 0
            duplicates = 0
            for violation in violations:
                try:
                    await self.penalties.apply_penalty(
                        contractor_id=violation.contractor_id,
                        quote_id=violation.quote_id,
                        penalty_type=PenaltyType.LATE_INSTALLATION,
                        description=violation.description,
                        applied_by=self.applied_by,
                        severity=violation.severity,
                        days_overdue=violation.days_overdue,
                        evidence=violation.to_dict(),
                    )
                    applied += 1
                except ConflictError:
                    duplicates += 1
                    logger.info(f"Quote {violation.quote_id} already has a late-installation penalty")
                except QuoteEngineError as e:
                    logger.error(
                        f"Failed to apply penalty for quote {violation.quote_id}: {e.code} {e.message}"
                    )
        except Exception:
            metrics.record_scheduler_run("daily_penalty_check", False)
            raise

        metrics.record_scheduler_run("daily_penalty_check", True)
        result = {
            "violations_detected": len(violations),
            "penalties_applied": applied,
            "errors": len(violations) - applied,
        }
        logger.info(
            f"Daily penalty check complete: {result['violations_detected']} violations, "
            f"{result['penalties_applied']} penalties applied, {duplicates} already penalised"
        )
        return result

    async def run_manual_penalty_check(self) -> dict[str, int]:
        """On-demand run of the daily job."""
        logger.info("Manual penalty check triggered")
        return await self.run_daily_penalty_check()

    async def run_hourly_critical_check(self, today: Optional[date] = None) -> int:
        """Log critical violations without applying anything."""
        try:
            violations = await self.detector.detect(today)
        except Exception:
            metrics.record_scheduler_run("hourly_critical_check", False)
            raise

        metrics.record_sla_violations(Counter(v.severity.value for v in violations))
        critical = [v for v in violations if v.severity == SeverityLevel.CRITICAL]
        for violation in critical:
            logger.warning(
                f"Critical SLA violation: quote {violation.quote_id} "
                f"(contractor {violation.contractor_id}) is {violation.days_overdue} days overdue"
            )
        metrics.record_scheduler_run("hourly_critical_check", True)
        return len(critical)

    async def run_weekly_statistics(self) -> dict[str, Any]:
        """Roll up the last week of penalties into the log."""
        since = datetime.utcnow() - timedelta(days=7)
        try:
            stats = await self.penalties.penalty_statistics(since)
        except Exception:
            metrics.record_scheduler_run("weekly_statistics", False)
            raise

        metrics.record_scheduler_run("weekly_statistics", True)
        logger.info(
            f"Weekly penalty statistics: {stats['total_count']} penalties "
            f"totalling {stats['total_amount']}",
            extra={"by_status": {k: v["count"] for k, v in stats["by_status"].items()}},
        )
        return stats

    async def run_pending_reconciliation(self) -> dict[str, int]:
        """Retry wallet debits for penalties left pending."""
        try:
            result = await self.penalties.reconcile_pending_penalties()
        except Exception:
            metrics.record_scheduler_run("pending_reconciliation", False)
            raise

        metrics.record_scheduler_run("pending_reconciliation", True)
        return result
