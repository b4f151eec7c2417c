"""Penalty rule engine: creation, wallet debit, disputes and reporting."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError

from quote_engine import metrics
from quote_engine.db.models import PenaltyInstance, PenaltyRule
from quote_engine.db.repositories import (
    ContractorQuoteRepository,
    PenaltyInstanceRepository,
    PenaltyRuleRepository,
)
from quote_engine.db.session import SessionFactory
from quote_engine.errors import (
    BusinessRuleError,
    ConflictError,
    DependencyError,
    NotFoundError,
    service_operation,
)
from quote_engine.logging_config import audit
from quote_engine.pagination import Page, page_window
from quote_engine.penalties.rules import (
    AmountCalculation,
    PenaltyRuleSpec,
    PenaltyStatus,
    PenaltyType,
    SeverityLevel,
    select_rule,
)
from quote_engine.pricing.calculator import qmoney, to_decimal

logger = logging.getLogger(__name__)

RULE_FIELDS = (
    "rule_name",
    "penalty_type",
    "description",
    "severity_level",
    "amount_calculation",
    "amount_value",
    "maximum_amount",
    "grace_period_hours",
    "is_active",
)


def _validate_rule(rule: PenaltyRule) -> None:
    """Check enum fields and amounts of a rule about to be stored."""
    try:
        PenaltyType(rule.penalty_type)
        SeverityLevel(rule.severity_level)
        calculation = AmountCalculation(rule.amount_calculation)
    except ValueError as exc:
        raise BusinessRuleError(str(exc), "INVALID_PENALTY_RULE") from exc

    if not rule.rule_name or not rule.rule_name.strip():
        raise BusinessRuleError("Rule name is required", "INVALID_PENALTY_RULE")
    if to_decimal(rule.amount_value, "amount_value") <= 0:
        raise BusinessRuleError("Rule amount must be greater than zero", "INVALID_PENALTY_RULE")
    if calculation == AmountCalculation.PERCENTAGE and to_decimal(rule.amount_value) > 100:
        raise BusinessRuleError(
            "Percentage rules cannot exceed 100 percent", "INVALID_PENALTY_RULE"
        )
    if rule.maximum_amount is not None and to_decimal(rule.maximum_amount, "maximum_amount") <= 0:
        raise BusinessRuleError("Maximum amount must be greater than zero", "INVALID_PENALTY_RULE")


class PenaltyEngine:
    """
    Creates penalty instances and drives their wallet debit.

    A penalty row is committed as pending before the wallet is called; the
    debit outcome is recorded in a separate transaction, so a wallet outage
    leaves a durable pending penalty for reconciliation.
    """

    def __init__(self, session_factory: SessionFactory, wallet, max_page_size: int = 100):
        self._session_factory = session_factory
        self._wallet = wallet
        self._max_page_size = max_page_size

    @service_operation("apply_penalty")
    async def apply_penalty(
        self,
        contractor_id: str,
        quote_id: int,
        penalty_type: PenaltyType,
        description: str,
        applied_by: str,
        custom_amount: Optional[Decimal] = None,
        severity: Optional[SeverityLevel] = None,
        days_overdue: Optional[int] = None,
        evidence: Optional[dict[str, Any]] = None,
    ) -> PenaltyInstance:
        """
        Create a penalty and try to debit it from the contractor's wallet.

        Args:
            contractor_id: Penalised contractor
            quote_id: Quote the penalty relates to
            penalty_type: Kind of penalty; an active rule must exist for it
            description: Ledger description
            applied_by: Admin id, or the system actor for automatic penalties
            custom_amount: Overrides the rule amount when given
            severity: Preferred rule severity
            days_overdue: Multiplier for daily rules
            evidence: Structured context stored with the penalty

        Returns:
            The penalty, applied if the debit succeeded and pending otherwise

        Raises:
            NotFoundError: Unknown quote
            BusinessRuleError: QUOTE_CONTRACTOR_MISMATCH, NO_PENALTY_RULE,
                INVALID_PENALTY_AMOUNT, DAYS_OVERDUE_REQUIRED
            ConflictError: DUPLICATE_PENALTY when a live penalty of the type exists
        """
        penalty_type = PenaltyType(penalty_type)
        severity = SeverityLevel(severity) if severity is not None else None
        if not description or not description.strip():
            raise BusinessRuleError("Penalty description is required", "DESCRIPTION_REQUIRED")

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    # Quote row lock serialises the duplicate check
                    quote = await ContractorQuoteRepository(db).get_for_update(quote_id)
                    if quote is None:
                        raise NotFoundError("Quote", details={"quote_id": quote_id})
                    if quote.contractor_id != contractor_id:
                        raise BusinessRuleError(
                            "Quote does not belong to this contractor",
                            "QUOTE_CONTRACTOR_MISMATCH",
                            {"quote_id": quote_id, "contractor_id": contractor_id},
                        )

                    rules = await PenaltyRuleRepository(db).list_rules(penalty_type, active_only=True)
                    rule = select_rule([PenaltyRuleSpec.from_model(r) for r in rules], severity)
                    if rule is None:
                        raise BusinessRuleError(
                            f"No active penalty rule for {penalty_type.value}",
                            "NO_PENALTY_RULE",
                            {"penalty_type": penalty_type.value},
                        )

                    penalties = PenaltyInstanceRepository(db)
                    existing = await penalties.find_active(contractor_id, quote_id, penalty_type)
                    if existing is not None:
                        raise ConflictError(
                            "An active penalty of this type already exists for the quote",
                            "DUPLICATE_PENALTY",
                            {"penalty_id": existing.id, "status": existing.status},
                        )

                    if custom_amount is not None:
                        amount = qmoney(to_decimal(custom_amount, "custom_amount"))
                        if amount <= 0:
                            raise BusinessRuleError(
                                "Penalty amount must be greater than zero",
                                "INVALID_PENALTY_AMOUNT",
                                {"amount": str(amount)},
                            )
                    else:
                        amount = rule.compute_amount(quote.base_price, days_overdue)

                    penalty = await penalties.add(
                        PenaltyInstance(
                            contractor_id=contractor_id,
                            quote_id=quote_id,
                            rule_id=rule.id,
                            penalty_type=penalty_type.value,
                            description=description.strip(),
                            amount=amount,
                            status=PenaltyStatus.PENDING.value,
                            applied_by=applied_by,
                            evidence=evidence,
                        )
                    )
        except IntegrityError as exc:
            raise ConflictError(
                "An active penalty of this type already exists for the quote",
                "DUPLICATE_PENALTY",
                {"quote_id": quote_id, "penalty_type": penalty_type.value},
            ) from exc

        logger.info(
            f"Penalty {penalty.id} ({penalty_type.value}, {amount}) created for "
            f"contractor {contractor_id} on quote {quote_id}"
        )
        audit(
            "PENALTY_CREATED",
            penalty_id=penalty.id,
            contractor_id=contractor_id,
            quote_id=quote_id,
            rule_id=rule.id,
            penalty_type=penalty_type,
            amount=amount,
            applied_by=applied_by,
        )

        await self._attempt_debit(penalty)
        metrics.record_penalty_created(penalty_type.value, penalty.status)
        return penalty

    async def _attempt_debit(self, penalty: PenaltyInstance) -> bool:
        """
        Debit a pending penalty and record the outcome.

        The wallet call happens outside any transaction. On failure the
        penalty stays pending with the error recorded.
        """
        error: Optional[str] = None
        try:
            accepted = await self._wallet.apply_penalty_debit(
                penalty.contractor_id, penalty.amount, penalty.description, penalty.id
            )
            if not accepted:
                error = "wallet declined the debit"
        except DependencyError as e:
            error = e.message

        async with self._session_factory() as db:
            async with db.begin():
                row = await PenaltyInstanceRepository(db).get_for_update(penalty.id)
                row.debit_attempts = row.debit_attempts + 1
                now = datetime.utcnow()
                if error is None and row.status == PenaltyStatus.PENDING.value:
                    row.status = PenaltyStatus.APPLIED.value
                    row.applied_at = now
                    row.last_debit_error = None
                elif error is not None:
                    row.last_debit_error = error
                row.updated_at = now

        penalty.status = row.status
        penalty.applied_at = row.applied_at
        penalty.debit_attempts = row.debit_attempts
        penalty.last_debit_error = row.last_debit_error

        if error is not None:
            metrics.wallet_debit_failures_total.inc()
            logger.warning(
                f"Wallet debit for penalty {penalty.id} failed, left pending: {error}"
            )
            return False

        audit(
            "PENALTY_APPLIED",
            penalty_id=penalty.id,
            contractor_id=penalty.contractor_id,
            amount=penalty.amount,
            debit_attempts=penalty.debit_attempts,
        )
        return True

    @service_operation("dispute_penalty")
    async def dispute_penalty(self, penalty_id: int, contractor_id: str, reason: str) -> PenaltyInstance:
        """
        Contest an applied penalty.

        Raises:
            NotFoundError: Unknown penalty
            BusinessRuleError: DISPUTE_REASON_REQUIRED, UNAUTHORIZED_ACCESS,
                INVALID_PENALTY_STATUS unless the penalty is applied
        """
        if not reason or not reason.strip():
            raise BusinessRuleError("A dispute reason is required", "DISPUTE_REASON_REQUIRED")

        async with self._session_factory() as db:
            async with db.begin():
                penalty = await PenaltyInstanceRepository(db).get_for_update(penalty_id)
                if penalty is None:
                    raise NotFoundError("Penalty", details={"penalty_id": penalty_id})
                if penalty.contractor_id != contractor_id:
                    raise BusinessRuleError(
                        "Penalty belongs to another contractor",
                        "UNAUTHORIZED_ACCESS",
                        {"penalty_id": penalty_id},
                    )
                if penalty.status != PenaltyStatus.APPLIED.value:
                    raise BusinessRuleError(
                        f"Only applied penalties can be disputed (status {penalty.status})",
                        "INVALID_PENALTY_STATUS",
                        {"penalty_id": penalty_id, "status": penalty.status},
                    )
                now = datetime.utcnow()
                penalty.status = PenaltyStatus.DISPUTED.value
                penalty.dispute_reason = reason.strip()
                penalty.disputed_at = now
                penalty.updated_at = now

        logger.info(f"Penalty {penalty_id} disputed by contractor {contractor_id}")
        audit(
            "PENALTY_DISPUTED",
            penalty_id=penalty_id,
            contractor_id=contractor_id,
            reason=reason.strip(),
        )
        return penalty

    @service_operation("list_contractor_penalties")
    async def list_contractor_penalties(
        self,
        contractor_id: str,
        status: Optional[PenaltyStatus] = None,
        penalty_type: Optional[PenaltyType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[PenaltyInstance]:
        page, limit, offset = page_window(page, limit, self._max_page_size)
        async with self._session_factory() as db:
            rows, total = await PenaltyInstanceRepository(db).list_for_contractor(
                contractor_id, status, penalty_type, offset, limit
            )
        return Page(items=rows, total=total, page=page, limit=limit)

    @service_operation("reconcile_pending_penalties")
    async def reconcile_pending_penalties(self, limit: int = 100) -> dict[str, int]:
        """Retry the wallet debit of pending penalties, oldest first."""
        async with self._session_factory() as db:
            pending = await PenaltyInstanceRepository(db).list_pending(limit)

        applied = 0
        for penalty in pending:
            if await self._attempt_debit(penalty):
                applied += 1

        result = {"checked": len(pending), "applied": applied, "still_pending": len(pending) - applied}
        if pending:
            logger.info(
                f"Pending penalty reconciliation: {applied}/{len(pending)} debited"
            )
        return result

    @service_operation("penalty_statistics")
    async def penalty_statistics(self, since: Optional[datetime] = None) -> dict[str, Any]:
        """Counts and amounts by status and by type."""
        async with self._session_factory() as db:
            rows = await PenaltyInstanceRepository(db).statistics(since)

        by_status: dict[str, dict] = {}
        by_type: dict[str, dict] = {}
        total_count = 0
        total_amount = Decimal("0.00")
        for status, penalty_type, count, amount in rows:
            for bucket, key in ((by_status, status), (by_type, penalty_type)):
                entry = bucket.setdefault(key, {"count": 0, "amount": Decimal("0.00")})
                entry["count"] += count
                entry["amount"] = qmoney(entry["amount"] + amount)
            total_count += count
            total_amount = qmoney(total_amount + amount)

        return {
            "since": since,
            "total_count": total_count,
            "total_amount": total_amount,
            "by_status": by_status,
            "by_type": by_type,
        }

    @service_operation("list_penalty_rules")
    async def list_rules(
        self, penalty_type: Optional[PenaltyType] = None, active_only: bool = False
    ) -> list[PenaltyRule]:
        async with self._session_factory() as db:
            return await PenaltyRuleRepository(db).list_rules(penalty_type, active_only)

    @service_operation("create_penalty_rule")
    async def create_rule(self, data: Mapping[str, Any]) -> PenaltyRule:
        values = {
            key: getattr(data[key], "value", data[key])
            for key in RULE_FIELDS
            if data.get(key) is not None
        }
        values.setdefault("grace_period_hours", 0)
        values.setdefault("is_active", True)
        rule = PenaltyRule(**values)
        _validate_rule(rule)

        async with self._session_factory() as db:
            async with db.begin():
                await PenaltyRuleRepository(db).add(rule)

        audit("PENALTY_RULE_CREATED", rule_id=rule.id, rule_name=rule.rule_name)
        return rule

    @service_operation("update_penalty_rule")
    async def update_rule(self, rule_id: int, changes: Mapping[str, Any]) -> PenaltyRule:
        async with self._session_factory() as db:
            async with db.begin():
                rule = await PenaltyRuleRepository(db).get(rule_id)
                if rule is None:
                    raise NotFoundError("Penalty rule", details={"rule_id": rule_id})
                for key in RULE_FIELDS:
                    if key in changes and changes[key] is not None:
                        setattr(rule, key, getattr(changes[key], "value", changes[key]))
                _validate_rule(rule)
                rule.updated_at = datetime.utcnow()

        audit("PENALTY_RULE_UPDATED", rule_id=rule_id, changes=dict(changes))
        return rule
