"""Admin penalty routes: rules, manual penalties, statistics and jobs."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request

from quote_engine.api.deps import get_admin_id, get_services, require_admin_api_key
from quote_engine.api.schemas import (
    PenaltyApplyRequest,
    PenaltyCheckResponse,
    PenaltyResponse,
    PenaltyRuleCreate,
    PenaltyRuleResponse,
    PenaltyRuleUpdate,
    PenaltyStatisticsResponse,
    ReconcileResponse,
    SchedulerStatusResponse,
    SLAViolationResponse,
)
from quote_engine.container import Services
from quote_engine.penalties.rules import PenaltyType
from quote_engine.worker.scheduler import scheduler_status

router = APIRouter(
    prefix="/api/admin/penalties",
    tags=["penalties"],
    dependencies=[Depends(require_admin_api_key)],
)


@router.post("", response_model=PenaltyResponse, status_code=201)
async def apply_penalty(
    data: PenaltyApplyRequest,
    admin_id: str = Depends(get_admin_id),
    services: Services = Depends(get_services),
):
    """Apply a manual penalty; the wallet debit is attempted immediately."""
    return await services.admin.apply_manual_penalty(admin_id, **data.model_dump())


@router.get("/statistics", response_model=PenaltyStatisticsResponse)
async def penalty_statistics(
    since: Optional[datetime] = None,
    services: Services = Depends(get_services),
):
    """Penalty counts and amounts by status and type."""
    return await services.penalties.penalty_statistics(since)


@router.get("/violations", response_model=List[SLAViolationResponse])
async def sla_violations(services: Services = Depends(get_services)):
    """Current SLA violations, without applying anything."""
    return await services.detector.detect()


@router.post("/check", response_model=PenaltyCheckResponse)
async def run_penalty_check(services: Services = Depends(get_services)):
    """Run the daily penalty job now."""
    return await services.tasks.run_manual_penalty_check()


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_pending(services: Services = Depends(get_services)):
    """Retry wallet debits for pending penalties now."""
    return await services.tasks.run_pending_reconciliation()


@router.get("/scheduler", response_model=SchedulerStatusResponse)
async def get_scheduler_status(request: Request):
    """Scheduler state and next run times."""
    return scheduler_status(getattr(request.app.state, "scheduler", None))


@router.get("/rules", response_model=List[PenaltyRuleResponse])
async def list_rules(
    penalty_type: Optional[PenaltyType] = None,
    active_only: bool = False,
    services: Services = Depends(get_services),
):
    """List penalty rules."""
    return await services.penalties.list_rules(penalty_type, active_only)


@router.post("/rules", response_model=PenaltyRuleResponse, status_code=201)
async def create_rule(data: PenaltyRuleCreate, services: Services = Depends(get_services)):
    """Create a penalty rule."""
    return await services.penalties.create_rule(data.model_dump())


@router.patch("/rules/{rule_id}", response_model=PenaltyRuleResponse)
async def update_rule(
    rule_id: int,
    data: PenaltyRuleUpdate,
    services: Services = Depends(get_services),
):
    """Update a penalty rule."""
    return await services.penalties.update_rule(rule_id, data.model_dump(exclude_unset=True))
