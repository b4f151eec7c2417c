"""Admin routes for the active pricing configuration."""

from typing import List

from fastapi import APIRouter, Depends, Query

from quote_engine.api.deps import get_admin_id, get_services, require_admin_api_key
from quote_engine.api.schemas import (
    PricingConfigHistoryEntry,
    PricingConfigResponse,
    PricingConfigUpdate,
    PricingConfigValues,
)
from quote_engine.container import Services

router = APIRouter(
    prefix="/api/admin/pricing-config",
    tags=["pricing"],
    dependencies=[Depends(require_admin_api_key)],
)


@router.get("", response_model=PricingConfigResponse)
async def get_pricing_config(services: Services = Depends(get_services)):
    """Active pricing config with its version."""
    return await services.pricing.get_config_details()


@router.put("", response_model=PricingConfigValues)
async def update_pricing_config(
    data: PricingConfigUpdate,
    admin_id: str = Depends(get_admin_id),
    services: Services = Depends(get_services),
):
    """Change pricing parameters; applies to quotes priced from now on."""
    return await services.admin.update_pricing_config(data.model_dump(exclude_none=True), admin_id)


@router.get("/history", response_model=List[PricingConfigHistoryEntry])
async def pricing_config_history(
    limit: int = Query(20, ge=1, le=100),
    services: Services = Depends(get_services),
):
    """Previous versions, newest first."""
    return await services.pricing.history(limit)
