"""Versioned storage of the platform pricing config."""

import logging
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from quote_engine.db.repositories import BusinessConfigRepository
from quote_engine.db.session import SessionFactory
from quote_engine.errors import BusinessRuleError, service_operation
from quote_engine.logging_config import audit
from quote_engine.pricing.calculator import PricingConfig, validate_pricing_config

logger = logging.getLogger(__name__)

PRICING_CONFIG_KEY = "pricing_rules"


async def read_pricing_config(db: AsyncSession) -> PricingConfig:
    """Read the active pricing config inside the caller's session (defaults if unset)."""
    row = await BusinessConfigRepository(db).get(PRICING_CONFIG_KEY)
    if row is None:
        return PricingConfig()
    return PricingConfig.from_dict(row.config_value or {})


class PricingConfigStore:
    """Reads and updates the pricing_rules business config."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    @service_operation("get_pricing_config")
    async def get_config(self) -> PricingConfig:
        async with self._session_factory() as db:
            return await read_pricing_config(db)

    @service_operation("get_pricing_config_details")
    async def get_config_details(self) -> dict:
        """Config plus version metadata."""
        async with self._session_factory() as db:
            row = await BusinessConfigRepository(db).get(PRICING_CONFIG_KEY)
            if row is None:
                return {"config": PricingConfig(), "version": 0, "updated_by": None, "updated_at": None}
            return {
                "config": PricingConfig.from_dict(row.config_value or {}),
                "version": row.version,
                "updated_by": row.updated_by,
                "updated_at": row.updated_at,
            }

    @service_operation("update_pricing_config")
    async def update_config(self, changes: Mapping[str, Any], admin_id: str) -> PricingConfig:
        """
        Merge changes into the active config, validate and persist.

        Args:
            changes: Subset of PricingConfig fields to change
            admin_id: Admin performing the change

        Returns:
            The new active config

        Raises:
            BusinessRuleError: Unknown keys or values outside the allowed bounds
        """
        unknown = set(changes) - set(PricingConfig.__dataclass_fields__)
        if unknown:
            raise BusinessRuleError(
                f"Unknown pricing config keys: {', '.join(sorted(unknown))}",
                "INVALID_PRICING_CONFIG",
                {"unknown_keys": sorted(unknown)},
            )

        async with self._session_factory() as db:
            async with db.begin():
                repo = BusinessConfigRepository(db)
                row = await repo.get(PRICING_CONFIG_KEY, for_update=True)
                current = PricingConfig.from_dict(row.config_value if row else {})

                merged = current.to_dict()
                merged.update({key: value for key, value in changes.items() if value is not None})
                updated = PricingConfig.from_dict(merged)
                validate_pricing_config(updated)

                saved = await repo.save(PRICING_CONFIG_KEY, updated.to_dict(), admin_id)
                version = saved.version

        logger.info(f"Pricing config updated to version {version} by {admin_id}")
        audit(
            "PRICING_CONFIG_UPDATED",
            admin_id=admin_id,
            version=version,
            old_value=current.to_dict(),
            new_value=updated.to_dict(),
        )
        return updated

    @service_operation("pricing_config_history")
    async def history(self, limit: int = 20) -> list[dict]:
        async with self._session_factory() as db:
            rows = await BusinessConfigRepository(db).history(PRICING_CONFIG_KEY, limit)
            return [
                {
                    "version": row.version,
                    "old_value": row.old_value,
                    "new_value": row.new_value,
                    "changed_by": row.changed_by,
                    "changed_at": row.changed_at,
                }
                for row in rows
            ]
