"""Tests for the versioned pricing config store."""

from decimal import Decimal

import pytest
from conftest import ADMIN_ID

from quote_engine.errors import BusinessRuleError
from quote_engine.pricing.calculator import PricingConfig
from quote_engine.quotes.requests import NewQuoteRequest


async def test_defaults_when_unset(services):
    details = await services.pricing.get_config_details()

    assert details["config"] == PricingConfig()
    assert details["version"] == 0
    assert details["updated_by"] is None
    assert await services.pricing.history() == []


async def test_update_bumps_version_and_records_history(services):
    updated = await services.pricing.update_config(
        {"platform_overprice_percent": "12.5", "max_price_per_kwp": None}, ADMIN_ID
    )
    assert updated.platform_overprice_percent == Decimal("12.5")
    assert updated.max_price_per_kwp == Decimal("2000")

    await services.pricing.update_config({"platform_commission_percent": 18}, "admin-2")

    details = await services.pricing.get_config_details()
    assert details["version"] == 2
    assert details["updated_by"] == "admin-2"
    assert details["config"].platform_commission_percent == Decimal("18")
    assert details["config"].platform_overprice_percent == Decimal("12.5")

    history = await services.pricing.history()
    assert [entry["version"] for entry in history] == [2, 1]
    assert history[1]["old_value"] is None
    assert history[0]["old_value"]["platform_commission_percent"] == "15"
    assert history[0]["new_value"]["platform_commission_percent"] == "18"
    assert history[0]["changed_by"] == "admin-2"


async def test_unknown_key_rejected(services):
    with pytest.raises(BusinessRuleError) as exc_info:
        await services.pricing.update_config({"vat_percent": "20"}, ADMIN_ID)

    assert exc_info.value.code == "INVALID_PRICING_CONFIG"
    assert exc_info.value.details["unknown_keys"] == ["vat_percent"]


@pytest.mark.parametrize(
    "changes,code",
    [
        ({"platform_commission_percent": "60"}, "COMMISSION_TOO_HIGH"),
        ({"platform_overprice_percent": "51"}, "OVERPRICE_TOO_HIGH"),
        ({"min_system_size_kwp": "2000"}, "INVALID_SYSTEM_SIZE_RANGE"),
        ({"max_price_per_kwp": "abc"}, "INVALID_NUMBER"),
    ],
)
async def test_invalid_values_leave_config_unchanged(services, changes, code):
    with pytest.raises(BusinessRuleError) as exc_info:
        await services.pricing.update_config(changes, ADMIN_ID)

    assert exc_info.value.code == code
    details = await services.pricing.get_config_details()
    assert details["version"] == 0
    assert details["config"] == PricingConfig()


async def test_new_limits_apply_to_requests(services):
    await services.pricing.update_config({"min_system_size_kwp": "3"}, ADMIN_ID)

    with pytest.raises(BusinessRuleError) as exc_info:
        await services.requests.create_request(
            "user-9",
            NewQuoteRequest(
                system_size_kwp=Decimal("2"),
                location_address="1 Main St",
                service_area="jeddah",
            ),
        )

    assert exc_info.value.code == "SYSTEM_SIZE_TOO_SMALL"
