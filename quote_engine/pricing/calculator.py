"""Platform markup, commission and VAT arithmetic.

All functions here are pure: they take an explicit pricing config snapshot
and return immutable breakdowns. Money is Decimal, rounded half-up to two
places once per derived value.
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

from quote_engine.errors import BusinessRuleError

MONEY = Decimal("0.01")
HUNDRED = Decimal("100")
PRICE_TOLERANCE = Decimal("0.01")
MAX_PLATFORM_PERCENT = Decimal("50")


def qmoney(value: Decimal) -> Decimal:
    """Round a money amount to cents, half-up."""
    return value.quantize(MONEY, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Coerce ints, strings and floats to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise BusinessRuleError(
                f"{field} is not a valid number", "INVALID_NUMBER", {"field": field}
            ) from exc
    if not result.is_finite():
        raise BusinessRuleError(
            f"{field} must be a finite number", "INVALID_NUMBER", {"field": field}
        )
    return result


@dataclass(frozen=True)
class PricingConfig:
    """Snapshot of the platform pricing rules."""

    max_price_per_kwp: Decimal = Decimal("2000")
    platform_overprice_percent: Decimal = Decimal("10")
    platform_commission_percent: Decimal = Decimal("15")
    min_system_size_kwp: Decimal = Decimal("1")
    max_system_size_kwp: Decimal = Decimal("1000")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PricingConfig":
        """Build a config from a stored JSON blob, falling back to defaults per key."""
        defaults = cls()
        values = {}
        for key in cls.__dataclass_fields__:
            raw = data.get(key, getattr(defaults, key))
            values[key] = to_decimal(raw, key)
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        """Serialize for JSON storage (Decimals as strings)."""
        return {key: str(value) for key, value in asdict(self).items()}


@dataclass(frozen=True)
class FinancialBreakdown:
    """Result of pricing a contractor bid."""

    base_price: Decimal
    price_per_kwp: Decimal
    system_size_kwp: Decimal
    overprice_percent: Decimal
    commission_percent: Decimal
    overprice_amount: Decimal
    total_user_price: Decimal
    commission_amount: Decimal
    contractor_net_amount: Decimal
    platform_revenue: Decimal

    def to_dict(self) -> dict[str, Decimal]:
        return asdict(self)


@dataclass(frozen=True)
class InvoiceBreakdown:
    """What the end user is billed for a selected quote."""

    contractor_amount: Decimal
    platform_commission: Decimal
    platform_markup: Decimal
    user_total: Decimal
    vat_percent: Decimal
    vat_amount: Decimal
    final_total: Decimal

    def to_dict(self) -> dict[str, Decimal]:
        return asdict(self)


def calculate(
    base_price: Any,
    price_per_kwp: Any,
    system_size_kwp: Any,
    config: PricingConfig,
) -> FinancialBreakdown:
    """
    Validate a bid and compute its financial breakdown.

    Args:
        base_price: Contractor's base price for the whole system
        price_per_kwp: Contractor's price per kWp
        system_size_kwp: Requested system size
        config: Pricing config snapshot

    Returns:
        FinancialBreakdown with every derived amount rounded to cents

    Raises:
        BusinessRuleError: One specific code per violated rule
    """
    base = to_decimal(base_price, "base_price")
    per_kwp = to_decimal(price_per_kwp, "price_per_kwp")
    size = to_decimal(system_size_kwp, "system_size_kwp")

    if base <= 0:
        raise BusinessRuleError(
            "Base price must be greater than zero",
            "INVALID_BASE_PRICE",
            {"base_price": str(base)},
        )
    if per_kwp <= 0:
        raise BusinessRuleError(
            "Price per kWp must be greater than zero",
            "INVALID_PRICE_PER_KWP",
            {"price_per_kwp": str(per_kwp)},
        )
    if per_kwp > config.max_price_per_kwp:
        raise BusinessRuleError(
            f"Price per kWp cannot exceed {config.max_price_per_kwp}",
            "PRICE_PER_KWP_TOO_HIGH",
            {"price_per_kwp": str(per_kwp), "max_price_per_kwp": str(config.max_price_per_kwp)},
        )
    if size < config.min_system_size_kwp:
        raise BusinessRuleError(
            f"System size must be at least {config.min_system_size_kwp} kWp",
            "SYSTEM_SIZE_TOO_SMALL",
            {"system_size_kwp": str(size), "min_system_size_kwp": str(config.min_system_size_kwp)},
        )
    if size > config.max_system_size_kwp:
        raise BusinessRuleError(
            f"System size cannot exceed {config.max_system_size_kwp} kWp",
            "SYSTEM_SIZE_TOO_LARGE",
            {"system_size_kwp": str(size), "max_system_size_kwp": str(config.max_system_size_kwp)},
        )

    expected = per_kwp * size
    if abs(base - expected) > PRICE_TOLERANCE:
        raise BusinessRuleError(
            "Base price does not match price per kWp times system size",
            "PRICE_CALCULATION_MISMATCH",
            {"base_price": str(base), "expected": str(expected)},
        )

    # Stored prices are whole cents; sub-cent input is rejected, not rounded
    if base != qmoney(base):
        raise BusinessRuleError(
            "Base price cannot have more than two decimal places",
            "INVALID_BASE_PRICE",
            {"base_price": str(base)},
        )
    if per_kwp != qmoney(per_kwp):
        raise BusinessRuleError(
            "Price per kWp cannot have more than two decimal places",
            "INVALID_PRICE_PER_KWP",
            {"price_per_kwp": str(per_kwp)},
        )

    overprice_pct = config.platform_overprice_percent
    commission_pct = config.platform_commission_percent

    overprice_amount = qmoney(base * overprice_pct / HUNDRED)
    commission_amount = qmoney(base * commission_pct / HUNDRED)

    return FinancialBreakdown(
        base_price=base,
        price_per_kwp=per_kwp,
        system_size_kwp=size,
        overprice_percent=overprice_pct,
        commission_percent=commission_pct,
        overprice_amount=overprice_amount,
        total_user_price=qmoney(base + overprice_amount),
        commission_amount=commission_amount,
        contractor_net_amount=qmoney(base - commission_amount),
        platform_revenue=commission_amount + overprice_amount,
    )


def validate_pricing_config(config: PricingConfig) -> None:
    """
    Reject configs outside the allowed bounds.

    Raises:
        BusinessRuleError: INVALID_PRICING_CONFIG, OVERPRICE_TOO_HIGH,
            COMMISSION_TOO_HIGH or INVALID_SYSTEM_SIZE_RANGE
    """
    if config.max_price_per_kwp <= 0:
        raise BusinessRuleError(
            "max_price_per_kwp must be greater than zero", "INVALID_PRICING_CONFIG"
        )
    if config.platform_overprice_percent < 0 or config.platform_commission_percent < 0:
        raise BusinessRuleError(
            "Platform percentages cannot be negative", "INVALID_PRICING_CONFIG"
        )
    if config.platform_overprice_percent > MAX_PLATFORM_PERCENT:
        raise BusinessRuleError(
            f"Platform overprice percent cannot exceed {MAX_PLATFORM_PERCENT}",
            "OVERPRICE_TOO_HIGH",
            {"platform_overprice_percent": str(config.platform_overprice_percent)},
        )
    if config.platform_commission_percent > MAX_PLATFORM_PERCENT:
        raise BusinessRuleError(
            f"Platform commission percent cannot exceed {MAX_PLATFORM_PERCENT}",
            "COMMISSION_TOO_HIGH",
            {"platform_commission_percent": str(config.platform_commission_percent)},
        )
    if (
        config.min_system_size_kwp <= 0
        or config.min_system_size_kwp >= config.max_system_size_kwp
    ):
        raise BusinessRuleError(
            "Minimum system size must be positive and below the maximum",
            "INVALID_SYSTEM_SIZE_RANGE",
            {
                "min_system_size_kwp": str(config.min_system_size_kwp),
                "max_system_size_kwp": str(config.max_system_size_kwp),
            },
        )


def calculate_invoice(
    breakdown: FinancialBreakdown,
    include_vat: bool = True,
    vat_percent: Any = Decimal("15"),
) -> InvoiceBreakdown:
    """Compute the user-facing invoice for a priced quote."""
    vat = to_decimal(vat_percent, "vat_percent") if include_vat else Decimal("0")
    user_total = breakdown.total_user_price
    vat_amount = qmoney(user_total * vat / HUNDRED)
    return InvoiceBreakdown(
        contractor_amount=breakdown.contractor_net_amount,
        platform_commission=breakdown.commission_amount,
        platform_markup=breakdown.overprice_amount,
        user_total=user_total,
        vat_percent=vat,
        vat_amount=vat_amount,
        final_total=user_total + vat_amount,
    )
