"""Quotation line-item amounts and totals."""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from quote_engine.errors import BusinessRuleError
from quote_engine.pricing.calculator import (
    HUNDRED,
    PRICE_TOLERANCE,
    PricingConfig,
    qmoney,
    to_decimal,
)


@dataclass(frozen=True)
class LineItemInput:
    """Line item as entered by the contractor."""

    item_name: str
    quantity: Decimal
    unit_price: Decimal
    description: Optional[str] = None
    unit: Optional[str] = None
    serial_number: Optional[int] = None


@dataclass(frozen=True)
class PricedLineItem:
    """Line item with every platform amount derived from quantity and unit price."""

    serial_number: int
    item_name: str
    description: Optional[str]
    unit: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    commission_amount: Decimal
    over_price_amount: Decimal
    user_price: Decimal
    vendor_net_price: Decimal

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class QuotationTotals:
    """Sums over a quotation's stored line items."""

    total_price: Decimal
    total_commission: Decimal
    total_over_price: Decimal
    total_user_price: Decimal
    total_vendor_net: Decimal
    vat_percent: Decimal
    vat_amount: Decimal
    total_payable: Decimal
    item_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def price_line_item(item: LineItemInput, serial_number: int, config: PricingConfig) -> PricedLineItem:
    """
    Derive the platform amounts of one line item.

    Raises:
        BusinessRuleError: INVALID_LINE_ITEM when quantity or unit price is not positive
    """
    quantity = to_decimal(item.quantity, "quantity")
    unit_price = to_decimal(item.unit_price, "unit_price")
    if quantity <= 0 or unit_price <= 0:
        raise BusinessRuleError(
            "Line item quantity and unit price must be greater than zero",
            "INVALID_LINE_ITEM",
            {"item_name": item.item_name, "serial_number": serial_number},
        )

    total = quantity * unit_price
    commission = qmoney(total * config.platform_commission_percent / HUNDRED)
    over_price = qmoney(total * config.platform_overprice_percent / HUNDRED)
    total = qmoney(total)

    return PricedLineItem(
        serial_number=serial_number,
        item_name=item.item_name,
        description=item.description,
        unit=item.unit,
        quantity=quantity,
        unit_price=unit_price,
        total_price=total,
        commission_amount=commission,
        over_price_amount=over_price,
        user_price=total + over_price,
        vendor_net_price=total - commission,
    )


def price_line_items(items: Sequence[LineItemInput], config: PricingConfig) -> list[PricedLineItem]:
    """Price every item, numbering them 1..n unless serial numbers were supplied."""
    priced = []
    seen = set()
    for index, item in enumerate(items, start=1):
        serial = item.serial_number or index
        if serial in seen:
            raise BusinessRuleError(
                f"Duplicate line item serial number {serial}",
                "DUPLICATE_SERIAL_NUMBER",
                {"serial_number": serial},
            )
        seen.add(serial)
        priced.append(price_line_item(item, serial, config))
    return priced


def aggregate(items: Iterable[Any], vat_percent: Any = Decimal("15")) -> QuotationTotals:
    """
    Sum stored line-item amounts into quotation totals.

    Works on PricedLineItem values and on QuotationLineItem rows alike.
    VAT is charged on the vendor net total.
    """
    vat = to_decimal(vat_percent, "vat_percent")
    total_price = Decimal("0.00")
    total_commission = Decimal("0.00")
    total_over_price = Decimal("0.00")
    total_user_price = Decimal("0.00")
    total_vendor_net = Decimal("0.00")
    count = 0

    for item in items:
        total_price += item.total_price
        total_commission += item.commission_amount
        total_over_price += item.over_price_amount
        total_user_price += item.user_price
        total_vendor_net += item.vendor_net_price
        count += 1

    vat_amount = qmoney(total_vendor_net * vat / HUNDRED)
    return QuotationTotals(
        total_price=total_price,
        total_commission=total_commission,
        total_over_price=total_over_price,
        total_user_price=total_user_price,
        total_vendor_net=total_vendor_net,
        vat_percent=vat,
        vat_amount=vat_amount,
        total_payable=total_vendor_net + vat_amount,
        item_count=count,
    )


def ensure_base_price_matches(base_price: Decimal, totals: QuotationTotals) -> None:
    """
    Check the quote's base price against the line-item total.

    Raises:
        BusinessRuleError: LINE_ITEM_TOTAL_MISMATCH beyond one cent
    """
    if abs(to_decimal(base_price, "base_price") - totals.total_price) > PRICE_TOLERANCE:
        raise BusinessRuleError(
            "Base price does not match the sum of line items",
            "LINE_ITEM_TOTAL_MISMATCH",
            {"base_price": str(base_price), "line_item_total": str(totals.total_price)},
        )
