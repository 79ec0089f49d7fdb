"""Per-device financial figures under German VAT rules.

Two regimes are supported:

* differential taxation (§25a UStG): VAT is owed only on the positive margin
  between sale and purchase price, and is already contained in that margin;
* standard taxation: VAT is contained in the full sale price.

All arithmetic is done on ``Decimal`` at full precision. Nothing here rounds;
presenting layers quantise to cents with :func:`quantize_currency`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping

from ..core.device_types import STATUS_SOLD
from .device_mapping import normalize_record, parse_bool, parse_number

VAT_RATE = Decimal("19")
VAT_GROSS_BASE = Decimal("100") + VAT_RATE
TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")

FINANCIAL_FIELDS = (
    "purchase_price",
    "repair_cost",
    "shipping_buy",
    "shipping_sell",
    "sales_fees",
    "sale_price",
)


@dataclass(frozen=True)
class DeviceFinancials:
    """The monetary snapshot of a device the calculator works on."""

    purchase_price: Decimal = ZERO
    repair_cost: Decimal = ZERO
    shipping_buy: Decimal = ZERO
    shipping_sell: Decimal = ZERO
    sales_fees: Decimal = ZERO
    sale_price: Decimal = ZERO
    status: str = ""
    is_diff_tax: bool = True

    @classmethod
    def from_record(cls, record: Any) -> "DeviceFinancials":
        """Build a snapshot from an ORM row or a (camel or snake) mapping."""

        if isinstance(record, DeviceFinancials):
            return record
        if isinstance(record, Mapping):
            data = normalize_record(record)
        else:
            data = {name: getattr(record, name, None) for name in (*FINANCIAL_FIELDS, "status", "is_diff_tax")}
        values = {name: parse_number(data.get(name)) for name in FINANCIAL_FIELDS}
        return cls(
            **values,
            status=str(data.get("status") or "").strip().upper(),
            is_diff_tax=parse_bool(data.get("is_diff_tax"), default=True),
        )

    @property
    def is_sold(self) -> bool:
        return self.status == STATUS_SOLD


@dataclass(frozen=True)
class CalculationResult:
    total_costs: Decimal
    taxable_margin: Decimal
    actual_profit: Decimal
    vat: Decimal
    net_profit: Decimal
    is_final: bool

    @property
    def gross_profit(self) -> Decimal:
        """Deprecated alias of :attr:`actual_profit`."""

        return self.actual_profit


def quantize_currency(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP) if value else Decimal("0.00")


def _contained_vat(gross: Decimal) -> Decimal:
    """VAT already included in ``gross`` (gross x 19/119)."""

    return gross * VAT_RATE / VAT_GROSS_BASE


def calculate_vat(financials: DeviceFinancials, taxable_margin: Decimal) -> Decimal:
    if not financials.is_sold:
        return ZERO
    if financials.is_diff_tax:
        # Loss-making margins carry no VAT under §25a.
        if taxable_margin > 0:
            return _contained_vat(taxable_margin)
        return ZERO
    return _contained_vat(financials.sale_price)


def calculate_device_financials(device: Any) -> CalculationResult:
    """Derive cost totals, margin, profit and VAT for one device.

    ``device`` may be a :class:`DeviceFinancials`, a ``Device`` row or a plain
    mapping. Missing or invalid amounts count as zero and a missing tax flag
    means differential taxation, so this never raises for documented input.
    An unsold device is computed against a zero sale price, which yields a
    negative profit callers may choose to hide.
    """

    financials = DeviceFinancials.from_record(device)
    total_costs = (
        financials.purchase_price
        + financials.repair_cost
        + financials.shipping_buy
        + financials.shipping_sell
        + financials.sales_fees
    )
    taxable_margin = financials.sale_price - financials.purchase_price
    actual_profit = financials.sale_price - total_costs
    vat = calculate_vat(financials, taxable_margin)
    return CalculationResult(
        total_costs=total_costs,
        taxable_margin=taxable_margin,
        actual_profit=actual_profit,
        vat=vat,
        net_profit=actual_profit - vat,
        is_final=financials.is_sold,
    )


__all__ = [
    "CalculationResult",
    "DeviceFinancials",
    "VAT_GROSS_BASE",
    "VAT_RATE",
    "calculate_device_financials",
    "calculate_vat",
    "quantize_currency",
]
