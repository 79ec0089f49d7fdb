from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..core.device_types import CONDITION_CHOICES, STATUS_CHOICES, STATUS_SOLD
from ..services.calculations import CalculationResult, quantize_currency
from ..services.device_mapping import (
    normalize_record,
    parse_bool,
    parse_date,
    parse_number,
    parse_optional_number,
)

MONEY_FIELDS = ("purchase_price", "repair_cost", "shipping_buy", "shipping_sell", "sales_fees")
DATE_FIELDS = ("purchase_date", "repair_date", "sale_date", "shipping_buy_date", "shipping_sell_date")


def _as_float(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


class DeviceUpdate(BaseModel):
    """Partial device payload; accepts camelCase or snake_case keys.

    Money accepts numbers or strings in German notation and dates accept
    ``dd.mm.yyyy`` as well as ISO strings.
    """

    model: Optional[str] = None
    storage: Optional[str] = None
    color: Optional[str] = None
    condition: Optional[str] = None
    status: Optional[str] = None
    imei: Optional[str] = None

    purchase_date: Optional[date] = None
    repair_date: Optional[date] = None
    sale_date: Optional[date] = None
    shipping_buy_date: Optional[date] = None
    shipping_sell_date: Optional[date] = None

    purchase_price: Optional[Decimal] = None
    repair_cost: Optional[Decimal] = None
    shipping_buy: Optional[Decimal] = None
    shipping_sell: Optional[Decimal] = None
    sales_fees: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None

    buyer_name: Optional[str] = None
    platform_order_number: Optional[str] = None
    sale_invoice_number: Optional[str] = None
    seller_name: Optional[str] = None
    is_diff_tax: Optional[bool] = None
    defects: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return normalize_record(data)
        return data

    @field_validator(*MONEY_FIELDS, mode="before")
    @classmethod
    def parse_money(cls, value: Any) -> Any:
        return parse_number(value)

    @field_validator("sale_price", mode="before")
    @classmethod
    def parse_sale_price(cls, value: Any) -> Any:
        return parse_optional_number(value)

    @field_validator(*MONEY_FIELDS, "sale_price")
    @classmethod
    def check_non_negative(cls, value: Optional[Decimal]) -> Optional[Decimal]:
        if value is not None and value < 0:
            raise ValueError("amounts must not be negative")
        return value

    @field_validator(*DATE_FIELDS, mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Any:
        return parse_date(value)

    @field_validator("is_diff_tax", mode="before")
    @classmethod
    def parse_flag(cls, value: Any) -> Any:
        return parse_bool(value, default=True)

    @field_validator("status")
    @classmethod
    def check_status(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip().upper()
        if cleaned not in STATUS_CHOICES:
            raise ValueError(f"status must be one of {', '.join(STATUS_CHOICES)}")
        return cleaned

    @field_validator("condition")
    @classmethod
    def check_condition(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip().upper()
        if cleaned not in CONDITION_CHOICES:
            raise ValueError(f"condition must be one of {', '.join(CONDITION_CHOICES)}")
        return cleaned


class DeviceCreate(DeviceUpdate):
    id: str = Field(min_length=1)
    model: str = Field(min_length=1)
    storage: str = Field(min_length=1)
    color: str = Field(min_length=1)
    condition: Optional[str] = "USED"
    status: Optional[str] = "STOCK"
    is_diff_tax: Optional[bool] = True

    @model_validator(mode="after")
    def validate_sale(self) -> "DeviceCreate":
        if self.status == STATUS_SOLD and (self.sale_price is None or self.sale_date is None):
            raise ValueError("A sold device needs a sale price and a sale date")
        return self


class FinancialsOut(BaseModel):
    total_costs: float
    taxable_margin: float
    actual_profit: float
    gross_profit: float
    vat: float
    net_profit: float
    is_final: bool

    @classmethod
    def from_result(cls, result: CalculationResult) -> "FinancialsOut":
        return cls(
            total_costs=float(quantize_currency(result.total_costs)),
            taxable_margin=float(quantize_currency(result.taxable_margin)),
            actual_profit=float(quantize_currency(result.actual_profit)),
            gross_profit=float(quantize_currency(result.gross_profit)),
            vat=float(quantize_currency(result.vat)),
            net_profit=float(quantize_currency(result.net_profit)),
            is_final=result.is_final,
        )


class DeviceOut(BaseModel):
    id: str
    model: str
    storage: str
    color: str
    condition: str
    status: str
    imei: Optional[str]

    purchase_date: date
    repair_date: Optional[date]
    sale_date: Optional[date]
    shipping_buy_date: Optional[date]
    shipping_sell_date: Optional[date]

    purchase_price: float
    repair_cost: float
    shipping_buy: float
    shipping_sell: float
    sales_fees: float
    sale_price: Optional[float]

    buyer_name: Optional[str]
    platform_order_number: Optional[str]
    sale_invoice_number: Optional[str]
    seller_name: Optional[str]
    is_diff_tax: bool
    defects: Optional[str]

    created_at: str
    updated_at: str
    financials: FinancialsOut

    @field_validator(*MONEY_FIELDS, "sale_price", mode="before")
    @classmethod
    def money_to_float(cls, value: Any) -> Any:
        return _as_float(value)

    @field_validator("financials", mode="before")
    @classmethod
    def wrap_financials(cls, value: Any) -> Any:
        if isinstance(value, CalculationResult):
            return FinancialsOut.from_result(value)
        return value

    class Config:
        from_attributes = True
