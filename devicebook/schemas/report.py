from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, field_validator

from .device import DeviceOut


class MonthlyKpis(BaseModel):
    sold_count: int
    stock_count: int
    repair_count: int
    total_revenue: float
    total_purchase_cost: float
    total_repair_cost: float
    total_shipping_cost: float
    total_sales_fees: float
    total_taxable_margin: float
    total_actual_profit: float
    total_gross_profit: float
    total_vat: float
    total_net_profit: float

    @field_validator("*", mode="before")
    @classmethod
    def decimal_to_float(cls, value: Any) -> Any:
        if isinstance(value, Decimal):
            return float(value)
        return value


class MonthlyReportOut(BaseModel):
    month: str
    period_start: date
    period_end: date
    devices: list[DeviceOut]
    kpis: MonthlyKpis
