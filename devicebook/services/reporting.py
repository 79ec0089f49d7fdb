from __future__ import annotations

import calendar
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.device_types import STATUS_REPAIR, STATUS_SOLD, STATUS_STOCK
from ..models.device import Device
from .calculations import calculate_device_financials, quantize_currency
from .device_mapping import parse_number

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")

KPI_TOTALS = (
    "total_revenue",
    "total_purchase_cost",
    "total_repair_cost",
    "total_shipping_cost",
    "total_sales_fees",
    "total_taxable_margin",
    "total_actual_profit",
    "total_gross_profit",
    "total_vat",
    "total_net_profit",
)


def month_bounds(month: str) -> tuple[date, date]:
    """Return the first and last day of a ``YYYY-MM`` month."""

    match = MONTH_PATTERN.match((month or "").strip())
    if not match:
        raise ValueError("month must use the format YYYY-MM")
    year, month_number = int(match.group(1)), int(match.group(2))
    if not 1 <= month_number <= 12:
        raise ValueError("month must be between 01 and 12")
    last_day = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, last_day)


def _count_by_status(db: Session, owner_id: str, status: str) -> int:
    stmt = select(func.count(Device.id)).where(
        Device.owner_user_id == owner_id,
        Device.status == status,
    )
    return int(db.execute(stmt).scalar() or 0)


def summarize_sales(devices: Iterable[Device]) -> Dict[str, Decimal]:
    """Sum revenue, cost and profit figures over ``devices``."""

    totals = {name: Decimal("0") for name in KPI_TOTALS}
    for device in devices:
        result = calculate_device_financials(device)
        totals["total_revenue"] += parse_number(device.sale_price)
        totals["total_purchase_cost"] += parse_number(device.purchase_price)
        totals["total_repair_cost"] += parse_number(device.repair_cost)
        totals["total_shipping_cost"] += parse_number(device.shipping_buy) + parse_number(device.shipping_sell)
        totals["total_sales_fees"] += parse_number(device.sales_fees)
        totals["total_taxable_margin"] += result.taxable_margin
        totals["total_actual_profit"] += result.actual_profit
        totals["total_gross_profit"] += result.gross_profit
        totals["total_vat"] += result.vat
        totals["total_net_profit"] += result.net_profit
    return {name: quantize_currency(value) for name, value in totals.items()}


def build_monthly_report(db: Session, owner_id: str, month: str) -> Dict[str, Any]:
    """Sales KPIs for one calendar month plus the current stock situation."""

    start, end = month_bounds(month)
    stmt = (
        select(Device)
        .where(
            Device.owner_user_id == owner_id,
            Device.status == STATUS_SOLD,
            Device.sale_date >= start,
            Device.sale_date <= end,
        )
        .order_by(Device.sale_date, Device.id)
    )
    sold = db.execute(stmt).scalars().all()

    kpis: Dict[str, Any] = {
        "sold_count": len(sold),
        "stock_count": _count_by_status(db, owner_id, STATUS_STOCK),
        "repair_count": _count_by_status(db, owner_id, STATUS_REPAIR),
    }
    kpis.update(summarize_sales(sold))

    return {
        "month": f"{start:%Y-%m}",
        "period_start": start,
        "period_end": end,
        "devices": sold,
        "kpis": kpis,
    }


__all__ = ["build_monthly_report", "month_bounds", "summarize_sales"]
