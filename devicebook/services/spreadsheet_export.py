"""Excel export of the device list for the tax adviser."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Iterable, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from ..core.errors import ExportError
from ..core.formatting import format_de_date
from .calculations import calculate_device_financials, quantize_currency
from .device_mapping import parse_number

LOGGER = logging.getLogger(__name__)

SHEET_TITLE = "Geräte"
CHECK_MARK = "✓"
TOTALS_VALUE_COLUMN = 7  # column G, under "Einkaufspreis"

# Header label and column width (characters).
COLUMNS: Sequence[tuple[str, int]] = (
    ("Geräte-ID", 15),
    ("Einkaufsdatum", 12),
    ("Verkaufsdatum", 12),
    ("Besteuerungsart", 20),
    ("Differenzbesteuerung", 18),
    ("Regelbesteuerung", 16),
    ("Einkaufspreis", 12),
    ("Reparaturkosten", 14),
    ("Versandkosten", 12),
    ("Sonstige Kosten", 14),
    ("Gesamtkosten", 12),
    ("Verkaufspreis", 12),
    ("Steuerbetrag", 12),
    ("Gewinn vor Steuern", 16),
    ("Gewinn nach Steuern", 16),
)


def _money(value: Decimal) -> Decimal:
    return quantize_currency(value)


def device_row(device: Any) -> tuple[list[Any], dict[str, Decimal]]:
    """Return the sheet row for ``device`` and its contribution to the totals."""

    result = calculate_device_financials(device)
    purchase = parse_number(device.purchase_price)
    repair = parse_number(device.repair_cost)
    shipping = parse_number(device.shipping_buy) + parse_number(device.shipping_sell)
    other = parse_number(device.sales_fees)
    sale = parse_number(device.sale_price)
    total_costs = purchase + repair + shipping + other

    row = [
        device.id,
        format_de_date(device.purchase_date),
        format_de_date(device.sale_date),
        "Differenzbesteuerung" if device.is_diff_tax else "Regelbesteuerung",
        CHECK_MARK if device.is_diff_tax else "",
        "" if device.is_diff_tax else CHECK_MARK,
        _money(purchase),
        _money(repair),
        _money(shipping),
        _money(other),
        _money(total_costs),
        _money(sale) if sale > 0 else "",
        _money(result.vat) if result.vat > 0 else "",
        _money(result.actual_profit) if result.is_final else "",
        _money(result.net_profit) if result.is_final else "",
    ]

    contribution: dict[str, Decimal] = {}
    if result.is_final and sale > 0:
        contribution = {
            "purchase": purchase,
            "repair": repair,
            "shipping": shipping,
            "other": other,
            "sale": sale,
            "tax": result.vat,
        }
    return row, contribution


def totals_rows(totals: dict[str, Decimal]) -> list[tuple[str, Decimal]]:
    all_costs = totals["purchase"] + totals["repair"] + totals["shipping"] + totals["other"]
    profit_before_tax = totals["sale"] - all_costs
    return [
        ("Gesamte Einkaufskosten", totals["purchase"]),
        ("Gesamte Reparaturkosten", totals["repair"]),
        ("Gesamte Versandkosten", totals["shipping"]),
        ("Gesamte sonstige Kosten", totals["other"]),
        ("Gesamtkosten gesamt", all_costs),
        ("Gesamtumsatz", totals["sale"]),
        ("Gesamtsteuer", totals["tax"]),
        ("Gesamtgewinn vor Steuern", profit_before_tax),
        ("Gesamtgewinn nach Steuern", profit_before_tax - totals["tax"]),
    ]


def build_device_workbook(devices: Iterable[Any]) -> Workbook:
    devices = list(devices)
    if not devices:
        raise ExportError("Keine Geräte zum Exportieren gefunden")

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    sheet.append([label for label, _ in COLUMNS])
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    totals = {key: Decimal("0") for key in ("purchase", "repair", "shipping", "other", "sale", "tax")}
    for device in devices:
        row, contribution = device_row(device)
        sheet.append(row)
        for key, value in contribution.items():
            totals[key] += value

    sheet.append([])
    for label, value in totals_rows(totals):
        line: list[Any] = [""] * TOTALS_VALUE_COLUMN
        line[0] = label
        line[TOTALS_VALUE_COLUMN - 1] = _money(value)
        sheet.append(line)

    for index, (_, width) in enumerate(COLUMNS, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    return workbook


def export_file_name(now: Optional[datetime] = None) -> str:
    return f"geraete-export-{(now or datetime.now()):%Y-%m-%d-%H%M}.xlsx"


def export_devices_xlsx(devices: Iterable[Any], now: Optional[datetime] = None) -> tuple[bytes, str]:
    """Render ``devices`` to an xlsx document and return it with its file name."""

    devices = list(devices)
    workbook = build_device_workbook(devices)
    buffer = BytesIO()
    workbook.save(buffer)
    LOGGER.info("Exported %d devices to xlsx", len(devices))
    return buffer.getvalue(), export_file_name(now)


__all__ = [
    "COLUMNS",
    "build_device_workbook",
    "device_row",
    "export_devices_xlsx",
    "export_file_name",
]
