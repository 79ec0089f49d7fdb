"""German display formatting for money and dates."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

TWOPLACES = Decimal("0.01")


def format_amount(value: Any) -> str:
    """Render ``1234.5`` as ``1.234,50``."""

    amount = value if isinstance(value, Decimal) else Decimal(str(value or 0))
    amount = amount.quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    # Swap the English separators for German ones via a placeholder.
    return f"{amount:,.2f}".replace(",", "\x00").replace(".", ",").replace("\x00", ".")


def format_eur(value: Any) -> str:
    return f"{format_amount(value)} €"


def format_de_date(value: date | datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%d.%m.%Y")
