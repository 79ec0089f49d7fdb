"""Single mapping between camelCase client payloads and snake_case records.

Form posts and older exports carry camelCase keys (``purchasePrice``) while the
database and every service use snake_case (``purchase_price``). Records are
normalised here once, at the edge, so nothing downstream has to look a value up
under two names.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

FIELD_MAP: dict[str, str] = {
    # Device
    "ownerUserId": "owner_user_id",
    "purchaseDate": "purchase_date",
    "repairDate": "repair_date",
    "saleDate": "sale_date",
    "shippingBuyDate": "shipping_buy_date",
    "shippingSellDate": "shipping_sell_date",
    "purchasePrice": "purchase_price",
    "repairCost": "repair_cost",
    "shippingBuy": "shipping_buy",
    "shippingSell": "shipping_sell",
    "salePrice": "sale_price",
    "salesFees": "sales_fees",
    "buyerName": "buyer_name",
    "platformOrderNumber": "platform_order_number",
    "saleInvoiceNumber": "sale_invoice_number",
    "sellerName": "seller_name",
    "isDiffTax": "is_diff_tax",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    # Company profile
    "companyName": "company_name",
    "ownerName": "owner_name",
    "houseNumber": "house_number",
    "postalCode": "postal_code",
    "vatId": "vat_id",
    "taxId": "tax_id",
    "logoUrl": "logo_url",
    # Self-receipt request
    "recipientName": "recipient_name",
}

TRUE_STRINGS = {"true", "on", "1", "yes", "y", "ja"}
FALSE_STRINGS = {"false", "off", "0", "no", "n", "nein", ""}


def normalize_record(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` keyed by snake_case field names.

    When a record carries both spellings of a field the snake_case value wins,
    since that is the persisted form.
    """

    normalized: dict[str, Any] = {}
    explicit: set[str] = set()
    for key, value in data.items():
        target = FIELD_MAP.get(key)
        if target is None:
            normalized[key] = value
            explicit.add(key)
        elif target not in explicit:
            normalized[target] = value
    return normalized


def parse_number(value: Any) -> Decimal:
    """Best-effort conversion of user-entered money values to ``Decimal``.

    Accepts ints, floats, Decimals and strings in either ``1234.56`` or German
    ``1.234,56`` notation. Anything empty or unparseable becomes zero.
    """

    if isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    if value is None:
        return Decimal("0")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        result = Decimal(str(value))
        return result if result.is_finite() else Decimal("0")
    if isinstance(value, str):
        cleaned = value.strip().replace("€", "").replace("EUR", "").replace(" ", "")
        if not cleaned:
            return Decimal("0")
        if "," in cleaned:
            # German notation: dots group thousands, the comma marks decimals.
            cleaned = cleaned.replace(".", "").replace(",", ".")
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0")
        return result if result.is_finite() else Decimal("0")
    return Decimal("0")


def parse_optional_number(value: Any) -> Decimal | None:
    """Like :func:`parse_number` but keeps "no value" distinct from zero."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_number(value)


def parse_date(value: Any) -> date | None:
    """Parse ISO dates, ISO timestamps and German ``dd.mm.yyyy`` strings."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        return datetime.strptime(cleaned, "%d.%m.%Y").date()
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_bool(value: Any, default: bool = True) -> bool:
    """Interpret checkbox-style values; ``None`` falls back to ``default``."""

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().casefold()
        if normalized in TRUE_STRINGS:
            return True
        if normalized in FALSE_STRINGS:
            return False
    return default


__all__ = [
    "FIELD_MAP",
    "normalize_record",
    "parse_bool",
    "parse_date",
    "parse_number",
    "parse_optional_number",
]
