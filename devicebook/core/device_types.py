"""Shared device status, condition and file category constants."""

STATUS_STOCK = "STOCK"
STATUS_REPAIR = "REPAIR"
STATUS_SOLD = "SOLD"

STATUS_CHOICES = (STATUS_STOCK, STATUS_REPAIR, STATUS_SOLD)

CONDITION_NEW = "NEW"
CONDITION_USED = "USED"
CONDITION_DEFECT = "DEFECT"

CONDITION_CHOICES = (CONDITION_NEW, CONDITION_USED, CONDITION_DEFECT)

CATEGORY_PAYPAL = "PAYPAL"
CATEGORY_INVOICE = "INVOICE"
CATEGORY_CHAT = "CHAT"
CATEGORY_EIGENBELEG = "EIGENBELEG"
CATEGORY_SALES_AD = "SALES_AD"
CATEGORY_OTHER = "OTHER"

CATEGORY_CHOICES = (
    CATEGORY_PAYPAL,
    CATEGORY_INVOICE,
    CATEGORY_CHAT,
    CATEGORY_EIGENBELEG,
    CATEGORY_SALES_AD,
    CATEGORY_OTHER,
)

# German file name prefixes used when storing uploads.
CATEGORY_FILENAME_PREFIXES = {
    CATEGORY_INVOICE: "Rechnung",
    CATEGORY_PAYPAL: "Zahlungsbeleg",
    CATEGORY_CHAT: "KleinanzeigenChat",
    CATEGORY_EIGENBELEG: "Eigenbeleg",
    CATEGORY_SALES_AD: "Verkaufsanzeige",
    CATEGORY_OTHER: "Dokument",
}


def normalize_status(value: str | None) -> str:
    """Return an uppercase status with STOCK as the safe default."""

    return (value or STATUS_STOCK).strip().upper()


def normalize_category(value: str | None) -> str:
    """Return an uppercase file category, falling back to OTHER."""

    category = (value or CATEGORY_OTHER).strip().upper()
    return category if category in CATEGORY_CHOICES else CATEGORY_OTHER


__all__ = [
    "CATEGORY_CHAT",
    "CATEGORY_CHOICES",
    "CATEGORY_EIGENBELEG",
    "CATEGORY_FILENAME_PREFIXES",
    "CATEGORY_INVOICE",
    "CATEGORY_OTHER",
    "CATEGORY_PAYPAL",
    "CATEGORY_SALES_AD",
    "CONDITION_CHOICES",
    "CONDITION_DEFECT",
    "CONDITION_NEW",
    "CONDITION_USED",
    "STATUS_CHOICES",
    "STATUS_REPAIR",
    "STATUS_SOLD",
    "STATUS_STOCK",
    "normalize_category",
    "normalize_status",
]
