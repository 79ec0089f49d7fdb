"""Self-issued purchase receipts ("Eigenbeleg") rendered as PDF.

A reseller that buys a device from a private person gets no invoice, so the
purchase is documented with a self-issued receipt. The document is laid out
through :class:`~devicebook.services.pdf_layout.PdfWriter` in a fixed order;
the only I/O is loading the company logo, which happens before drawing starts.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from fpdf import FPDF

from ..core.config import settings
from ..core.errors import StorageError
from ..core.formatting import format_de_date, format_eur
from .device_mapping import parse_date, parse_number
from .pdf_layout import PdfWriter, configure_fonts, new_canvas, page_lines
from .storage import LocalStorage, get_storage

LOGGER = logging.getLogger(__name__)

DEFAULT_REASON = "Kein externer Beleg vorhanden"
LOGO_BOX = (40.0, 20.0)  # width, height in mm
LOGO_TOP = 15.0
LOGO_RIGHT_OFFSET = 65.0


@dataclass(frozen=True)
class EigenbelegOptions:
    recipient_name: str
    reason: Optional[str] = None

    @property
    def effective_reason(self) -> str:
        return (self.reason or "").strip() or DEFAULT_REASON


async def load_logo(logo_ref: Optional[str], storage: Optional[LocalStorage] = None) -> Optional[bytes]:
    """Return the logo bytes for ``logo_ref`` or ``None``.

    ``http(s)`` references are downloaded; anything else is treated as a
    storage key. Failures never propagate: the receipt is rendered without a
    logo instead.
    """

    ref = (logo_ref or "").strip()
    if not ref:
        return None

    if ref.lower().startswith(("http://", "https://")):
        try:
            async with httpx.AsyncClient(timeout=settings.LOGO_FETCH_TIMEOUT) as client:
                response = await client.get(ref)
            if response.status_code == httpx.codes.OK and response.content:
                return bytes(response.content)
            LOGGER.warning("Logo request for %s failed with status %s", ref, response.status_code)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            LOGGER.warning("Logo request for %s failed: %s", ref, exc)
        return None

    backend = storage or get_storage()
    try:
        return backend.read(ref)
    except StorageError as exc:
        LOGGER.warning("Logo %s could not be loaded: %s", ref, exc)
        return None


def _device_value(device: Any, name: str) -> Any:
    if isinstance(device, dict):
        return device.get(name)
    return getattr(device, name, None)


def _footer_text(company: Any) -> str:
    parts = [company.email]
    if getattr(company, "phone", None):
        parts.append(company.phone)
    return " • ".join(part for part in parts if part)


def render_eigenbeleg(
    device: Any,
    company: Any,
    options: EigenbelegOptions,
    *,
    logo: Optional[bytes] = None,
    pdf: Optional[FPDF] = None,
) -> bytes:
    """Draw the receipt and return the PDF bytes.

    ``device`` needs ``id``, ``model``, ``storage``, ``color``,
    ``purchase_price`` and ``purchase_date``; ``company`` is a company profile.
    No validation happens here; callers reject empty recipient names.
    """

    canvas = pdf or new_canvas()
    font_family = configure_fonts(canvas, settings.PDF_FONT_DIR)
    writer = PdfWriter(canvas, font_family=font_family)
    writer.set_footer(_footer_text(company))

    device_id = _device_value(device, "id")
    if logo:
        width, height = LOGO_BOX
        writer.image(logo, x=writer.page_width - LOGO_RIGHT_OFFSET, y=LOGO_TOP, w=width, h=height)

    writer.heading("Eigenbeleg", size=22, spacing=8)
    writer.caption(f"Eigenbeleg-Nummer {device_id}", spacing=18)

    receipt_date = format_de_date(parse_date(_device_value(device, "purchase_date")))
    writer.label_value("Belegdatum", receipt_date, bold=True)
    writer.label_value("Gegenpartei", options.recipient_name, bold=True)

    description = " ".join(
        str(_device_value(device, name) or "").strip() for name in ("model", "storage", "color")
    ).strip()
    writer.label_value("Beschreibung der Leistung", f"Ankauf {description}")
    writer.sub_line(f"Geräte-ID: {device_id}")

    amount = format_eur(parse_number(_device_value(device, "purchase_price")))
    writer.label_value("Betrag", amount, bold=True, value_size=14)

    writer.separator()
    writer.label_value("Grund für Eigenbeleg", options.effective_reason, bold=True)
    writer.separator()

    writer.label_block("Erstellt durch", page_lines(company.address_lines))
    writer.label_value("Erstellt am", receipt_date)

    if company.tax_id:
        writer.label_value("Steuer-Nr.", company.tax_id)
    if company.vat_id:
        writer.label_value("USt-IdNr.", company.vat_id)

    writer.label_value("Digitale Signatur (GUID)", str(uuid.uuid4()), value_size=9)

    writer.advance(8)
    writer.signature_line(f"Inhaber {company.company_name}")

    return writer.finish()


async def generate_eigenbeleg(
    device: Any,
    company: Any,
    options: EigenbelegOptions,
    *,
    storage: Optional[LocalStorage] = None,
) -> bytes:
    """Load the company logo, then render the receipt."""

    logo = await load_logo(getattr(company, "logo_url", None), storage)
    return render_eigenbeleg(device, company, options, logo=logo)


__all__ = [
    "DEFAULT_REASON",
    "EigenbelegOptions",
    "generate_eigenbeleg",
    "load_logo",
    "render_eigenbeleg",
]
