"""Per-device ZIP archive: metadata plus every stored document."""

from __future__ import annotations

import json
import logging
import zipfile
from io import BytesIO
from typing import Any, Iterable

from ..core.errors import StorageError
from .device_mapping import parse_optional_number
from .storage import LocalStorage

LOGGER = logging.getLogger(__name__)

METADATA_FILE = "device.json"
METADATA_FIELDS = (
    "id",
    "model",
    "storage",
    "color",
    "condition",
    "status",
    "imei",
    "purchase_date",
    "purchase_price",
    "sale_date",
    "sale_price",
    "seller_name",
    "buyer_name",
    "is_diff_tax",
    "created_at",
)
MONEY_FIELDS = {"purchase_price", "sale_price"}


def device_metadata(device: Any) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    for field in METADATA_FIELDS:
        value = getattr(device, field, None)
        if field in MONEY_FIELDS:
            amount = parse_optional_number(value)
            value = float(amount) if amount is not None else None
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        metadata[field] = value
    return metadata


def _archive_name(name: str, used: set[str]) -> str:
    candidate = name
    counter = 1
    while candidate in used:
        stem, dot, ext = name.rpartition(".")
        candidate = f"{stem}_{counter}.{ext}" if dot else f"{name}_{counter}"
        counter += 1
    used.add(candidate)
    return candidate


def build_device_archive(device: Any, files: Iterable[Any], storage: LocalStorage) -> bytes:
    """Zip ``device.json`` and the documents that can still be read.

    Documents whose bytes are missing are logged and left out.
    """

    buffer = BytesIO()
    used = {METADATA_FILE}
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(METADATA_FILE, json.dumps(device_metadata(device), indent=2, ensure_ascii=False))
        for record in files:
            try:
                payload = storage.read(record.file_path)
            except StorageError as exc:
                LOGGER.warning("Skipping %s in export of %s: %s", record.file_name, device.id, exc)
                continue
            archive.writestr(_archive_name(record.file_name, used), payload)
    return buffer.getvalue()


def archive_file_name(device_id: str) -> str:
    return f"{device_id}_export.zip"


__all__ = ["archive_file_name", "build_device_archive", "device_metadata"]
