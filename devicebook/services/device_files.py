"""Naming, placement and validation rules for device documents.

Every stored document lives under ``<owner>/<YYYY-MM of purchase>/<device>/``
and gets a structured German file name such as
``Rechnung_RS-2026-001_2026-02-14.pdf``.
"""

from __future__ import annotations

import time
from datetime import date
from pathlib import PurePosixPath
from typing import Any, Callable, Optional

from ..core.config import settings
from ..core.device_types import (
    CATEGORY_FILENAME_PREFIXES,
    CATEGORY_OTHER,
    normalize_category,
)
from ..core.errors import UploadRejected
from .device_mapping import parse_date
from .storage import LocalStorage

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "text/plain",
}


def validate_upload(content_type: Optional[str], size: int, category: Optional[str] = None) -> str:
    """Check an upload and return its normalised category."""

    limit = settings.MAX_UPLOAD_BYTES
    if size <= 0:
        raise UploadRejected("Die Datei ist leer")
    if size > limit:
        raise UploadRejected(
            f"Datei zu groß. Maximal {limit // (1024 * 1024)} MB erlaubt",
            status_code=413,
        )
    if (content_type or "").lower() not in ALLOWED_MIME_TYPES:
        raise UploadRejected(
            "Dateityp nicht erlaubt. Erlaubt: PDF, PNG, JPG, WEBP, TXT",
            status_code=415,
        )
    return normalize_category(category)


def file_extension(filename: Optional[str]) -> str:
    return PurePosixPath((filename or "").replace("\\", "/")).suffix


def structured_file_name(
    category: str,
    device_id: str,
    original_filename: Optional[str],
    day: Optional[date] = None,
) -> str:
    prefix = CATEGORY_FILENAME_PREFIXES.get(category, CATEGORY_FILENAME_PREFIXES[CATEGORY_OTHER])
    stamp = (day or date.today()).isoformat()
    return f"{prefix}_{device_id}_{stamp}{file_extension(original_filename)}"


def eigenbeleg_file_name(device_id: str, day: date) -> str:
    return f"Eigenbeleg_{device_id}_{day.isoformat()}.pdf"


def device_folder(owner_id: str, device: Any) -> str:
    purchased = parse_date(getattr(device, "purchase_date", None)) or date.today()
    return f"{owner_id}/{purchased.strftime('%Y-%m')}/{device.id}"


def storage_path(owner_id: str, device: Any, file_name: str) -> str:
    return f"{device_folder(owner_id, device)}/{file_name}"


def unique_file_name(
    storage: LocalStorage,
    folder: str,
    file_name: str,
    clock: Callable[[], float] = time.time,
) -> str:
    """Return ``file_name`` or, when taken, ``<stem>_<ms timestamp><ext>``."""

    candidate = file_name
    path = PurePosixPath(file_name)
    stem, ext = path.stem, path.suffix
    counter = 0
    while storage.exists(f"{folder}/{candidate}"):
        timestamp = int(clock() * 1000) + counter
        candidate = f"{stem}_{timestamp}{ext}"
        counter += 1
    return candidate


__all__ = [
    "ALLOWED_MIME_TYPES",
    "device_folder",
    "eigenbeleg_file_name",
    "file_extension",
    "storage_path",
    "structured_file_name",
    "unique_file_name",
    "validate_upload",
]
