"""Company profile storage: one profile per owning account."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import CompanyProfileMissing, StorageError, UploadRejected
from ..models.company_profile import CompanyProfile
from ..services.device_mapping import normalize_record
from ..services.storage import LocalStorage

LOGGER = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "company_name",
    "owner_name",
    "street",
    "house_number",
    "postal_code",
    "city",
    "email",
)
OPTIONAL_FIELDS = ("vat_id", "tax_id", "phone")
DEFAULT_COUNTRY = "Deutschland"
LOGO_CONTENT_TYPES = {"image/png", "image/jpeg", "image/jpg", "image/webp"}


def _utcnow() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def logo_storage_key(owner_id: str) -> str:
    return f"{owner_id}/company/logo.png"


def get_company_profile(db: Session, owner_id: str) -> CompanyProfile | None:
    stmt = select(CompanyProfile).where(CompanyProfile.user_id == owner_id)
    return db.execute(stmt).scalars().first()


def upsert_company_profile(db: Session, owner_id: str, payload: Mapping[str, Any]) -> CompanyProfile:
    """Create or replace the owner's profile; the logo is kept as is."""

    data = normalize_record(payload)
    values: dict[str, Any] = {}
    for field in REQUIRED_FIELDS:
        value = str(data.get(field) or "").strip()
        if not value:
            raise ValueError(f"{field} is required")
        values[field] = value
    for field in OPTIONAL_FIELDS:
        values[field] = str(data.get(field) or "").strip() or None
    values["country"] = str(data.get("country") or "").strip() or DEFAULT_COUNTRY

    now = _utcnow()
    profile = get_company_profile(db, owner_id)
    if profile is None:
        profile = CompanyProfile(user_id=owner_id, created_at=now)
        db.add(profile)
    for field, value in values.items():
        setattr(profile, field, value)
    profile.updated_at = now
    db.commit()
    db.refresh(profile)
    return profile


def set_company_logo(
    db: Session,
    storage: LocalStorage,
    owner_id: str,
    data: bytes,
    content_type: str | None,
    *,
    max_bytes: int,
) -> CompanyProfile:
    profile = get_company_profile(db, owner_id)
    if profile is None:
        raise CompanyProfileMissing("Bitte hinterlege zuerst deine Firmendaten unter Einstellungen.")
    if not data:
        raise UploadRejected("Die Datei ist leer")
    if len(data) > max_bytes:
        raise UploadRejected("Logo ist zu groß", status_code=413)
    if (content_type or "").lower() not in LOGO_CONTENT_TYPES:
        raise UploadRejected("Nur PNG, JPG oder WEBP als Logo erlaubt", status_code=415)

    key = logo_storage_key(owner_id)
    storage.save(key, data, overwrite=True)
    profile.logo_url = key
    profile.updated_at = _utcnow()
    db.commit()
    db.refresh(profile)
    return profile


def clear_company_logo(db: Session, storage: LocalStorage, owner_id: str) -> CompanyProfile:
    profile = get_company_profile(db, owner_id)
    if profile is None:
        raise CompanyProfileMissing("Kein Firmenprofil vorhanden")
    if profile.logo_url:
        try:
            storage.delete(logo_storage_key(owner_id))
        except StorageError as exc:
            LOGGER.warning("Could not delete logo for %s: %s", owner_id, exc)
    profile.logo_url = None
    profile.updated_at = _utcnow()
    db.commit()
    db.refresh(profile)
    return profile
