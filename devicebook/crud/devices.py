"""CRUD helpers for devices, scoped to the owning account."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Mapping

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.device_types import (
    CONDITION_CHOICES,
    CONDITION_USED,
    STATUS_CHOICES,
    STATUS_SOLD,
    normalize_status,
)
from ..core.errors import DeviceNotFound, DuplicateDevice, StorageError
from ..models.device import Device
from ..services.device_mapping import (
    normalize_record,
    parse_bool,
    parse_date,
    parse_number,
    parse_optional_number,
)
from ..services.storage import LocalStorage

LOGGER = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("model", "storage", "color")
OPTIONAL_TEXT_FIELDS = (
    "imei",
    "buyer_name",
    "platform_order_number",
    "sale_invoice_number",
    "seller_name",
    "defects",
)
OPTIONAL_DATE_FIELDS = ("repair_date", "sale_date", "shipping_buy_date", "shipping_sell_date")
MONEY_FIELDS = ("purchase_price", "repair_cost", "shipping_buy", "shipping_sell", "sales_fees")
DATE_FILTER_FIELDS = ("purchase_date", "sale_date", "created_at")


def _utcnow() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _status(value: Any) -> str:
    status = normalize_status(value)
    if status not in STATUS_CHOICES:
        raise ValueError(f"status must be one of {', '.join(STATUS_CHOICES)}")
    return status


def _condition(value: Any) -> str:
    condition = (_clean_text(value) or CONDITION_USED).upper()
    if condition not in CONDITION_CHOICES:
        raise ValueError(f"condition must be one of {', '.join(CONDITION_CHOICES)}")
    return condition


def _check_sale_state(device: Device) -> None:
    if device.status != STATUS_SOLD:
        return
    if device.sale_price is None or device.sale_date is None:
        raise ValueError("A sold device needs a sale price and a sale date")


def _apply_fields(device: Device, data: Mapping[str, Any]) -> None:
    """Copy the supplied (snake_case) fields onto ``device``."""

    for field in REQUIRED_TEXT_FIELDS:
        if field in data:
            value = _clean_text(data[field])
            if not value:
                raise ValueError(f"{field} is required")
            setattr(device, field, value)
    for field in OPTIONAL_TEXT_FIELDS:
        if field in data:
            setattr(device, field, _clean_text(data[field]))
    if "status" in data:
        device.status = _status(data["status"])
    if "condition" in data:
        device.condition = _condition(data["condition"])
    if "purchase_date" in data:
        purchased = parse_date(data["purchase_date"])
        if purchased is None:
            raise ValueError("purchase_date is required")
        device.purchase_date = purchased
    for field in OPTIONAL_DATE_FIELDS:
        if field in data:
            setattr(device, field, parse_date(data[field]))
    for field in MONEY_FIELDS:
        if field in data:
            setattr(device, field, parse_number(data[field]))
    if "sale_price" in data:
        device.sale_price = parse_optional_number(data["sale_price"])
    if "is_diff_tax" in data:
        device.is_diff_tax = parse_bool(data["is_diff_tax"], default=True)


def list_devices(
    db: Session,
    owner_id: str,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    date_field: str = "purchase_date",
) -> list[Device]:
    """Return the owner's devices, newest first, optionally date-filtered.

    ``date_to`` is inclusive. Filtering on ``sale_date`` drops devices that
    have not been sold.
    """

    if date_field not in DATE_FILTER_FIELDS:
        raise ValueError(f"date_field must be one of {', '.join(DATE_FILTER_FIELDS)}")

    stmt = select(Device).where(Device.owner_user_id == owner_id)
    if date_from or date_to:
        column = getattr(Device, date_field)
        if date_field == "created_at":
            # created_at is an ISO text column, compared lexicographically.
            if date_from:
                stmt = stmt.where(column >= date_from.isoformat())
            if date_to:
                stmt = stmt.where(column < (date_to + timedelta(days=1)).isoformat())
        else:
            if date_from:
                stmt = stmt.where(column >= date_from)
            if date_to:
                stmt = stmt.where(column <= date_to)
        if date_field == "sale_date":
            stmt = stmt.where(Device.sale_date.is_not(None))
    stmt = stmt.order_by(desc(Device.created_at), desc(Device.id))
    return db.execute(stmt).scalars().all()


def get_device(db: Session, owner_id: str, device_id: str) -> Device | None:
    stmt = select(Device).where(Device.id == device_id, Device.owner_user_id == owner_id)
    return db.execute(stmt).scalars().first()


def _imei_taken(db: Session, imei: str | None, exclude_id: str | None = None) -> bool:
    if not imei:
        return False
    stmt = select(Device.id).where(Device.imei == imei)
    if exclude_id is not None:
        stmt = stmt.where(Device.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_device(db: Session, owner_id: str, payload: Mapping[str, Any]) -> Device:
    data = normalize_record(payload)
    device_id = _clean_text(data.get("id"))
    if not device_id:
        raise ValueError("id is required")
    if db.get(Device, device_id) is not None:
        raise DuplicateDevice("Geräte-ID existiert bereits")

    now = _utcnow()
    device = Device(
        id=device_id,
        owner_user_id=owner_id,
        condition=CONDITION_USED,
        status=_status(data.get("status")),
        purchase_date=parse_date(data.get("purchase_date")) or date.today(),
        purchase_price=parse_number(data.get("purchase_price")),
        repair_cost=parse_number(data.get("repair_cost")),
        shipping_buy=parse_number(data.get("shipping_buy")),
        shipping_sell=parse_number(data.get("shipping_sell")),
        sales_fees=parse_number(data.get("sales_fees")),
        sale_price=parse_optional_number(data.get("sale_price")),
        is_diff_tax=parse_bool(data.get("is_diff_tax"), default=True),
        created_at=now,
        updated_at=now,
    )
    for field in REQUIRED_TEXT_FIELDS:
        data.setdefault(field, None)
    fields = {key: value for key, value in data.items() if key not in {"id", "purchase_date"}}
    _apply_fields(device, fields)
    _check_sale_state(device)

    if _imei_taken(db, device.imei):
        raise DuplicateDevice("IMEI existiert bereits in der Datenbank")

    db.add(device)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateDevice("Gerät konnte nicht gespeichert werden: ID oder IMEI bereits vergeben") from exc
    db.refresh(device)
    LOGGER.info("Created device %s", device.id)
    return device


def update_device(db: Session, device: Device, payload: Mapping[str, Any]) -> Device:
    """Apply a partial update; only keys present in ``payload`` change."""

    data = normalize_record(payload)
    data.pop("id", None)
    data.pop("owner_user_id", None)
    try:
        _apply_fields(device, data)
        _check_sale_state(device)
    except ValueError:
        db.rollback()
        raise
    if "imei" in data and _imei_taken(db, device.imei, exclude_id=device.id):
        db.rollback()
        raise DuplicateDevice("IMEI existiert bereits in der Datenbank")
    device.updated_at = _utcnow()
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateDevice("IMEI existiert bereits in der Datenbank") from exc
    db.refresh(device)
    return device


def delete_device(db: Session, storage: LocalStorage, device: Device) -> None:
    """Delete the device, its file records and their stored bytes."""

    for record in list(device.files):
        try:
            storage.delete(record.file_path)
        except StorageError as exc:
            LOGGER.warning("Could not remove %s for device %s: %s", record.file_path, device.id, exc)
    db.delete(device)
    db.commit()
    LOGGER.info("Deleted device %s", device.id)


def require_device(db: Session, owner_id: str, device_id: str) -> Device:
    device = get_device(db, owner_id, device_id)
    if device is None:
        raise DeviceNotFound(f"Device {device_id} not found")
    return device
