"""Device document records and the bytes behind them."""

from __future__ import annotations

import logging
from datetime import date, datetime
from uuid import uuid4

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.device_types import CATEGORY_EIGENBELEG
from ..core.errors import StorageError
from ..models.device import Device
from ..models.device_file import DeviceFile
from ..services.device_files import (
    device_folder,
    eigenbeleg_file_name,
    storage_path,
    structured_file_name,
    unique_file_name,
    validate_upload,
)
from ..services.storage import LocalStorage

LOGGER = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


def _utcnow() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def _discard(storage: LocalStorage, path: str) -> None:
    try:
        storage.delete(path)
    except StorageError as exc:
        LOGGER.warning("Rollback of %s failed: %s", path, exc)


def list_device_files(db: Session, device: Device) -> list[DeviceFile]:
    stmt = (
        select(DeviceFile)
        .where(DeviceFile.device_id == device.id)
        .order_by(desc(DeviceFile.created_at), desc(DeviceFile.id))
    )
    return db.execute(stmt).scalars().all()


def get_device_file(db: Session, owner_id: str, file_id: int) -> DeviceFile | None:
    stmt = select(DeviceFile).where(DeviceFile.id == file_id, DeviceFile.owner_user_id == owner_id)
    return db.execute(stmt).scalars().first()


def store_upload(
    db: Session,
    storage: LocalStorage,
    device: Device,
    owner_id: str,
    *,
    filename: str | None,
    content_type: str | None,
    data: bytes,
    category: str | None = None,
) -> DeviceFile:
    """Validate, store and register an uploaded document.

    The bytes are written first; if the record cannot be saved they are
    removed again so storage never holds unreferenced uploads. An uploaded
    EIGENBELEG replaces the device's current one.
    """

    clean_category = validate_upload(content_type, len(data), category)
    folder = device_folder(owner_id, device)
    name = unique_file_name(storage, folder, structured_file_name(clean_category, device.id, filename))
    path = f"{folder}/{name}"
    file_type = (content_type or "").lower() or None

    if clean_category == CATEGORY_EIGENBELEG:
        return replace_eigenbeleg(
            db, storage, device, owner_id, data, file_name=name, path=path, file_type=file_type
        )

    storage.save(path, data, overwrite=False)
    record = DeviceFile(
        device_id=device.id,
        owner_user_id=owner_id,
        file_name=name,
        file_path=path,
        file_size=len(data),
        file_type=file_type,
        category=clean_category,
        created_at=_utcnow(),
    )
    db.add(record)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        LOGGER.error("Saving metadata for %s failed; removing stored bytes", path)
        _discard(storage, path)
        raise
    db.refresh(record)
    LOGGER.info("Stored %s for device %s", name, device.id)
    return record


def remove_device_file(db: Session, storage: LocalStorage, record: DeviceFile) -> None:
    """Delete the stored bytes, then the record.

    A storage failure is logged and does not keep the record alive.
    """

    try:
        storage.delete(record.file_path)
    except StorageError as exc:
        LOGGER.warning("Could not delete stored file %s: %s", record.file_path, exc)
    db.delete(record)
    db.commit()


def get_eigenbeleg_file(db: Session, device_id: str) -> DeviceFile | None:
    stmt = select(DeviceFile).where(
        DeviceFile.device_id == device_id,
        DeviceFile.category == CATEGORY_EIGENBELEG,
    )
    return db.execute(stmt).scalars().first()


def upsert_eigenbeleg_file(
    db: Session,
    device: Device,
    owner_id: str,
    *,
    file_name: str,
    file_path: str,
    file_size: int,
    file_type: str | None = PDF_MEDIA_TYPE,
) -> DeviceFile:
    """Point the device's single EIGENBELEG record at a new file."""

    record = get_eigenbeleg_file(db, device.id)
    now = _utcnow()
    if record is None:
        record = DeviceFile(
            device_id=device.id,
            owner_user_id=owner_id,
            category=CATEGORY_EIGENBELEG,
        )
        db.add(record)
    record.file_name = file_name
    record.file_path = file_path
    record.file_size = file_size
    record.file_type = file_type
    record.created_at = now
    db.commit()
    db.refresh(record)
    return record


def replace_eigenbeleg(
    db: Session,
    storage: LocalStorage,
    device: Device,
    owner_id: str,
    data: bytes,
    *,
    file_name: str,
    path: str,
    file_type: str | None = PDF_MEDIA_TYPE,
) -> DeviceFile:
    """Make ``data`` the device's EIGENBELEG.

    The bytes are staged under a temporary key and only moved to ``path``
    once the record is committed, so a failed commit leaves the previous
    receipt and its file untouched. A superseded file at another path is
    removed afterwards.
    """

    previous = get_eigenbeleg_file(db, device.id)
    previous_path = previous.file_path if previous is not None else None
    staging = f"{path}.{uuid4().hex}.part"

    storage.save(staging, data, overwrite=False)
    try:
        record = upsert_eigenbeleg_file(
            db,
            device,
            owner_id,
            file_name=file_name,
            file_path=path,
            file_size=len(data),
            file_type=file_type,
        )
    except SQLAlchemyError:
        db.rollback()
        LOGGER.error("Saving receipt metadata for %s failed; keeping previous file", device.id)
        _discard(storage, staging)
        raise
    try:
        storage.move(staging, path)
    except StorageError:
        LOGGER.error("Receipt record for %s points at %s but the file could not be placed", device.id, path)
        raise
    if previous_path and previous_path != path:
        try:
            storage.delete(previous_path)
        except StorageError as exc:
            LOGGER.warning("Could not remove superseded receipt %s: %s", previous_path, exc)
    LOGGER.info("Stored self-receipt %s for device %s", file_name, device.id)
    return record


def store_eigenbeleg(
    db: Session,
    storage: LocalStorage,
    device: Device,
    owner_id: str,
    pdf_bytes: bytes,
    day: date,
) -> DeviceFile:
    """Save a freshly rendered self-receipt and register it on the device.

    Regenerating on the same day replaces the PDF in place; a receipt from an
    earlier day is replaced and its old file removed.
    """

    file_name = eigenbeleg_file_name(device.id, day)
    return replace_eigenbeleg(
        db,
        storage,
        device,
        owner_id,
        pdf_bytes,
        file_name=file_name,
        path=storage_path(owner_id, device, file_name),
    )
