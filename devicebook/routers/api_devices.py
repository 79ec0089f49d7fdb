from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import DeviceNotFound, DuplicateDevice, ExportError, StorageError
from ..crud.company import get_company_profile
from ..crud.device_files import list_device_files, store_eigenbeleg
from ..crud.devices import (
    create_device,
    delete_device,
    list_devices,
    require_device,
    update_device,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_owner
from ..models.device import Device
from ..schemas.device import DeviceCreate, DeviceOut, DeviceUpdate
from ..schemas.receipt import EigenbelegRequest, EigenbelegResponse
from ..services.device_export import archive_file_name, build_device_archive
from ..services.eigenbeleg import EigenbelegOptions, generate_eigenbeleg
from ..services.spreadsheet_export import export_devices_xlsx
from ..services.storage import LocalStorage, get_storage

LOGGER = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

router = APIRouter(prefix="/api/v1/devices", tags=["devices"])


def _load_device(db: Session, auth: AuthContext, device_id: str) -> Device:
    try:
        return require_device(db, auth.owner_id, device_id)
    except DeviceNotFound as exc:
        raise HTTPException(404, "Not found") from exc


def _filtered_devices(
    db: Session,
    auth: AuthContext,
    date_from: Optional[date],
    date_to: Optional[date],
    date_field: str,
) -> list[Device]:
    try:
        return list_devices(db, auth.owner_id, date_from=date_from, date_to=date_to, date_field=date_field)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("", response_model=list[DeviceOut])
def api_list_devices(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    date_field: str = Query(default="purchase_date"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    return _filtered_devices(db, auth, date_from, date_to, date_field)


@router.post("", response_model=DeviceOut, status_code=201)
def api_create_device(
    payload: DeviceCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    try:
        return create_device(db, auth.owner_id, payload.model_dump())
    except DuplicateDevice as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("/export.xlsx")
def api_export_devices(
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    date_field: str = Query(default="purchase_date"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    devices = _filtered_devices(db, auth, date_from, date_to, date_field)
    try:
        content, filename = export_devices_xlsx(devices, now=datetime.now(ZoneInfo(settings.TZ)))
    except ExportError as exc:
        raise HTTPException(404, str(exc)) from exc
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{device_id}", response_model=DeviceOut)
def api_get_device(
    device_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    return _load_device(db, auth, device_id)


@router.patch("/{device_id}", response_model=DeviceOut)
def api_update_device(
    device_id: str,
    payload: DeviceUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    device = _load_device(db, auth, device_id)
    try:
        return update_device(db, device, payload.model_dump(exclude_unset=True))
    except DuplicateDevice as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.delete("/{device_id}")
def api_delete_device(
    device_id: str,
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    device = _load_device(db, auth, device_id)
    delete_device(db, storage, device)
    return {"status": "deleted"}


@router.post("/{device_id}/eigenbeleg", response_model=EigenbelegResponse)
async def api_generate_eigenbeleg(
    device_id: str,
    payload: EigenbelegRequest,
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    recipient = (payload.recipient_name or "").strip()
    if not recipient:
        raise HTTPException(status_code=400, detail="Name des Empfängers ist erforderlich")
    device = _load_device(db, auth, device_id)
    company = get_company_profile(db, auth.owner_id)
    if company is None:
        raise HTTPException(
            status_code=400,
            detail="Bitte hinterlege zuerst deine Firmendaten unter Einstellungen.",
        )

    options = EigenbelegOptions(recipient_name=recipient, reason=(payload.reason or "").strip() or None)
    pdf_bytes = await generate_eigenbeleg(device, company, options, storage=storage)
    today = datetime.now(ZoneInfo(settings.TZ)).date()
    try:
        record = store_eigenbeleg(db, storage, device, auth.owner_id, pdf_bytes, today)
    except StorageError as exc:
        LOGGER.error("Saving self-receipt for %s failed: %s", device.id, exc)
        raise HTTPException(status_code=500, detail="Failed to save PDF") from exc
    except SQLAlchemyError as exc:
        LOGGER.error("Saving self-receipt metadata for %s failed: %s", device.id, exc)
        raise HTTPException(status_code=500, detail="Failed to save receipt metadata") from exc
    return EigenbelegResponse(success=True, file_path=record.file_path, file_name=record.file_name)


@router.get("/{device_id}/export")
def api_export_device_archive(
    device_id: str,
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    device = _load_device(db, auth, device_id)
    archive = build_device_archive(device, list_device_files(db, device), storage)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{archive_file_name(device.id)}"'},
    )
