from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import DeviceNotFound, StorageError, UploadRejected
from ..crud.device_files import (
    get_device_file,
    list_device_files,
    remove_device_file,
    store_upload,
)
from ..crud.devices import require_device
from ..db.session import get_db
from ..deps.auth import AuthContext, require_owner
from ..models.device_file import DeviceFile
from ..schemas.device_file import DeviceFileOut
from ..services.storage import LocalStorage, get_storage

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["device-files"])


def _load_file(db: Session, auth: AuthContext, file_id: int) -> DeviceFile:
    record = get_device_file(db, auth.owner_id, file_id)
    if record is None:
        raise HTTPException(404, "File not found")
    return record


@router.get("/devices/{device_id}/files", response_model=list[DeviceFileOut])
def api_list_files(
    device_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    try:
        device = require_device(db, auth.owner_id, device_id)
    except DeviceNotFound as exc:
        raise HTTPException(404, "Not found") from exc
    return list_device_files(db, device)


@router.post("/devices/{device_id}/files", response_model=DeviceFileOut, status_code=201)
async def api_upload_file(
    device_id: str,
    file: UploadFile = File(...),
    category: str = Form(default="OTHER"),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    try:
        device = require_device(db, auth.owner_id, device_id)
    except DeviceNotFound as exc:
        await file.close()
        raise HTTPException(404, "Not found") from exc
    filename = (file.filename or "").strip()
    if not filename:
        await file.close()
        raise HTTPException(status_code=400, detail="A file upload is required")
    try:
        data = await file.read()
    finally:
        await file.close()
    try:
        return store_upload(
            db,
            storage,
            device,
            auth.owner_id,
            filename=filename,
            content_type=file.content_type,
            data=data,
            category=category,
        )
    except UploadRejected as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except StorageError as exc:
        LOGGER.error("Upload for %s failed: %s", device_id, exc)
        raise HTTPException(status_code=500, detail="File upload failed") from exc
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=500, detail="Failed to save file metadata") from exc


@router.get("/files/{file_id}/download", response_class=FileResponse)
def api_download_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    record = _load_file(db, auth, file_id)
    try:
        path = storage.resolve(record.file_path)
    except StorageError as exc:
        raise HTTPException(404, "File not found") from exc
    if not path.exists():
        raise HTTPException(404, "File not found")
    media_type = record.file_type or "application/octet-stream"
    return FileResponse(path, media_type=media_type, filename=record.file_name)


@router.delete("/files/{file_id}")
def api_delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    record = _load_file(db, auth, file_id)
    remove_device_file(db, storage, record)
    return {"status": "deleted"}
