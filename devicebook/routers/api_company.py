from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import CompanyProfileMissing, StorageError, UploadRejected
from ..crud.company import (
    clear_company_logo,
    get_company_profile,
    set_company_logo,
    upsert_company_profile,
)
from ..db.session import get_db
from ..deps.auth import AuthContext, require_owner
from ..schemas.company import CompanyProfileIn, CompanyProfileOut
from ..services.storage import LocalStorage, get_storage

router = APIRouter(prefix="/api/v1/company", tags=["company"])


@router.get("", response_model=CompanyProfileOut)
def api_get_company(db: Session = Depends(get_db), auth: AuthContext = Depends(require_owner)):
    profile = get_company_profile(db, auth.owner_id)
    if profile is None:
        raise HTTPException(404, "Not found")
    return profile


@router.put("", response_model=CompanyProfileOut)
def api_put_company(
    payload: CompanyProfileIn,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    try:
        return upsert_company_profile(db, auth.owner_id, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("/logo", response_model=CompanyProfileOut)
async def api_upload_logo(
    logo: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    try:
        data = await logo.read()
    finally:
        await logo.close()
    try:
        return set_company_logo(
            db,
            storage,
            auth.owner_id,
            data,
            logo.content_type,
            max_bytes=settings.MAX_UPLOAD_BYTES,
        )
    except CompanyProfileMissing as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UploadRejected as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Failed to upload logo") from exc


@router.delete("/logo", response_model=CompanyProfileOut)
def api_delete_logo(
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
    auth: AuthContext = Depends(require_owner),
):
    try:
        return clear_company_logo(db, storage, auth.owner_id)
    except CompanyProfileMissing as exc:
        raise HTTPException(404, str(exc)) from exc
