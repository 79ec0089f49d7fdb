from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import AuthContext, require_owner
from ..schemas.device import DeviceOut
from ..schemas.report import MonthlyKpis, MonthlyReportOut
from ..services.reporting import build_monthly_report

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/monthly", response_model=MonthlyReportOut)
def api_monthly_report(
    month: str = Query(..., description="Calendar month as YYYY-MM"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_owner),
):
    try:
        report = build_monthly_report(db, auth.owner_id, month)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return MonthlyReportOut(
        month=report["month"],
        period_start=report["period_start"],
        period_end=report["period_end"],
        devices=[DeviceOut.model_validate(device) for device in report["devices"]],
        kpis=MonthlyKpis(**report["kpis"]),
    )
