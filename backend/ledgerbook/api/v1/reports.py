"""
Reports API Routes - Monthly GST summary and portal exports
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import Optional

from ledgerbook.core.config import settings
from ledgerbook.core.database import get_db
from ledgerbook.schemas import PeriodReportSummary
from ledgerbook.services.report_service import (
    ReportService, to_gstr1_json, to_gstr3b_json, export_period_report_excel
)

router = APIRouter(prefix="/reports", tags=["Reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _resolve_gstin(gstin: Optional[str]) -> str:
    value = (gstin or settings.BUSINESS_GSTIN or "").strip().upper()
    if not value:
        raise HTTPException(status_code=400, detail="Business GSTIN is not configured")
    return value


@router.get("/period", response_model=PeriodReportSummary, response_model_by_alias=True)
async def get_period_report(month: int, year: int, db: Session = Depends(get_db)):
    """B2B rows, B2C rows by state, outward supplies and net liability for one month"""
    return ReportService(db).period_report(month, year)


@router.get("/gstr1.json")
async def get_gstr1(month: int, year: int, gstin: Optional[str] = None, db: Session = Depends(get_db)):
    """GSTR-1 upload payload"""
    report = ReportService(db).period_report(month, year)
    return to_gstr1_json(report, _resolve_gstin(gstin), settings.B2C_LARGE_INVOICE_LIMIT)


@router.get("/gstr3b.json")
async def get_gstr3b(month: int, year: int, gstin: Optional[str] = None, db: Session = Depends(get_db)):
    """GSTR-3B upload payload"""
    report = ReportService(db).period_report(month, year)
    return to_gstr3b_json(report, _resolve_gstin(gstin))


@router.get("/period.xlsx")
async def download_period_report(month: int, year: int, db: Session = Depends(get_db)):
    """Period report as an Excel workbook"""
    report = ReportService(db).period_report(month, year)
    filename = f"gst_report_{year}_{month:02d}.xlsx"
    return Response(
        content=export_period_report_excel(report),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
