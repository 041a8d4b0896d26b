"""
Reports API Endpoints
Dashboard summary, VAT report and POS sales report
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.auth import AuthUser, get_current_user
from app.services.report_service import ReportService

router = APIRouter()


def get_report_service() -> ReportService:
    return ReportService()


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must be on or before end_date")


@router.get("/summary")
async def get_summary(
    user: AuthUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return {"status": "success", "data": service.summary(user.id)}


@router.get("/vat")
async def get_vat_report(
    start_date: Optional[date] = Query(None, description="Defaults to the first day of this month"),
    end_date: Optional[date] = Query(None, description="Defaults to the last day of this month"),
    user: AuthUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    _check_range(start_date, end_date)
    return {"status": "success", "data": service.vat_report(user.id, start_date, end_date)}


@router.get("/pos-sales")
async def get_pos_sales_report(
    start_date: Optional[date] = Query(None, description="Defaults to 6 days before end_date"),
    end_date: Optional[date] = Query(None, description="Defaults to today"),
    user: AuthUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    _check_range(start_date, end_date)
    return {"status": "success", "data": service.pos_sales_report(user.id, start_date, end_date)}
