"""
Transactions API Endpoints
Cash book: sales and expenses, plus the Excel export
"""
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from app.core.auth import AuthUser, get_current_user
from app.domain.transaction import TransactionCreate, TransactionUpdate
from app.services.report_service import ReportService
from app.services.transaction_service import TransactionService

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_transaction_service() -> TransactionService:
    return TransactionService()


def get_report_service() -> ReportService:
    return ReportService()


@router.get("/")
async def list_transactions(
    type: Optional[str] = Query(None, pattern="^(sale|expense)$", description="sale or expense"),
    start_date: Optional[date] = Query(None, description="Inclusive lower bound"),
    end_date: Optional[date] = Query(None, description="Inclusive upper bound"),
    category: Optional[str] = Query(None),
    limit: int = Query(500, ge=1, le=5000),
    offset: int = Query(0, ge=0),
    user: AuthUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    transactions = service.list_transactions(
        user.id,
        type=type,
        start_date=start_date,
        end_date=end_date,
        category=category,
        limit=limit,
        offset=offset,
    )

    return {
        "status": "success",
        "count": len(transactions),
        "limit": limit,
        "offset": offset,
        "data": [t.to_dict() for t in transactions],
    }


@router.get("/export")
async def export_transactions(
    type: Optional[str] = Query(None, pattern="^(sale|expense)$"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: AuthUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """Download the cash book as an Excel workbook"""
    excel_file = service.export_transactions_xlsx(user.id, start=start_date, end=end_date, type=type)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"transactions_{timestamp}.xlsx"

    return StreamingResponse(
        excel_file,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    user: AuthUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    return {"status": "success", "data": service.get_transaction(user.id, transaction_id).to_dict()}


@router.post("/", status_code=201)
async def create_transaction(
    data: TransactionCreate,
    user: AuthUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    transaction = service.create_transaction(user.id, data)
    return {"status": "success", "data": transaction.to_dict()}


@router.put("/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    updates: TransactionUpdate,
    user: AuthUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    transaction = service.update_transaction(user.id, transaction_id, updates)
    return {"status": "success", "data": transaction.to_dict()}


@router.delete("/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    user: AuthUser = Depends(get_current_user),
    service: TransactionService = Depends(get_transaction_service),
):
    service.delete_transaction(user.id, transaction_id)
    return {"status": "success", "message": "Transaction deleted"}
