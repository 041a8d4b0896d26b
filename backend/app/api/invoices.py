"""
Invoices API Endpoints
Invoice list, creation, status changes and PDF download
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from app.core.auth import AuthUser, get_current_user
from app.domain.invoice import InvoiceCreate, InvoiceStatusUpdate
from app.services.invoice_service import InvoiceService

router = APIRouter()


def get_invoice_service() -> InvoiceService:
    return InvoiceService()


@router.get("/")
async def list_invoices(
    status: Optional[str] = Query(None, description="draft, sent, paid or overdue"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: AuthUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoices = service.list_invoices(user.id, status=status, start_date=start_date, end_date=end_date)
    return {
        "status": "success",
        "count": len(invoices),
        "data": [invoice.to_dict() for invoice in invoices],
    }


@router.post("/", status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    user: AuthUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Create an invoice; number and totals are assigned here, and a sale is booked"""
    invoice = service.create_invoice(user.id, data)
    return {"status": "success", "data": invoice.to_dict()}


@router.patch("/{invoice_id}/status")
async def update_invoice_status(
    invoice_id: str,
    update: InvoiceStatusUpdate,
    user: AuthUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.update_status(user.id, invoice_id, update.status)
    return {"status": "success", "data": invoice.to_dict()}


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: str,
    user: AuthUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    service.delete_invoice(user.id, invoice_id)
    return {"status": "success", "message": "Invoice deleted"}


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: str,
    user: AuthUser = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice, pdf = service.render_pdf(user.id, invoice_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={invoice.invoice_number}.pdf"},
    )
