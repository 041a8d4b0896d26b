"""
eTIMS submission model and invoice payload mapping

KRA's Electronic Tax Invoice Management System receives every sales
invoice of a VAT-registered business. One invoice may have several
submission attempts; at most one can be active (submitted or verified).
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import VAT_PERCENT
from app.domain.invoice import Invoice
from app.domain.profile import BusinessProfile

SubmissionStatus = Literal["pending", "submitted", "verified", "failed", "cancelled"]

ACTIVE_STATUSES = ("submitted", "verified")
CANCELLATION_REASON = "Invoice cancelled by user"


class EtimsSubmission(BaseModel):
    """Submission attempt (etims_submissions table)"""
    id: str
    user_id: str
    invoice_id: str
    status: SubmissionStatus = "pending"
    control_unit_number: Optional[str] = None
    control_unit_date: Optional[str] = None
    qr_code_url: Optional[str] = None
    receipt_number: Optional[str] = None
    fiscal_code: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    request_payload: Optional[Dict[str, Any]] = None
    response_payload: Optional[Dict[str, Any]] = None
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EtimsActionRequest(BaseModel):
    action: Literal["submit_invoice", "get_status", "verify_submission", "cancel_invoice"]
    invoice_id: Optional[str] = Field(None, alias="invoiceId")
    submission_id: Optional[str] = Field(None, alias="submissionId")

    model_config = ConfigDict(populate_by_name=True)


def _round(value: float) -> float:
    return round(value, 2)


def build_etims_payload(invoice: Invoice, profile: BusinessProfile) -> Dict[str, Any]:
    """
    Map an invoice onto the eTIMS invoice submission body

    Dates are taken from ``created_at`` in UTC. Item VAT is charged at the
    standard rate on the line total.
    """
    created_at = invoice.created_at
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc)

    rate = VAT_PERCENT / 100
    items: List[Dict[str, Any]] = []
    for index, item in enumerate(invoice.items, start=1):
        line_total = float(item.total if item.total is not None else item.line_total())
        items.append({
            "itemSequence": index,
            "itemDescription": item.description,
            "quantity": float(item.quantity),
            "unitPrice": float(item.unit_price),
            "taxableAmount": line_total,
            "vatRate": VAT_PERCENT,
            "vatAmount": _round(line_total * rate),
            "totalAmount": _round(line_total * (1 + rate)),
        })

    return {
        "traderSystemInvoiceNumber": invoice.invoice_number,
        "invoiceDate": created_at.strftime("%Y-%m-%d"),
        "invoiceTime": created_at.strftime("%H:%M:%S"),
        "buyerName": invoice.customer_name,
        "buyerPin": invoice.customer_kra_pin or None,
        "buyerPhoneNumber": invoice.customer_phone or None,
        "buyerEmail": invoice.customer_email or None,
        "paymentType": "MOBILE_MONEY" if invoice.payment_method == "mpesa" else "CASH",
        "taxableAmount": float(invoice.subtotal),
        "vatAmount": float(invoice.vat_amount),
        "totalAmount": float(invoice.total),
        "items": items,
        "sellerPin": profile.kra_pin,
        "sellerName": profile.business_name,
    }
