"""
Invoice Domain Models

Invoices are stored flat: customer details are columns on the invoice row
and the line items are a JSONB array.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import VAT_RATE

InvoiceStatus = Literal["draft", "sent", "paid", "overdue"]
InvoicePaymentMethod = Literal["cash", "mpesa"]
EtimsStatus = Literal["pending", "submitted", "verified", "failed", "cancelled"]

TWO_PLACES = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class InvoiceItem(BaseModel):
    """One invoice line"""
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    total: Optional[Decimal] = None

    def line_total(self) -> Decimal:
        return quantize_money(self.quantity * self.unit_price)

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": float(self.quantity),
            "unit_price": float(self.unit_price),
            "total": float(self.total if self.total is not None else self.line_total()),
        }


class InvoiceCustomer(BaseModel):
    """Customer as typed on the invoice form"""
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    kra_pin: Optional[str] = None


class InvoiceTotals(BaseModel):
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


class Invoice(BaseModel):
    """
    Invoice domain model (invoices table)

    eTIMS fields are null until the invoice is submitted to KRA.
    """

    id: str
    user_id: str
    invoice_number: str
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_kra_pin: Optional[str] = None
    items: List[InvoiceItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    vat_amount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    status: InvoiceStatus = "draft"
    payment_method: InvoicePaymentMethod = "cash"
    due_date: Optional[date] = None
    created_at: datetime

    etims_status: Optional[EtimsStatus] = None
    etims_control_number: Optional[str] = None
    etims_qr_code: Optional[str] = None
    etims_submitted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def customer(self) -> InvoiceCustomer:
        return InvoiceCustomer(
            name=self.customer_name,
            phone=self.customer_phone,
            email=self.customer_email,
            kra_pin=self.customer_kra_pin,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump(exclude={"items"})
        data["items"] = [item.to_dict() for item in self.items]
        for field in ("subtotal", "vat_amount", "total"):
            data[field] = float(data[field] or 0)
        return data


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice; totals are computed server-side"""
    customer: InvoiceCustomer
    items: List[InvoiceItem] = Field(..., min_length=1)
    status: InvoiceStatus = "draft"
    payment_method: InvoicePaymentMethod = "cash"
    due_date: date


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


def calculate_invoice_totals(items: List[InvoiceItem], vat_registered: bool) -> InvoiceTotals:
    """
    Sum line totals and add VAT at 16% for VAT-registered businesses

    Line totals are always recomputed from quantity and unit price.
    """
    subtotal = sum((item.line_total() for item in items), Decimal("0"))
    vat_amount = quantize_money(subtotal * VAT_RATE) if vat_registered else Decimal("0")
    return InvoiceTotals(
        subtotal=quantize_money(subtotal),
        vat_amount=vat_amount,
        total=quantize_money(subtotal + vat_amount),
    )


def format_invoice_number(sequence: int) -> str:
    """INV-001, INV-002, ... INV-1000 (padded to at least three digits)"""
    return f"INV-{sequence:03d}"
