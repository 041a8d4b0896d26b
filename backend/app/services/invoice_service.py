"""
Invoice Service
Invoice creation with server-side totals, status changes and PDF export
"""
import logging
from datetime import date
from typing import List, Optional

from app.core.errors import ResourceNotFoundError
from app.domain.invoice import (
    Invoice,
    InvoiceCreate,
    calculate_invoice_totals,
    format_invoice_number,
)
from app.domain.transaction import TransactionCreate
from app.repositories import InvoiceRepository, ProfileRepository, TransactionRepository
from app.services.invoice_pdf import render_invoice_pdf

logger = logging.getLogger(__name__)


class InvoiceService:

    def __init__(self):
        self.invoice_repo = InvoiceRepository()
        self.profile_repo = ProfileRepository()
        self.transaction_repo = TransactionRepository()

    def list_invoices(
        self,
        user_id: str,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Invoice]:
        return self.invoice_repo.find_all(user_id, status=status, start_date=start_date, end_date=end_date)

    def create_invoice(self, user_id: str, data: InvoiceCreate, today: Optional[date] = None) -> Invoice:
        """
        Number, total and store an invoice, then book it as a sale

        VAT is charged only when the business is VAT registered.
        """
        profile = self.profile_repo.get_by_user_id(user_id)
        vat_registered = bool(profile and profile.is_vat_registered)

        totals = calculate_invoice_totals(data.items, vat_registered)
        invoice_number = format_invoice_number(self.invoice_repo.count(user_id) + 1)

        invoice = self.invoice_repo.create(user_id, invoice_number, data, totals)
        logger.info(f"Created invoice {invoice_number} for user {user_id}: total {totals.total}")

        self.transaction_repo.create(user_id, TransactionCreate(
            type="sale",
            amount=totals.total,
            description=f"Invoice {invoice_number} - {data.customer.name}",
            category="product",
            date=today or date.today(),
            customer=data.customer.name,
            is_vat_applicable=True,
            vat_amount=totals.vat_amount,
            payment_method=data.payment_method,
        ))

        return invoice

    def update_status(self, user_id: str, invoice_id: str, status: str) -> Invoice:
        invoice = self.invoice_repo.update_status(user_id, invoice_id, status)
        if not invoice:
            raise ResourceNotFoundError("Invoice", invoice_id)
        return invoice

    def delete_invoice(self, user_id: str, invoice_id: str) -> None:
        if not self.invoice_repo.delete(user_id, invoice_id):
            raise ResourceNotFoundError("Invoice", invoice_id)

    def render_pdf(self, user_id: str, invoice_id: str):
        """
        Returns:
            (invoice, pdf bytes)
        """
        invoice = self.invoice_repo.find_by_id(user_id, invoice_id)
        if not invoice:
            raise ResourceNotFoundError("Invoice", invoice_id)

        profile = self.profile_repo.get_by_user_id(user_id)
        if not profile:
            raise ResourceNotFoundError("Profile", user_id)

        return invoice, render_invoice_pdf(invoice, profile)
