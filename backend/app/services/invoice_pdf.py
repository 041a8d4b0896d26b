"""
Invoice PDF rendering (reportlab)

Layout, top to bottom on one A4 page: green header band with business
name and invoice number, business details, bill-to block, invoice details
with a coloured status, item table, totals, M-Pesa payment block, footer.
"""
import io
import logging
from datetime import date
from typing import Optional

from reportlab.lib.colors import Color, HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app.core.constants import VAT_PERCENT
from app.domain.formatting import format_date, format_kes
from app.domain.invoice import Invoice
from app.domain.profile import BusinessProfile

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4

PRIMARY = HexColor("#22C55E")
TEXT = HexColor("#1F2937")
MUTED = HexColor("#6B7280")
TABLE_HEADER = HexColor("#F8FAFC")
DIVIDER = HexColor("#E5E7EB")

STATUS_COLORS = {
    "paid": HexColor("#22C55E"),
    "sent": HexColor("#3B82F6"),
    "overdue": HexColor("#EF4444"),
    "draft": HexColor("#6B7280"),
}

PAYMENT_LABELS = {"mpesa": "M-Pesa", "cash": "Cash"}


class _Page:
    """Canvas wrapper working in millimetres from the top-left corner"""

    def __init__(self, buffer: io.BytesIO, title: str):
        self.c = canvas.Canvas(buffer, pagesize=A4)
        self.c.setTitle(title)
        self.width = PAGE_WIDTH / mm

    def _y(self, y: float) -> float:
        return PAGE_HEIGHT - y * mm

    def text(self, value: str, x: float, y: float, size: float = 9, color: Color = TEXT,
             bold: bool = False, align: str = "left") -> None:
        self.c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.c.setFillColor(color)
        if align == "right":
            self.c.drawRightString(x * mm, self._y(y), value)
        elif align == "center":
            self.c.drawCentredString(x * mm, self._y(y), value)
        else:
            self.c.drawString(x * mm, self._y(y), value)

    def rect(self, x: float, y: float, w: float, h: float, fill: Color) -> None:
        self.c.setFillColor(fill)
        self.c.rect(x * mm, self._y(y + h), w * mm, h * mm, stroke=0, fill=1)

    def line(self, x1: float, y1: float, x2: float, y2: float, color: Color) -> None:
        self.c.setStrokeColor(color)
        self.c.line(x1 * mm, self._y(y1), x2 * mm, self._y(y2))

    def image(self, url: str, x: float, y: float, size: float) -> bool:
        try:
            reader = ImageReader(url)
        except Exception as e:
            logger.warning(f"Could not load logo {url}: {e}")
            return False
        self.c.drawImage(reader, x * mm, self._y(y + size), size * mm, size * mm, mask="auto")
        return True


def render_invoice_pdf(
    invoice: Invoice,
    profile: BusinessProfile,
    generated_on: Optional[date] = None,
) -> bytes:
    """Render one invoice to PDF bytes"""
    buffer = io.BytesIO()
    page = _Page(buffer, invoice.invoice_number)
    width = page.width
    y = 20.0

    # Header band
    page.rect(0, 0, width, 40, PRIMARY)
    name_x = 20
    if profile.logo_url and page.image(profile.logo_url, 15, 8, 24):
        name_x = 45
    page.text(profile.business_name, name_x, y + 5, size=20, color=white, bold=True)
    page.text(f"Invoice: {invoice.invoice_number}", width - 20, y + 5, size=10, color=white, align="right")

    # Business details
    y = 55.0
    for label, value in (("KRA PIN", profile.kra_pin), ("Phone", profile.phone), ("Email", profile.email)):
        if value:
            page.text(f"{label}: {value}", 20, y, color=MUTED)
            y += 5

    # Bill to
    y += 10
    page.text("Bill To:", 20, y, size=10, bold=True)
    y += 6
    page.text(invoice.customer_name, 20, y, size=11)
    y += 5
    for value in (invoice.customer_phone, invoice.customer_email):
        if value:
            page.text(value, 20, y, color=MUTED)
            y += 5

    # Invoice details
    details_x = width - 80
    details_y = 55.0
    details = [
        ("Date:", format_date(invoice.created_at)),
        ("Due Date:", format_date(invoice.due_date) if invoice.due_date else "-"),
        ("Payment:", PAYMENT_LABELS.get(invoice.payment_method, invoice.payment_method)),
    ]
    for label, value in details:
        page.text(label, details_x, details_y, color=MUTED)
        page.text(value, details_x + 35, details_y)
        details_y += 6
    page.text("Status:", details_x, details_y, color=MUTED)
    page.text(
        invoice.status.capitalize(),
        details_x + 35,
        details_y,
        color=STATUS_COLORS.get(invoice.status, MUTED),
    )

    # Items table
    y = max(y, details_y) + 20
    page.rect(20, y - 5, width - 40, 10, TABLE_HEADER)
    page.text("Description", 25, y + 1, color=MUTED, bold=True)
    page.text("Qty", width - 90, y + 1, color=MUTED, bold=True, align="right")
    page.text("Unit Price", width - 55, y + 1, color=MUTED, bold=True, align="right")
    page.text("Total", width - 25, y + 1, color=MUTED, bold=True, align="right")
    y += 10

    for item in invoice.items:
        line_total = item.total if item.total is not None else item.line_total()
        quantity = item.quantity.normalize()
        page.text(item.description, 25, y)
        page.text(f"{quantity:f}", width - 90, y, align="right")
        page.text(format_kes(item.unit_price), width - 55, y, align="right")
        page.text(format_kes(line_total), width - 25, y, align="right")
        y += 8

    # Totals
    y += 5
    page.line(width - 100, y, width - 20, y, DIVIDER)
    y += 10
    totals_x = width - 100
    page.text("Subtotal:", totals_x, y, size=10, color=MUTED)
    page.text(format_kes(invoice.subtotal), width - 25, y, size=10, align="right")

    if invoice.vat_amount > 0:
        y += 8
        page.text(f"VAT ({VAT_PERCENT}%):", totals_x, y, size=10, color=MUTED)
        page.text(format_kes(invoice.vat_amount), width - 25, y, size=10, align="right")

    y += 10
    page.rect(totals_x - 5, y - 5, width - totals_x - 10, 12, PRIMARY)
    page.text("Total:", totals_x, y + 3, size=11, color=white, bold=True)
    page.text(format_kes(invoice.total), width - 25, y + 3, size=11, color=white, bold=True, align="right")

    # M-Pesa payment details
    if invoice.payment_method == "mpesa" and (profile.mpesa_paybill or profile.mpesa_till_number):
        y += 25
        page.text("M-Pesa Payment Details", 20, y, size=10, bold=True)
        y += 8
        if profile.mpesa_paybill:
            page.text(f"Paybill Number: {profile.mpesa_paybill}", 20, y, color=MUTED)
            y += 5
            page.text(f"Account Number: {invoice.invoice_number}", 20, y, color=MUTED)
        else:
            page.text(f"Till Number: {profile.mpesa_till_number}", 20, y, color=MUTED)

    # Footer
    footer_y = PAGE_HEIGHT / mm - 20
    page.text("Thank you for your business!", width / 2, footer_y, size=8, color=MUTED, align="center")
    page.text(
        f"Generated on {format_date(generated_on or date.today())}",
        width / 2,
        footer_y + 5,
        size=8,
        color=MUTED,
        align="center",
    )

    page.c.showPage()
    page.c.save()
    return buffer.getvalue()
