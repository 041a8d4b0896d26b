"""
Unit tests for build_notifications
"""
from datetime import date
from decimal import Decimal

from app.domain.deadline import Deadline
from app.domain.invoice import Invoice
from app.domain.notification import build_notifications
from app.domain.product import Product

TODAY = date(2025, 2, 10)


def _deadline(deadline_id, due_date, penalty=None, is_completed=False):
    return Deadline(
        id=deadline_id,
        user_id="u1",
        title=f"VAT return {deadline_id}",
        due_date=due_date,
        type="vat",
        penalty=penalty,
        is_completed=is_completed,
    )


class TestBuildNotifications:
    """Test notification sources, messages and ordering"""

    def _sources(self, sample_invoice_data, sample_product_data):
        deadlines = [
            _deadline("d1", date(2025, 2, 10)),
            _deadline("d2", date(2025, 2, 15), penalty=Decimal("20000")),
            _deadline("d3", date(2025, 2, 5)),
            _deadline("d4", date(2025, 3, 30)),
            _deadline("d5", date(2025, 2, 11), is_completed=True),
        ]
        overdue = Invoice(**{**sample_invoice_data, "status": "overdue", "due_date": date(2025, 2, 8)})
        sent = Invoice(**{**sample_invoice_data, "id": "inv-2", "status": "sent"})
        low = Product(**{**sample_product_data, "quantity": 3})
        untracked = Product(**{**sample_product_data, "id": "prod-2", "quantity": 0, "minimum_stock": None})
        return deadlines, [overdue, sent], [low, untracked]

    def test_sources_and_messages(self, sample_invoice_data, sample_product_data):
        deadlines, invoices, products = self._sources(sample_invoice_data, sample_product_data)

        result = build_notifications(deadlines, invoices, products, today=TODAY)
        by_id = {n.id: n for n in result.notifications}

        assert set(by_id) == {
            "deadline-d1",
            "deadline-d2",
            "deadline-overdue-d3",
            "invoice-overdue-inv-1",
            "stock-prod-1",
        }
        assert by_id["deadline-d1"].message == "Due today! Complete this to avoid penalties."
        assert by_id["deadline-d1"].type == "warning"
        assert by_id["deadline-d2"].message == "Due in 5 days. Penalty: KES 20,000"
        assert by_id["deadline-d2"].type == "deadline"
        assert by_id["deadline-overdue-d3"].title == "VAT return d3 is OVERDUE"
        assert by_id["deadline-overdue-d3"].message == "This was due 5 days ago."
        assert by_id["invoice-overdue-inv-1"].message == (
            "Payment from Kamau Hardware is 2 days overdue. Amount: KES 9,280"
        )
        assert by_id["stock-prod-1"].message == "Unga Pembe 2kg is running low. Current: 3, Minimum: 5"
        assert result.unread_count == 5

    def test_read_last_and_dismissed_dropped(self, sample_invoice_data, sample_product_data):
        deadlines, invoices, products = self._sources(sample_invoice_data, sample_product_data)

        result = build_notifications(
            deadlines,
            invoices,
            products,
            read_ids={"deadline-d1"},
            dismissed_ids={"stock-prod-1"},
            today=TODAY,
        )

        assert [n.id for n in result.notifications] == [
            "deadline-d2",
            "invoice-overdue-inv-1",
            "deadline-overdue-d3",
            "deadline-d1",
        ]
        assert result.notifications[-1].is_read is True
        assert result.unread_count == 3

    def test_single_day_wording(self):
        result = build_notifications([_deadline("d1", date(2025, 2, 11))], [], [], today=TODAY)
        assert result.notifications[0].message == "Due in 1 day."

    def test_nothing_to_report(self):
        result = build_notifications([], [], [], today=TODAY)
        assert result.notifications == []
        assert result.unread_count == 0
