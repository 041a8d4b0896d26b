"""
Unit tests for ReportService (pandas aggregations and the Excel export)
"""
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from openpyxl import load_workbook

from app.domain.profile import BusinessProfile
from app.domain.transaction import Transaction
from app.services.report_service import ReportService, month_bounds, vat_filing_deadline

TODAY = date(2025, 2, 10)


def _tx(tx_id, type, amount, day, vat="0", applicable=False, method="cash", category="product"):
    return Transaction(
        id=tx_id,
        user_id="u1",
        type=type,
        amount=Decimal(amount),
        description=f"{type} {tx_id}",
        category=category,
        date=day,
        vat_amount=Decimal(vat),
        is_vat_applicable=applicable,
        payment_method=method,
    )


@pytest.fixture
def cash_book():
    return [
        _tx("t1", "sale", "1160", date(2025, 2, 10), vat="160", applicable=True, method="mpesa"),
        _tx("t2", "sale", "500", date(2025, 2, 3)),
        _tx("t3", "expense", "348", date(2025, 2, 10), vat="48", applicable=True, category="stock"),
        _tx("t4", "expense", "1000", date(2025, 2, 5), category="rent"),
    ]


@pytest.fixture
def service(sample_profile_data):
    service = ReportService()
    service.transaction_repo = MagicMock()
    service.profile_repo = MagicMock()
    service.profile_repo.get_by_user_id.return_value = BusinessProfile(**sample_profile_data)
    return service


def test_month_bounds():
    assert month_bounds(date(2024, 2, 14)) == (date(2024, 2, 1), date(2024, 2, 29))


def test_vat_filing_deadline():
    assert vat_filing_deadline(date(2025, 12, 31)) == date(2026, 1, 20)


class TestSummary:
    """Test ReportService.summary"""

    def test_today_and_month_to_date(self, service, cash_book, user_id):
        service.transaction_repo.find_all.return_value = cash_book

        summary = service.summary(user_id, today=TODAY)

        assert summary["today_sales"] == 1160.0
        assert summary["today_expenses"] == 348.0
        assert summary["today_balance"] == 812.0
        assert summary["monthly_sales"] == 1660.0
        assert summary["monthly_expenses"] == 1348.0
        assert summary["monthly_profit"] == 312.0
        assert summary["output_vat"] == 160.0
        assert summary["input_vat"] == 48.0
        assert summary["vat_payable"] == 112.0

        kwargs = service.transaction_repo.find_all.call_args.kwargs
        assert kwargs["start_date"] == date(2025, 2, 1)
        assert kwargs["end_date"] == TODAY

    def test_empty_cash_book(self, service, user_id):
        service.transaction_repo.find_all.return_value = []

        summary = service.summary(user_id, today=TODAY)

        assert summary["monthly_sales"] == 0.0
        assert summary["vat_payable"] == 0.0


class TestVatReport:
    """Test ReportService.vat_report"""

    def test_defaults_to_current_month(self, service, cash_book, user_id):
        service.transaction_repo.find_all.return_value = cash_book

        report = service.vat_report(user_id, today=TODAY)

        assert report["period_start"] == date(2025, 2, 1)
        assert report["period_end"] == date(2025, 2, 28)
        assert report["filing_deadline"] == date(2025, 3, 20)
        assert report["total_sales"] == 1160.0
        assert report["output_vat"] == 160.0
        assert report["total_purchases"] == 348.0
        assert report["input_vat"] == 48.0
        assert report["vat_payable"] == 112.0
        assert report["is_refund"] is False
        assert report["kra_pin"] == "P051234567X"

    def test_refund_when_input_exceeds_output(self, service, user_id):
        service.transaction_repo.find_all.return_value = [
            _tx("t3", "expense", "348", date(2025, 2, 10), vat="48", applicable=True),
        ]

        report = service.vat_report(user_id, date(2025, 2, 1), date(2025, 2, 28))

        assert report["vat_payable"] == -48.0
        assert report["is_refund"] is True


class TestPosSalesReport:
    """Test ReportService.pos_sales_report"""

    def test_breakdowns(self, service, user_id):
        service.transaction_repo.find_all.return_value = [
            _tx("s1", "sale", "1160", date(2025, 2, 10), method="mpesa"),
            _tx("s2", "sale", "500", date(2025, 2, 10), method="cash", category="service"),
            _tx("s3", "sale", "300", date(2025, 2, 8), method="mpesa"),
        ]

        report = service.pos_sales_report(user_id, date(2025, 2, 8), date(2025, 2, 10))

        assert report["total"] == 1960.0
        assert report["count"] == 3
        assert report["average"] == 653.33
        assert report["by_payment_method"] == [
            {"payment_method": "mpesa", "total": 1460.0, "count": 2},
            {"payment_method": "cash", "total": 500.0, "count": 1},
        ]
        assert [d["date"] for d in report["by_day"]] == [date(2025, 2, 8), date(2025, 2, 9), date(2025, 2, 10)]
        assert [d["total"] for d in report["by_day"]] == [300.0, 0.0, 1660.0]
        assert [d["count"] for d in report["by_day"]] == [1, 0, 2]
        assert report["top_categories"] == [
            {"name": "product", "total": 1460.0},
            {"name": "service", "total": 500.0},
        ]
        assert service.transaction_repo.find_all.call_args.kwargs["type"] == "sale"

    def test_defaults_to_last_seven_days(self, service, user_id):
        service.transaction_repo.find_all.return_value = []

        report = service.pos_sales_report(user_id, today=TODAY)

        assert report["period_start"] == date(2025, 2, 4)
        assert len(report["by_day"]) == 7
        assert report["average"] == 0.0


class TestExport:
    """Test the transaction export workbook"""

    def test_workbook_layout(self, service, cash_book, user_id):
        service.transaction_repo.find_all.return_value = cash_book

        workbook = load_workbook(service.export_transactions_xlsx(user_id))
        ws = workbook["Transactions"]

        assert ws["A1"].value == "Date"
        assert ws["E1"].value == "Amount (KES)"
        assert ws["E2"].value == 1160.0
        assert ws["E2"].number_format == "#,##0.00"
        assert ws.freeze_panes == "A2"
        assert ws.max_row == 5
