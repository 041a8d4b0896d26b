"""
Report Service
Dashboard summary, VAT return figures, POS sales breakdowns and the
transaction export, computed with pandas over the cash book
"""
import io
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta
from openpyxl.styles import Alignment, Font, PatternFill

from app.domain.transaction import Transaction
from app.repositories import ProfileRepository, TransactionRepository

logger = logging.getLogger(__name__)

FRAME_COLUMNS = [
    "date", "type", "description", "category", "amount", "vat_amount",
    "is_vat_applicable", "payment_method", "payment_reference", "customer", "vendor",
]

EXPORT_HEADERS = {
    "date": "Date",
    "type": "Type",
    "description": "Description",
    "category": "Category",
    "amount": "Amount (KES)",
    "vat_amount": "VAT (KES)",
    "is_vat_applicable": "VAT Applicable",
    "payment_method": "Payment Method",
    "payment_reference": "Reference",
    "customer": "Customer",
    "vendor": "Vendor",
}

VAT_FILING_DAY = 20
REPORT_ROW_LIMIT = 10000
TOP_CATEGORIES = 5


def month_bounds(day: date):
    """First and last day of the month containing ``day``"""
    start = day.replace(day=1)
    end = start + relativedelta(months=1) - relativedelta(days=1)
    return start, end


def vat_filing_deadline(period_end: date) -> date:
    """VAT for a month is due on the 20th of the following month"""
    return (period_end.replace(day=1) + relativedelta(months=1)).replace(day=VAT_FILING_DAY)


def transactions_frame(transactions: List[Transaction]) -> pd.DataFrame:
    rows = []
    for t in transactions:
        rows.append({
            "date": pd.Timestamp(t.date),
            "type": t.type,
            "description": t.description,
            "category": t.category or "Uncategorized",
            "amount": float(t.amount),
            "vat_amount": float(t.vat_amount or 0),
            "is_vat_applicable": bool(t.is_vat_applicable),
            "payment_method": t.payment_method or "cash",
            "payment_reference": t.payment_reference,
            "customer": t.customer,
            "vendor": t.vendor,
        })
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    # Typed columns keep boolean masks and date grouping working on an empty frame
    df["date"] = pd.to_datetime(df["date"])
    df["is_vat_applicable"] = df["is_vat_applicable"].astype(bool)
    df["amount"] = df["amount"].astype(float)
    df["vat_amount"] = df["vat_amount"].astype(float)
    return df


def _total(df: pd.DataFrame, column: str = "amount") -> float:
    return round(float(df[column].sum()), 2) if not df.empty else 0.0


class ReportService:

    def __init__(self):
        self.transaction_repo = TransactionRepository()
        self.profile_repo = ProfileRepository()

    def _load(
        self,
        user_id: str,
        start: Optional[date],
        end: Optional[date],
        type: Optional[str] = None,
    ) -> pd.DataFrame:
        transactions = self.transaction_repo.find_all(
            user_id, type=type, start_date=start, end_date=end, limit=REPORT_ROW_LIMIT
        )
        return transactions_frame(transactions)

    # ========================================
    # Dashboard
    # ========================================

    def summary(self, user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Today and month-to-date figures

        VAT figures cover the current month, the VAT return period.
        """
        today = today or date.today()
        month_start, _ = month_bounds(today)
        df = self._load(user_id, month_start, today)

        sales = df[df["type"] == "sale"]
        expenses = df[df["type"] == "expense"]
        today_ts = pd.Timestamp(today)

        today_sales = _total(sales[sales["date"] == today_ts])
        today_expenses = _total(expenses[expenses["date"] == today_ts])
        monthly_sales = _total(sales)
        monthly_expenses = _total(expenses)
        output_vat = _total(sales[sales["is_vat_applicable"]], "vat_amount")
        input_vat = _total(expenses[expenses["is_vat_applicable"]], "vat_amount")

        return {
            "today_sales": today_sales,
            "today_expenses": today_expenses,
            "today_balance": round(today_sales - today_expenses, 2),
            "monthly_sales": monthly_sales,
            "monthly_expenses": monthly_expenses,
            "monthly_profit": round(monthly_sales - monthly_expenses, 2),
            "output_vat": output_vat,
            "input_vat": input_vat,
            "vat_payable": round(output_vat - input_vat, 2),
        }

    # ========================================
    # VAT
    # ========================================

    def vat_report(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """VAT return figures for a period, the current month by default"""
        if not start or not end:
            start, end = month_bounds(today or date.today())

        df = self._load(user_id, start, end)
        vat_rows = df[df["is_vat_applicable"]]
        sales = vat_rows[vat_rows["type"] == "sale"]
        purchases = vat_rows[vat_rows["type"] == "expense"]

        output_vat = _total(sales, "vat_amount")
        input_vat = _total(purchases, "vat_amount")
        vat_payable = round(output_vat - input_vat, 2)

        profile = self.profile_repo.get_by_user_id(user_id)

        return {
            "business_name": profile.business_name if profile else None,
            "kra_pin": profile.kra_pin if profile else None,
            "is_vat_registered": bool(profile and profile.is_vat_registered),
            "period_start": start,
            "period_end": end,
            "filing_deadline": vat_filing_deadline(end),
            "total_sales": _total(sales),
            "output_vat": output_vat,
            "total_purchases": _total(purchases),
            "input_vat": input_vat,
            "vat_payable": vat_payable,
            "is_refund": vat_payable < 0,
        }

    # ========================================
    # POS sales
    # ========================================

    def pos_sales_report(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Sales totals by payment method, by day and by category

        Defaults to the last 7 days. Days without sales are reported as zero.
        """
        end = end or today or date.today()
        start = start or end - relativedelta(days=6)

        sales = self._load(user_id, start, end, type="sale")

        by_method = (
            sales.groupby("payment_method")["amount"]
            .agg(["sum", "count"])
            .sort_values("sum", ascending=False)
        )
        by_payment_method = [
            {"payment_method": method, "total": round(float(row["sum"]), 2), "count": int(row["count"])}
            for method, row in by_method.iterrows()
        ]

        days = pd.date_range(start, end, freq="D")
        by_date = sales.groupby("date")["amount"].agg(["sum", "count"]).reindex(days, fill_value=0)
        by_day = [
            {"date": day.date(), "total": round(float(row["sum"]), 2), "count": int(row["count"])}
            for day, row in by_date.iterrows()
        ]

        categories = sales.groupby("category")["amount"].sum().sort_values(ascending=False).head(TOP_CATEGORIES)
        top_categories = [{"name": name, "total": round(float(value), 2)} for name, value in categories.items()]

        total = _total(sales)
        count = len(sales)

        return {
            "period_start": start,
            "period_end": end,
            "total": total,
            "count": count,
            "average": round(total / count, 2) if count else 0.0,
            "by_payment_method": by_payment_method,
            "by_day": by_day,
            "top_categories": top_categories,
        }

    # ========================================
    # Export
    # ========================================

    def export_transactions_xlsx(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        type: Optional[str] = None,
    ) -> io.BytesIO:
        """Cash book as an Excel workbook, one row per transaction"""
        df = self._load(user_id, start, end, type=type)
        df["date"] = df["date"].dt.date
        df = df.rename(columns=EXPORT_HEADERS)

        header_fill = PatternFill(start_color="22C55E", end_color="22C55E", fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)

        excel_file = io.BytesIO()
        with pd.ExcelWriter(excel_file, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Transactions", index=False)
            ws = writer.sheets["Transactions"]

            for cell in ws[1]:
                cell.fill = header_fill
                cell.font = header_font
                cell.alignment = Alignment(horizontal="center", vertical="center")

            for column_cells in ws.iter_cols(min_row=1, max_row=1):
                header = column_cells[0].value or ""
                ws.column_dimensions[column_cells[0].column_letter].width = max(12, len(str(header)) + 4)
            ws.column_dimensions["C"].width = 40

            for row in ws.iter_rows(min_row=2, min_col=5, max_col=6):
                for cell in row:
                    cell.number_format = "#,##0.00"

            ws.freeze_panes = "A2"

        excel_file.seek(0)
        logger.info(f"Exported {len(df)} transactions for user {user_id}")
        return excel_file
