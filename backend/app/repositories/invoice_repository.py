"""
Invoice Repository - Data Access Layer for invoices

Line items are stored as a JSONB array on the invoice row.
"""
import logging
from datetime import date
from typing import List, Optional

from psycopg2.extras import Json

from app.core.database import get_db_connection_dict_with_retry
from app.domain.invoice import Invoice, InvoiceCreate, InvoiceTotals

logger = logging.getLogger(__name__)

INVOICE_COLUMNS = """
    id, user_id, invoice_number,
    customer_name, customer_phone, customer_email, customer_kra_pin,
    items, subtotal, vat_amount, total, status, payment_method, due_date, created_at,
    etims_status, etims_control_number, etims_qr_code, etims_submitted_at
"""


class InvoiceRepository:
    """Repository for Invoice data access"""

    def find_all(
        self,
        user_id: str,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Invoice]:
        """
        Find the user's invoices, newest first

        Args:
            status: draft, sent, paid or overdue
            start_date: Inclusive lower bound on created_at date
            end_date: Inclusive upper bound on created_at date
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = ["user_id = %s"]
            params: list = [user_id]

            if status:
                conditions.append("status = %s")
                params.append(status)

            if start_date:
                conditions.append("created_at::date >= %s")
                params.append(start_date)

            if end_date:
                conditions.append("created_at::date <= %s")
                params.append(end_date)

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT {INVOICE_COLUMNS}
                FROM invoices
                WHERE {where_clause}
                ORDER BY created_at DESC
            """, params)

            return [Invoice(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, user_id: str, invoice_id: str) -> Optional[Invoice]:
        """Find one invoice owned by the user"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {INVOICE_COLUMNS}
                FROM invoices
                WHERE id = %s AND user_id = %s
            """, (invoice_id, user_id))

            row = cursor.fetchone()
            return Invoice(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_by_number(self, invoice_number: str, user_id: Optional[str] = None) -> Optional[Invoice]:
        """
        Find an invoice by number

        Invoice numbers are per user. With user_id the lookup stays inside
        that business; without it (payment callbacks that carry only the
        reference) the most recent match across all users wins.
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            where = "invoice_number = %s"
            params = [invoice_number]
            if user_id:
                where += " AND user_id = %s"
                params.append(user_id)

            cursor.execute(f"""
                SELECT {INVOICE_COLUMNS}
                FROM invoices
                WHERE {where}
                ORDER BY created_at DESC
                LIMIT 1
            """, params)

            row = cursor.fetchone()
            return Invoice(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def count(self, user_id: str) -> int:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COUNT(*) AS total
                FROM invoices
                WHERE user_id = %s
            """, (user_id,))

            return cursor.fetchone()['total']

        finally:
            cursor.close()
            conn.close()

    def create(
        self,
        user_id: str,
        invoice_number: str,
        data: InvoiceCreate,
        totals: InvoiceTotals,
    ) -> Invoice:
        """Insert an invoice with server-computed totals"""
        items = [
            {**item.to_dict(), "total": float(item.line_total())}
            for item in data.items
        ]

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO invoices (
                    user_id, invoice_number,
                    customer_name, customer_phone, customer_email, customer_kra_pin,
                    items, subtotal, vat_amount, total, status, payment_method, due_date
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {INVOICE_COLUMNS}
            """, (
                user_id, invoice_number,
                data.customer.name, data.customer.phone, data.customer.email, data.customer.kra_pin,
                Json(items), totals.subtotal, totals.vat_amount, totals.total,
                data.status, data.payment_method, data.due_date,
            ))

            row = cursor.fetchone()
            conn.commit()
            return Invoice(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_status(self, user_id: str, invoice_id: str, status: str) -> Optional[Invoice]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE invoices
                SET status = %s, updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING {INVOICE_COLUMNS}
            """, (status, invoice_id, user_id))

            row = cursor.fetchone()
            conn.commit()
            return Invoice(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update_etims_fields(
        self,
        invoice_id: str,
        etims_status: str,
        control_number: Optional[str] = None,
        qr_code: Optional[str] = None,
    ) -> None:
        """
        Mirror the latest eTIMS submission state onto the invoice

        Control number and QR code are only overwritten when provided.
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE invoices
                SET etims_status = %s,
                    etims_control_number = COALESCE(%s, etims_control_number),
                    etims_qr_code = COALESCE(%s, etims_qr_code),
                    etims_submitted_at = CASE
                        WHEN %s = 'submitted' THEN NOW() ELSE etims_submitted_at
                    END,
                    updated_at = NOW()
                WHERE id = %s
            """, (etims_status, control_number, qr_code, etims_status, invoice_id))
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def mark_paid_by_number(self, user_id: str, invoice_number: str) -> bool:
        """Mark an invoice paid after a gateway confirmed payment"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE invoices
                SET status = 'paid', updated_at = NOW()
                WHERE invoice_number = %s AND user_id = %s
            """, (invoice_number, user_id))

            updated = cursor.rowcount > 0
            conn.commit()

            if updated:
                logger.info(f"Invoice {invoice_number} marked as paid")
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, user_id: str, invoice_id: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM invoices
                WHERE id = %s AND user_id = %s
            """, (invoice_id, user_id))

            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
