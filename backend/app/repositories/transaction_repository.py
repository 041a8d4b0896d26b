"""
Transaction Repository - Data Access Layer for the cash book

Handles all database queries for sales and expenses and returns
Transaction domain models.
"""
from datetime import date
from typing import List, Optional

from app.core.database import build_set_clause, get_db_connection_dict_with_retry
from app.domain.transaction import Transaction, TransactionCreate, TransactionUpdate

TRANSACTION_COLUMNS = """
    id, user_id, type, amount, description, category, date,
    customer, vendor, receipt_image, vat_amount, is_vat_applicable,
    payment_method, payment_reference, created_at
"""


class TransactionRepository:
    """
    Repository for Transaction data access

    Every query is scoped to the owning user.
    """

    def find_all(
        self,
        user_id: str,
        type: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> List[Transaction]:
        """
        Find transactions with filters, newest first

        Args:
            user_id: Owning user
            type: sale or expense
            start_date: Inclusive lower bound on the transaction date
            end_date: Inclusive upper bound on the transaction date
            category: Category value (rent, stock, product, ...)
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = ["user_id = %s"]
            params: list = [user_id]

            if type:
                conditions.append("type = %s")
                params.append(type)

            if start_date:
                conditions.append("date >= %s")
                params.append(start_date)

            if end_date:
                conditions.append("date <= %s")
                params.append(end_date)

            if category:
                conditions.append("category = %s")
                params.append(category)

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT {TRANSACTION_COLUMNS}
                FROM transactions
                WHERE {where_clause}
                ORDER BY date DESC, created_at DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [Transaction(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def count(self, user_id: str, type: Optional[str] = None) -> int:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            if type:
                cursor.execute("""
                    SELECT COUNT(*) AS total
                    FROM transactions
                    WHERE user_id = %s AND type = %s
                """, (user_id, type))
            else:
                cursor.execute("""
                    SELECT COUNT(*) AS total
                    FROM transactions
                    WHERE user_id = %s
                """, (user_id,))

            return cursor.fetchone()['total']

        finally:
            cursor.close()
            conn.close()

    def create(self, user_id: str, data: TransactionCreate) -> Transaction:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO transactions (
                    user_id, type, amount, description, category, date,
                    customer, vendor, receipt_image, vat_amount, is_vat_applicable,
                    payment_method, payment_reference
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {TRANSACTION_COLUMNS}
            """, (
                user_id, data.type, data.amount, data.description, data.category, data.date,
                data.customer, data.vendor, data.receipt_image, data.vat_amount,
                data.is_vat_applicable, data.payment_method, data.payment_reference,
            ))

            row = cursor.fetchone()
            conn.commit()
            return Transaction(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update(self, user_id: str, transaction_id: str, updates: TransactionUpdate) -> Optional[Transaction]:
        fields = updates.model_dump(exclude_unset=True)
        if not fields:
            return self.find_by_id(user_id, transaction_id)

        set_clause, params = build_set_clause(fields)

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE transactions
                SET {set_clause}
                WHERE id = %s AND user_id = %s
                RETURNING {TRANSACTION_COLUMNS}
            """, params + [transaction_id, user_id])

            row = cursor.fetchone()
            conn.commit()
            return Transaction(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {TRANSACTION_COLUMNS}
                FROM transactions
                WHERE id = %s AND user_id = %s
            """, (transaction_id, user_id))

            row = cursor.fetchone()
            return Transaction(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def delete(self, user_id: str, transaction_id: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM transactions
                WHERE id = %s AND user_id = %s
            """, (transaction_id, user_id))

            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
