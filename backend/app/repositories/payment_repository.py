"""
Payment Repository - subscription and invoice payment records
"""
import logging
from typing import Any, Dict, List, Optional

from psycopg2.extras import Json

from app.core.database import get_db_connection_dict_with_retry
from app.domain.payment import PaymentTransaction

logger = logging.getLogger(__name__)

PAYMENT_COLUMNS = """
    id, user_id, amount, currency, payment_method, payment_reference,
    transaction_id, subscription_plan, status, description, metadata,
    created_at, updated_at
"""


class PaymentRepository:

    def create(self, payment: PaymentTransaction) -> PaymentTransaction:
        """Insert a payment row and return it with its generated id"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO payment_transactions (
                    user_id, amount, currency, payment_method, payment_reference,
                    transaction_id, subscription_plan, status, description, metadata
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {PAYMENT_COLUMNS}
            """, (
                payment.user_id, payment.amount, payment.currency, payment.payment_method,
                payment.payment_reference, payment.transaction_id, payment.subscription_plan,
                payment.status, payment.description, Json(payment.metadata or {}),
            ))

            row = cursor.fetchone()
            conn.commit()
            logger.info(
                f"Recorded {row['status']} {row['payment_method']} payment "
                f"{row['transaction_id'] or row['payment_reference']} for user {row['user_id']}"
            )
            return PaymentTransaction(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def find_by_transaction_id(self, transaction_id: str) -> Optional[PaymentTransaction]:
        """Find a payment by the vendor's id (CheckoutRequestID, session id, ...)"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payment_transactions
                WHERE transaction_id = %s
                ORDER BY created_at DESC
                LIMIT 1
            """, (transaction_id,))

            row = cursor.fetchone()
            return PaymentTransaction(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def update_status(
        self,
        payment_id: str,
        status: str,
        amount: Optional[Any] = None,
        payment_reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[PaymentTransaction]:
        """
        Flip a pending payment to completed or failed

        ``metadata`` is merged into the stored metadata.
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE payment_transactions
                SET status = %s,
                    amount = COALESCE(%s, amount),
                    payment_reference = COALESCE(%s, payment_reference),
                    metadata = COALESCE(metadata, '{{}}'::jsonb) || %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING {PAYMENT_COLUMNS}
            """, (status, amount, payment_reference, Json(metadata or {}), payment_id))

            row = cursor.fetchone()
            conn.commit()
            return PaymentTransaction(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def list_for_user(self, user_id: str, limit: int = 100) -> List[PaymentTransaction]:
        """Billing history, newest first"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payment_transactions
                WHERE user_id = %s
                ORDER BY created_at DESC
                LIMIT %s
            """, (user_id, limit))

            return [PaymentTransaction(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def list_all(
        self,
        status: Optional[str] = None,
        payment_method: Optional[str] = None,
        limit: int = 500,
    ) -> List[PaymentTransaction]:
        """All payments across users (admin payment tracking)"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []

            if status:
                conditions.append("status = %s")
                params.append(status)

            if payment_method:
                conditions.append("payment_method = %s")
                params.append(payment_method)

            where_clause = " AND ".join(conditions) if conditions else "1=1"

            cursor.execute(f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payment_transactions
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s
            """, params + [limit])

            return [PaymentTransaction(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
