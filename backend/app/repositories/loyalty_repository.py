"""
Loyalty Repository - loyalty customers and their points ledger
"""
import logging
from decimal import Decimal
from typing import List, Optional

from app.core.database import get_db_connection_dict_with_retry
from app.domain.loyalty import LoyaltyCustomer, LoyaltyTransaction

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = """
    id, user_id, phone, name, points_balance,
    total_points_earned, total_points_redeemed, created_at, updated_at
"""


class LoyaltyRepository:
    """Loyalty customers are per business and identified by phone number"""

    def find_by_phone(self, user_id: str, phone: str) -> Optional[LoyaltyCustomer]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CUSTOMER_COLUMNS}
                FROM loyalty_customers
                WHERE user_id = %s AND phone = %s
            """, (user_id, phone))

            row = cursor.fetchone()
            return LoyaltyCustomer(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, user_id: str, customer_id: str) -> Optional[LoyaltyCustomer]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CUSTOMER_COLUMNS}
                FROM loyalty_customers
                WHERE user_id = %s AND id = %s
            """, (user_id, customer_id))

            row = cursor.fetchone()
            return LoyaltyCustomer(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def list_customers(self, user_id: str, search: Optional[str] = None) -> List[LoyaltyCustomer]:
        """Customers with the highest balances first"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = ["user_id = %s"]
            params: list = [user_id]

            if search:
                conditions.append("(phone ILIKE %s OR name ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term])

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT {CUSTOMER_COLUMNS}
                FROM loyalty_customers
                WHERE {where_clause}
                ORDER BY points_balance DESC, created_at DESC
            """, params)

            return [LoyaltyCustomer(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create_customer(self, user_id: str, phone: str, name: Optional[str] = None) -> LoyaltyCustomer:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO loyalty_customers (user_id, phone, name)
                VALUES (%s, %s, %s)
                RETURNING {CUSTOMER_COLUMNS}
            """, (user_id, phone, name))

            row = cursor.fetchone()
            conn.commit()
            logger.info(f"Registered loyalty customer {row['id']}")
            return LoyaltyCustomer(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def apply_sale(self, user_id: str, customer_id: str, earned: int, redeemed: int) -> Optional[LoyaltyCustomer]:
        """
        Move a sale's points onto the customer's balance

        The balance is adjusted in SQL rather than written from a value
        read earlier, so concurrent sales for one customer both count.
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE loyalty_customers
                SET points_balance = points_balance - %s + %s,
                    total_points_earned = total_points_earned + %s,
                    total_points_redeemed = total_points_redeemed + %s,
                    updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING {CUSTOMER_COLUMNS}
            """, (redeemed, earned, earned, redeemed, customer_id, user_id))

            row = cursor.fetchone()
            conn.commit()
            return LoyaltyCustomer(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def add_transaction(
        self,
        user_id: str,
        customer_id: str,
        type: str,
        points: int,
        sale_amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> LoyaltyTransaction:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO loyalty_transactions (user_id, customer_id, type, points, sale_amount, description)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id, user_id, customer_id, type, points, sale_amount, description, created_at
            """, (user_id, customer_id, type, points, sale_amount, description))

            row = cursor.fetchone()
            conn.commit()
            return LoyaltyTransaction(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def list_transactions(self, user_id: str, customer_id: str) -> List[LoyaltyTransaction]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, user_id, customer_id, type, points, sale_amount, description, created_at
                FROM loyalty_transactions
                WHERE user_id = %s AND customer_id = %s
                ORDER BY created_at DESC
            """, (user_id, customer_id))

            return [LoyaltyTransaction(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
