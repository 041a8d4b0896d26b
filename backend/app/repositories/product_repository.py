"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and product images and returns
domain models.
"""
import logging
from typing import Dict, List, Optional, Tuple

from app.core.database import build_set_clause, get_db_connection_dict_with_retry
from app.domain.product import Product, ProductCreate, ProductImage, ProductUpdate

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = """
    id, user_id, name, description, sku, barcode, category, image_url,
    unit_price, cost_price, quantity, minimum_stock,
    is_public, show_price, public_description, created_at, updated_at
"""


class InsufficientStockError(Exception):
    """Raised when a stock decrement would take quantity below zero"""

    def __init__(self, product_id: str, requested: int):
        self.product_id = product_id
        self.requested = requested
        super().__init__(f"Insufficient stock for product {product_id} (requested {requested})")


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    """

    def find_by_id(self, user_id: str, product_id: str) -> Optional[Product]:
        """
        Find product by ID

        Args:
            user_id: Owning user
            product_id: Product uuid

        Returns:
            Product or None if not found
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE id = %s AND user_id = %s
            """, (product_id, user_id))

            row = cursor.fetchone()
            if not row:
                return None

            return Product(**row)

        finally:
            cursor.close()
            conn.close()

    def find_by_barcode(self, user_id: str, code: str) -> Optional[Product]:
        """
        Find product by scanned code

        Scanners read either the printed barcode or the SKU label, so both
        columns are matched.
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE user_id = %s AND (barcode = %s OR sku = %s)
                ORDER BY (barcode = %s) DESC
                LIMIT 1
            """, (user_id, code, code, code))

            row = cursor.fetchone()
            return Product(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        user_id: str,
        category: Optional[str] = None,
        search: Optional[str] = None,
        low_stock_only: bool = False,
        limit: int = 500,
        offset: int = 0,
    ) -> Tuple[List[Product], int]:
        """
        Find products with filters

        Args:
            user_id: Owning user
            category: Filter by category
            search: Search in name, SKU or category
            low_stock_only: Only products at or below their minimum stock
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of products, total count)
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = ["user_id = %s"]
            params: list = [user_id]

            if category:
                conditions.append("category = %s")
                params.append(category)

            if search:
                conditions.append("(name ILIKE %s OR sku ILIKE %s OR category ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term, search_term])

            if low_stock_only:
                conditions.append("minimum_stock > 0 AND quantity <= minimum_stock")

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM products
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE {where_clause}
                ORDER BY name
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            products = [Product(**row) for row in cursor.fetchall()]

            return products, total

        finally:
            cursor.close()
            conn.close()

    def find_public(self, category: Optional[str] = None, search: Optional[str] = None) -> List[Product]:
        """Products flagged for the public catalogue, across all businesses"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = ["is_public = true"]
            params: list = []

            if category:
                conditions.append("category = %s")
                params.append(category)

            if search:
                conditions.append("(name ILIKE %s OR public_description ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term])

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE {where_clause}
                ORDER BY name
            """, params)

            return [Product(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create(self, user_id: str, data: ProductCreate) -> Product:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO products (
                    user_id, name, description, sku, barcode, category, image_url,
                    unit_price, cost_price, quantity, minimum_stock,
                    is_public, show_price, public_description
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {PRODUCT_COLUMNS}
            """, (
                user_id, data.name, data.description, data.sku, data.barcode, data.category,
                data.image_url, data.unit_price, data.cost_price, data.quantity,
                data.minimum_stock, data.is_public, data.show_price, data.public_description,
            ))

            row = cursor.fetchone()
            conn.commit()
            return Product(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def update(self, user_id: str, product_id: str, updates: ProductUpdate) -> Optional[Product]:
        fields = updates.model_dump(exclude_unset=True)
        if not fields:
            return self.find_by_id(user_id, product_id)

        set_clause, params = build_set_clause(fields)

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE products
                SET {set_clause}
                WHERE id = %s AND user_id = %s
                RETURNING {PRODUCT_COLUMNS}
            """, params + [product_id, user_id])

            row = cursor.fetchone()
            conn.commit()
            return Product(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, user_id: str, product_id: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM products
                WHERE id = %s AND user_id = %s
            """, (product_id, user_id))

            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def decrement_stock_many(self, user_id: str, lines: List[Tuple[str, int]]) -> Dict[str, int]:
        """
        Take a whole cart out of stock in one transaction

        The guard in the WHERE clause keeps quantity from going negative
        when two tills sell the last unit at the same time. If any line is
        refused, every decrement of the cart is rolled back.

        Args:
            lines: (product_id, quantity) pairs, one per product

        Returns:
            Remaining quantity by product id

        Raises:
            InsufficientStockError: if fewer than ``quantity`` units remain for a line
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            remaining = {}
            for product_id, quantity in lines:
                cursor.execute("""
                    UPDATE products
                    SET quantity = quantity - %s, updated_at = NOW()
                    WHERE id = %s AND user_id = %s AND quantity >= %s
                    RETURNING quantity
                """, (quantity, product_id, user_id, quantity))

                row = cursor.fetchone()
                if not row:
                    logger.warning(f"Stock decrement refused for product {product_id}: requested {quantity}")
                    raise InsufficientStockError(product_id, quantity)
                remaining[product_id] = row["quantity"]

            conn.commit()
            return remaining

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def add_image(
        self,
        product_id: str,
        image_url: str,
        alt_text: Optional[str] = None,
        is_primary: bool = False,
    ) -> ProductImage:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            if is_primary:
                cursor.execute("""
                    UPDATE product_images SET is_primary = false WHERE product_id = %s
                """, (product_id,))

            cursor.execute("""
                INSERT INTO product_images (product_id, image_url, alt_text, is_primary, sort_order)
                VALUES (
                    %s, %s, %s, %s,
                    (SELECT COALESCE(MAX(sort_order) + 1, 0) FROM product_images WHERE product_id = %s)
                )
                RETURNING id, product_id, image_url, alt_text, is_primary, sort_order, created_at
            """, (product_id, image_url, alt_text, is_primary, product_id))

            row = cursor.fetchone()
            conn.commit()
            return ProductImage(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def list_images(self, product_id: str) -> List[ProductImage]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, product_id, image_url, alt_text, is_primary, sort_order, created_at
                FROM product_images
                WHERE product_id = %s
                ORDER BY is_primary DESC, sort_order ASC
            """, (product_id,))

            return [ProductImage(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
