"""
Catalog Repository - admin-managed site content and settings

Covers pricing_plans, service_offerings, public_page_content and
app_settings. These tables are global (not per business).
"""
import logging
from typing import List, Optional

from psycopg2.extras import Json

from app.core.database import get_db_connection_dict_with_retry
from app.domain.catalog import (
    AppSetting,
    PageContent,
    PageContentUpsert,
    PricingPlan,
    PricingPlanUpsert,
    ServiceOffering,
    ServiceOfferingUpsert,
)

logger = logging.getLogger(__name__)

PLAN_COLUMNS = """
    id, plan_key, name, description, monthly_price, annual_price, features,
    badge, is_highlighted, is_active, sort_order
"""

SERVICE_COLUMNS = """
    id, title, description, category, icon_name, image_url,
    is_featured, is_active, sort_order
"""

PAGE_COLUMNS = "id, page_name, section_key, content_type, content_value, is_active"


class CatalogRepository:

    # ------------------------------------------------------------------
    # Pricing plans
    # ------------------------------------------------------------------

    def list_plans(self, active_only: bool = False) -> List[PricingPlan]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            where_clause = "WHERE is_active = true" if active_only else ""
            cursor.execute(f"""
                SELECT {PLAN_COLUMNS}
                FROM pricing_plans
                {where_clause}
                ORDER BY sort_order ASC, monthly_price ASC
            """)

            return [PricingPlan(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_plan_by_key(self, plan_key: str) -> Optional[PricingPlan]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PLAN_COLUMNS}
                FROM pricing_plans
                WHERE plan_key = %s
            """, (plan_key,))

            row = cursor.fetchone()
            return PricingPlan(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def upsert_plan(self, data: PricingPlanUpsert, plan_id: Optional[str] = None) -> Optional[PricingPlan]:
        """Insert a plan, or update it when ``plan_id`` is given (None if missing)"""
        values = (
            data.plan_key, data.name, data.description, data.monthly_price, data.annual_price,
            Json(data.features), data.badge, data.is_highlighted, data.is_active, data.sort_order,
        )

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            if plan_id:
                cursor.execute(f"""
                    UPDATE pricing_plans
                    SET plan_key = %s, name = %s, description = %s, monthly_price = %s,
                        annual_price = %s, features = %s, badge = %s, is_highlighted = %s,
                        is_active = %s, sort_order = %s, updated_at = NOW()
                    WHERE id = %s
                    RETURNING {PLAN_COLUMNS}
                """, values + (plan_id,))
            else:
                cursor.execute(f"""
                    INSERT INTO pricing_plans (
                        plan_key, name, description, monthly_price, annual_price,
                        features, badge, is_highlighted, is_active, sort_order
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {PLAN_COLUMNS}
                """, values)

            row = cursor.fetchone()
            conn.commit()
            return PricingPlan(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete_plan(self, plan_id: str) -> bool:
        return self._delete("pricing_plans", plan_id)

    # ------------------------------------------------------------------
    # Service offerings
    # ------------------------------------------------------------------

    def list_services(self, active_only: bool = False) -> List[ServiceOffering]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            where_clause = "WHERE is_active = true" if active_only else ""
            cursor.execute(f"""
                SELECT {SERVICE_COLUMNS}
                FROM service_offerings
                {where_clause}
                ORDER BY is_featured DESC, sort_order ASC
            """)

            return [ServiceOffering(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def upsert_service(self, data: ServiceOfferingUpsert, service_id: Optional[str] = None) -> Optional[ServiceOffering]:
        values = (
            data.title, data.description, data.category, data.icon_name, data.image_url,
            data.is_featured, data.is_active, data.sort_order,
        )

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            if service_id:
                cursor.execute(f"""
                    UPDATE service_offerings
                    SET title = %s, description = %s, category = %s, icon_name = %s,
                        image_url = %s, is_featured = %s, is_active = %s, sort_order = %s,
                        updated_at = NOW()
                    WHERE id = %s
                    RETURNING {SERVICE_COLUMNS}
                """, values + (service_id,))
            else:
                cursor.execute(f"""
                    INSERT INTO service_offerings (
                        title, description, category, icon_name, image_url,
                        is_featured, is_active, sort_order
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {SERVICE_COLUMNS}
                """, values)

            row = cursor.fetchone()
            conn.commit()
            return ServiceOffering(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete_service(self, service_id: str) -> bool:
        return self._delete("service_offerings", service_id)

    # ------------------------------------------------------------------
    # Public page content
    # ------------------------------------------------------------------

    def list_page_content(self, page_name: Optional[str] = None, active_only: bool = False) -> List[PageContent]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []

            if page_name:
                conditions.append("page_name = %s")
                params.append(page_name)

            if active_only:
                conditions.append("is_active = true")

            where_clause = " AND ".join(conditions) if conditions else "1=1"

            cursor.execute(f"""
                SELECT {PAGE_COLUMNS}
                FROM public_page_content
                WHERE {where_clause}
                ORDER BY page_name, section_key
            """, params)

            return [PageContent(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def upsert_page_content(self, data: PageContentUpsert) -> PageContent:
        """One row per (page_name, section_key)"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO public_page_content (page_name, section_key, content_type, content_value, is_active)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (page_name, section_key) DO UPDATE
                SET content_type = EXCLUDED.content_type,
                    content_value = EXCLUDED.content_value,
                    is_active = EXCLUDED.is_active,
                    updated_at = NOW()
                RETURNING {PAGE_COLUMNS}
            """, (data.page_name, data.section_key, data.content_type, data.content_value, data.is_active))

            row = cursor.fetchone()
            conn.commit()
            return PageContent(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete_page_content(self, content_id: str) -> bool:
        return self._delete("public_page_content", content_id)

    # ------------------------------------------------------------------
    # App settings (key/value)
    # ------------------------------------------------------------------

    def list_settings(self, prefix: Optional[str] = None) -> List[AppSetting]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            if prefix:
                cursor.execute("""
                    SELECT key, value, updated_at
                    FROM app_settings
                    WHERE key LIKE %s
                    ORDER BY key
                """, (f"{prefix}%",))
            else:
                cursor.execute("""
                    SELECT key, value, updated_at
                    FROM app_settings
                    ORDER BY key
                """)

            return [AppSetting(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_setting(self, key: str) -> Optional[str]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT value FROM app_settings WHERE key = %s", (key,))
            row = cursor.fetchone()
            return row['value'] if row else None

        finally:
            cursor.close()
            conn.close()

    def set_setting(self, key: str, value: Optional[str]) -> AppSetting:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO app_settings (key, value)
                VALUES (%s, %s)
                ON CONFLICT (key) DO UPDATE
                SET value = EXCLUDED.value, updated_at = NOW()
                RETURNING key, value, updated_at
            """, (key, value))

            row = cursor.fetchone()
            conn.commit()
            return AppSetting(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def _delete(self, table: str, row_id: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"DELETE FROM {table} WHERE id = %s", (row_id,))
            deleted = cursor.rowcount > 0
            conn.commit()
            if deleted:
                logger.info(f"Deleted {table} row {row_id}")
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
