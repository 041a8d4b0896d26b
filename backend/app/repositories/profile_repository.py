"""
Profile Repository - Data Access Layer for business profiles and roles

Handles the profiles and user_roles tables and returns domain models.
"""
import logging
from datetime import datetime
from typing import List, Optional

from app.core.database import build_set_clause, get_db_connection_dict_with_retry
from app.domain.catalog import StaffMember
from app.domain.profile import BusinessProfile, ProfileUpdate

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = """
    user_id, business_name, kra_pin, is_vat_registered, business_type,
    mpesa_paybill, mpesa_till_number, phone, email, address, logo_url,
    subscription_plan, subscription_status, trial_ends_at, subscription_ends_at,
    stripe_publishable_key, stripe_secret_key,
    mpesa_consumer_key, mpesa_consumer_secret, mpesa_shortcode, mpesa_passkey,
    paystack_public_key, paystack_secret_key,
    kra_api_key, kra_api_secret
"""


class ProfileRepository:
    """
    Repository for BusinessProfile data access

    Profiles are keyed by the Supabase auth user id.
    """

    def get_by_user_id(self, user_id: str) -> Optional[BusinessProfile]:
        """
        Find the profile of a user

        Args:
            user_id: Supabase auth user id

        Returns:
            BusinessProfile or None if the user has no profile row
        """
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PROFILE_COLUMNS}
                FROM profiles
                WHERE user_id = %s
            """, (user_id,))

            row = cursor.fetchone()
            if not row:
                return None

            return BusinessProfile(**row)

        finally:
            cursor.close()
            conn.close()

    def list_all(self, limit: int = 200, offset: int = 0) -> List[BusinessProfile]:
        """All business profiles, newest first (admin user list)"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PROFILE_COLUMNS}
                FROM profiles
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
            """, (limit, offset))

            return [BusinessProfile(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def update(self, user_id: str, updates: ProfileUpdate) -> Optional[BusinessProfile]:
        """
        Apply a partial profile update

        Only fields explicitly set in ``updates`` are written.

        Returns:
            Updated profile, or None if the user has no profile row
        """
        fields = updates.model_dump(exclude_unset=True)
        if not fields:
            return self.get_by_user_id(user_id)

        set_clause, params = build_set_clause(fields)

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE profiles
                SET {set_clause}
                WHERE user_id = %s
                RETURNING {PROFILE_COLUMNS}
            """, params + [user_id])

            row = cursor.fetchone()
            conn.commit()
            return BusinessProfile(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def set_subscription(
        self,
        user_id: str,
        plan: Optional[str],
        status: str,
        subscription_ends_at: Optional[datetime] = None,
        trial_ends_at: Optional[datetime] = None,
    ) -> bool:
        """
        Write subscription fields; None values leave the column unchanged

        Returns:
            True if a profile row was updated
        """
        fields = {"subscription_status": status}
        if plan is not None:
            fields["subscription_plan"] = plan
        if subscription_ends_at is not None:
            fields["subscription_ends_at"] = subscription_ends_at
        if trial_ends_at is not None:
            fields["trial_ends_at"] = trial_ends_at

        set_clause, params = build_set_clause(fields)

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE profiles
                SET {set_clause}
                WHERE user_id = %s
            """, params + [user_id])

            updated = cursor.rowcount > 0
            conn.commit()

            if not updated:
                logger.warning(f"No profile found for user {user_id} while updating subscription")
            return updated

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def activate_subscription(self, user_id: str, plan: str, ends_at: datetime) -> bool:
        """Switch to a paid plan, active until ends_at"""
        return self.set_subscription(user_id, plan, "active", subscription_ends_at=ends_at)

    def extend_subscription(self, user_id: str, ends_at: datetime) -> bool:
        """Keep the current plan and push the end date (recurring renewals)"""
        return self.set_subscription(user_id, None, "active", subscription_ends_at=ends_at)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def get_role(self, user_id: str) -> Optional[str]:
        """Highest-privilege role of a user, admin first"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT role
                FROM user_roles
                WHERE user_id = %s
                ORDER BY (role = 'admin') DESC, created_at ASC
                LIMIT 1
            """, (user_id,))

            row = cursor.fetchone()
            return row['role'] if row else None

        finally:
            cursor.close()
            conn.close()

    def has_role(self, user_id: str, role: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT 1
                FROM user_roles
                WHERE user_id = %s AND role = %s
                LIMIT 1
            """, (user_id, role))

            return cursor.fetchone() is not None

        finally:
            cursor.close()
            conn.close()

    def set_role(self, user_id: str, role: str) -> None:
        """Replace the user's role with a single new one"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM user_roles WHERE user_id = %s", (user_id,))
            cursor.execute("""
                INSERT INTO user_roles (user_id, role)
                VALUES (%s, %s)
            """, (user_id, role))
            conn.commit()
            logger.info(f"Role of user {user_id} set to {role}")

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def remove_role(self, user_id: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM user_roles WHERE user_id = %s", (user_id,))
            removed = cursor.rowcount > 0
            conn.commit()
            return removed

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def list_staff(self) -> List[StaffMember]:
        """Every user that has a role, with their profile name and email"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    r.user_id,
                    p.business_name AS full_name,
                    p.email,
                    r.role,
                    true AS is_active,
                    r.created_at
                FROM user_roles r
                LEFT JOIN profiles p ON p.user_id = r.user_id
                ORDER BY r.created_at DESC
            """)

            return [StaffMember(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
