"""
Deadline Repository - tax deadline reminders
"""
from typing import List, Optional

from app.core.database import get_db_connection_dict_with_retry
from app.domain.deadline import Deadline, DeadlineCreate

DEADLINE_COLUMNS = "id, user_id, title, description, due_date, type, penalty, is_completed"


class DeadlineRepository:

    def find_all(self, user_id: str, include_completed: bool = True) -> List[Deadline]:
        """Deadlines ordered by due date, soonest first"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            completed_filter = "" if include_completed else "AND is_completed = false"
            cursor.execute(f"""
                SELECT {DEADLINE_COLUMNS}
                FROM deadlines
                WHERE user_id = %s {completed_filter}
                ORDER BY due_date ASC
            """, (user_id,))

            return [Deadline(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create(self, user_id: str, data: DeadlineCreate) -> Deadline:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO deadlines (user_id, title, description, due_date, type, penalty)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {DEADLINE_COLUMNS}
            """, (user_id, data.title, data.description, data.due_date, data.type, data.penalty))

            row = cursor.fetchone()
            conn.commit()
            return Deadline(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def toggle_complete(self, user_id: str, deadline_id: str) -> Optional[Deadline]:
        """Flip is_completed; returns None if the deadline is not the user's"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE deadlines
                SET is_completed = NOT is_completed, updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING {DEADLINE_COLUMNS}
            """, (deadline_id, user_id))

            row = cursor.fetchone()
            conn.commit()
            return Deadline(**row) if row else None

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def delete(self, user_id: str, deadline_id: str) -> bool:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM deadlines WHERE id = %s AND user_id = %s
            """, (deadline_id, user_id))

            deleted = cursor.rowcount > 0
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()
