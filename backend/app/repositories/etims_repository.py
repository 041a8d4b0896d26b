"""
eTIMS Repository - submission attempts of invoices to KRA eTIMS
"""
from typing import Any, Dict, List, Optional

from psycopg2.extras import Json

from app.core.database import build_set_clause, get_db_connection_dict_with_retry
from app.domain.etims import ACTIVE_STATUSES, EtimsSubmission

SUBMISSION_COLUMNS = """
    id, user_id, invoice_id, status, control_unit_number, control_unit_date,
    qr_code_url, receipt_number, fiscal_code, error_message, retry_count,
    request_payload, response_payload, submitted_at, verified_at, created_at
"""

JSON_COLUMNS = ("request_payload", "response_payload")


class EtimsRepository:

    def find_active_for_invoice(self, invoice_id: str) -> Optional[EtimsSubmission]:
        """The submitted or verified attempt of an invoice, if any"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {SUBMISSION_COLUMNS}
                FROM etims_submissions
                WHERE invoice_id = %s AND status = ANY(%s)
                ORDER BY created_at DESC
                LIMIT 1
            """, (invoice_id, list(ACTIVE_STATUSES)))

            row = cursor.fetchone()
            return EtimsSubmission(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_by_id(self, user_id: str, submission_id: str) -> Optional[EtimsSubmission]:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {SUBMISSION_COLUMNS}
                FROM etims_submissions
                WHERE id = %s AND user_id = %s
            """, (submission_id, user_id))

            row = cursor.fetchone()
            return EtimsSubmission(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    def list_for_user(
        self,
        user_id: str,
        invoice_id: Optional[str] = None,
        submission_id: Optional[str] = None,
    ) -> List[EtimsSubmission]:
        """Submissions of the user, newest first, narrowed by submission or invoice"""
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            conditions = ["user_id = %s"]
            params: list = [user_id]

            if submission_id:
                conditions.append("id = %s")
                params.append(submission_id)
            elif invoice_id:
                conditions.append("invoice_id = %s")
                params.append(invoice_id)

            where_clause = " AND ".join(conditions)

            cursor.execute(f"""
                SELECT {SUBMISSION_COLUMNS}
                FROM etims_submissions
                WHERE {where_clause}
                ORDER BY created_at DESC
            """, params)

            return [EtimsSubmission(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create_pending(self, user_id: str, invoice_id: str, request_payload: Dict[str, Any]) -> EtimsSubmission:
        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO etims_submissions (user_id, invoice_id, status, request_payload)
                VALUES (%s, %s, 'pending', %s)
                RETURNING {SUBMISSION_COLUMNS}
            """, (user_id, invoice_id, Json(request_payload)))

            row = cursor.fetchone()
            conn.commit()
            return EtimsSubmission(**row)

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def _update(self, submission_id: str, fields: Dict[str, Any], timestamp_column: Optional[str] = None) -> None:
        set_clause, params = build_set_clause(fields, json_fields=JSON_COLUMNS)
        if timestamp_column:
            set_clause = f"{set_clause}, {timestamp_column} = NOW()"

        conn = get_db_connection_dict_with_retry()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE etims_submissions
                SET {set_clause}
                WHERE id = %s
            """, params + [submission_id])
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            cursor.close()
            conn.close()

    def mark_submitted(self, submission_id: str, result: Dict[str, Any]) -> None:
        """Store the control unit data returned by a successful submission"""
        self._update(submission_id, {
            "status": "submitted",
            "control_unit_number": result.get("controlUnitNumber"),
            "control_unit_date": result.get("controlUnitDate"),
            "qr_code_url": result.get("qrCodeUrl"),
            "receipt_number": result.get("receiptNumber"),
            "fiscal_code": result.get("fiscalCode"),
            "response_payload": result,
        }, timestamp_column="submitted_at")

    def mark_failed(
        self,
        submission_id: str,
        error_message: str,
        response: Optional[Dict[str, Any]] = None,
    ) -> None:
        fields: Dict[str, Any] = {
            "status": "failed",
            "error_message": error_message,
            "retry_count": 1,
        }
        if response is not None:
            fields["response_payload"] = response
        self._update(submission_id, fields)

    def mark_verified(self, submission_id: str, response: Dict[str, Any]) -> None:
        self._update(
            submission_id,
            {"status": "verified", "response_payload": response},
            timestamp_column="verified_at",
        )

    def mark_cancelled(self, submission_id: str, response: Dict[str, Any]) -> None:
        self._update(submission_id, {"status": "cancelled", "response_payload": response})
