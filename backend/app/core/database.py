"""
Database access for KRA Assist (Supabase-hosted PostgreSQL)

Two access paths:
- psycopg2 with RealDictCursor for the repositories (raw SQL, dict rows)
- Supabase client for auth admin lookups and storage uploads

Connections are opened per unit of work and retried on transient
OperationalError (the Supabase pooler drops SSL sessions now and then).
"""
import time
import logging
from typing import Any, Dict, List, Optional, Tuple

import psycopg2
from psycopg2.extras import Json, RealDictCursor
from supabase import create_client, Client

from .config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# psycopg2 connections
# ============================================================================

def get_db_connection_dict_with_retry(max_retries: int = 3, retry_delay: float = 1.0):
    """
    Get a psycopg2 connection with RealDictCursor and automatic retry

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds, doubled per attempt

    Returns:
        psycopg2 connection whose cursors return dicts

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL not configured")

    last_error: Optional[Exception] = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            return psycopg2.connect(database_url, cursor_factory=RealDictCursor)

        except psycopg2.OperationalError as e:
            last_error = e
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)

    logger.error(f"All {max_retries} connection attempts failed")
    raise last_error


def build_set_clause(
    updates: Dict[str, Any],
    json_fields: Tuple[str, ...] = (),
) -> Tuple[str, List[Any]]:
    """
    Build "col = %s, ..." and its params from a dict of column updates

    Column names come from pydantic field names, never from user input.
    Values of ``json_fields`` are wrapped for JSONB columns.
    """
    assignments = []
    params: List[Any] = []
    for column, value in updates.items():
        assignments.append(f"{column} = %s")
        params.append(Json(value) if column in json_fields and value is not None else value)
    assignments.append("updated_at = NOW()")
    return ", ".join(assignments), params


def ping_database() -> float:
    """Run SELECT 1 with a single fast attempt, returning latency in ms"""
    start = time.time()
    conn = get_db_connection_dict_with_retry(max_retries=1, retry_delay=0.5)
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT 1")
        cursor.close()
    finally:
        conn.close()
    return round((time.time() - start) * 1000, 2)


# ============================================================================
# Supabase client (auth admin + storage)
# ============================================================================

_supabase: Optional[Client] = None


def get_supabase() -> Client:
    """
    FastAPI dependency returning the service-role Supabase client

    Usage:
        @router.post("/upload")
        def upload(sb: Client = Depends(get_supabase)):
            ...
    """
    global _supabase
    if _supabase is None:
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return _supabase
