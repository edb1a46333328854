"""
Database connections (Supabase and PostgreSQL)

Two ways of reaching the live store:
- Supabase client (PostgREST) for every regular read and write
- direct psycopg2 connection for multi-statement transactions (order creation),
  only when DATABASE_URL is configured

Both are bounded by BACKEND_TIMEOUT_SECONDS.

Author: Arpozan
"""
import logging
import time
from functools import lru_cache
from typing import Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from supabase import Client, ClientOptions, create_client

from .config import settings
from .errors import BackendError

logger = logging.getLogger(__name__)


# ============================================================================
# Supabase Clients
# ============================================================================

def create_supabase_client(key: str) -> Client:
    """
    Build a Supabase client for the configured project

    Args:
        key: Anon (public) or service role key

    Returns:
        supabase Client with the PostgREST timeout applied
    """
    options = ClientOptions(postgrest_client_timeout=settings.BACKEND_TIMEOUT_SECONDS)
    return create_client(settings.SUPABASE_URL, key, options=options)


@lru_cache()
def get_anon_client() -> Client:
    """Public client, limited to what row level security exposes"""
    return create_supabase_client(settings.SUPABASE_ANON_KEY)


@lru_cache()
def get_service_client() -> Optional[Client]:
    """
    Server-only client used for writes and privileged tables

    Returns None when no service role key is configured.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        return None
    return create_supabase_client(settings.SUPABASE_SERVICE_ROLE_KEY)


def reset_clients() -> None:
    get_anon_client.cache_clear()
    get_service_client.cache_clear()


# ============================================================================
# psycopg2 Direct Connections (transactions)
# ============================================================================

def has_direct_connection() -> bool:
    return bool(settings.DATABASE_URL)


def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0):
    """
    Get a psycopg2 connection with RealDictCursor and automatic retry

    Handles intermittent Supabase connection issues (dropped SSL sessions)
    by retrying with exponential backoff. Connections carry connect_timeout
    and statement_timeout derived from BACKEND_TIMEOUT_SECONDS.

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Returns:
        psycopg2 connection with RealDictCursor

    Raises:
        BackendError: If DATABASE_URL is missing or every attempt fails
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise BackendError("DATABASE_URL not configured")

    timeout = settings.BACKEND_TIMEOUT_SECONDS
    statement_timeout_ms = int(timeout * 1000)
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(
                database_url,
                cursor_factory=RealDictCursor,
                connect_timeout=max(1, int(timeout)),
                options=f"-c statement_timeout={statement_timeout_ms}",
            )
            logger.debug(f"Database connection successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            error_msg = str(e)

            if "SSL connection has been closed unexpectedly" in error_msg:
                logger.warning(f"SSL connection error on attempt {attempt}/{max_retries}: {error_msg}")
            else:
                logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {error_msg}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)

    logger.error(f"All {max_retries} connection attempts failed")
    raise BackendError(f"Database connection failed: {last_error}")
