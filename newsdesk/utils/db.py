"""
PostgreSQL Database Client for Newsdesk Workers

Owns connection handling for the queue, post, tag and execution-log stores.
A single client is built by each job entry point and handed to the stores;
nothing looks the client up globally.

Connection failures are retried; once retries are exhausted the client
raises StoreUnavailableError so the current job tick aborts and the next
scheduled run tries again.
"""

import os
import logging
import time
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor

from ..errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# Retry configuration for SSL connection failures
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1


class DatabaseClient:
    """PostgreSQL database client for newsdesk workers"""

    def __init__(self, database_url: str = None):
        self.database_url = database_url or os.environ.get('DATABASE_URL')
        if not self.database_url:
            raise ValueError("DATABASE_URL environment variable is required")

    def _create_connection(self):
        """Create a new database connection with proper SSL settings"""
        sslmode = 'require' if os.environ.get('NODE_ENV') == 'production' else 'prefer'

        return psycopg2.connect(
            self.database_url,
            cursor_factory=RealDictCursor,
            sslmode=sslmode,
            connect_timeout=10,  # 10 second connection timeout
            options='-c statement_timeout=30000'  # 30 second query timeout
        )

    def _connect_with_retry(self):
        last_error = None

        for attempt in range(MAX_RETRIES):
            try:
                return self._create_connection()
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                last_error = e
                logger.warning(f"Database connection error (attempt {attempt + 1}/{MAX_RETRIES}): {e}")
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY_SECONDS * (attempt + 1))

        logger.error(f"Database connection failed after {MAX_RETRIES} retries: {last_error}")
        raise StoreUnavailableError(str(last_error)) from last_error

    @contextmanager
    def get_cursor(self):
        """
        Context manager for a database cursor.

        Commits on success, rolls back on error. A connection dropped
        mid-query is reported as StoreUnavailableError.
        """
        conn = self._connect_with_retry()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            logger.error(f"Database connection lost: {e}")
            raise StoreUnavailableError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def ping(self) -> bool:
        """Run a trivial query; used to warm up cold databases."""
        with self.get_cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        return True
