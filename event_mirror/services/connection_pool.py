"""
PostgreSQL connection pooling for the mirror stores.

Store calls run on worker threads and borrow one connection per unit of work.
After ``max_failures`` consecutive failures to reach the server the pool
refuses new work for ``backoff_seconds``, so one sync pass does not try to
reconnect once for every event of its batch.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import psycopg2
from psycopg2 import pool

from event_mirror.config import common_settings
from event_mirror.config.database_config import get_connection_string, get_database_config
from event_mirror.utils.logger import logger


class DatabaseConnectionPool:
    """Thread-safe psycopg2 pool that backs off after repeated failures."""

    def __init__(self, min_connections: int = 1, max_connections: int = 5,
                 connection_params: Optional[Dict[str, Any]] = None,
                 max_failures: int = 3, backoff_seconds: float = 30.0):
        self._pool: Optional[pool.ThreadedConnectionPool] = None
        self._lock = threading.Lock()
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._connection_params = connection_params
        self._max_failures = max_failures
        self._backoff_seconds = backoff_seconds
        self._failure_count = 0
        self._last_failure_time = 0.0

    @property
    def in_backoff(self) -> bool:
        if self._failure_count < self._max_failures:
            return False
        return time.time() - self._last_failure_time <= self._backoff_seconds

    def _record_failure(self, what: str, error: Exception) -> None:
        self._failure_count += 1
        self._last_failure_time = time.time()
        logger.error("[store] %s failed (%d in a row): %s", what, self._failure_count, error)

    def _open(self) -> pool.ThreadedConnectionPool:
        if self._connection_params is not None:
            params = self._connection_params
        else:
            params = get_database_config().get_connection_params()
            logger.info("[store] Opening connection pool to %s", get_connection_string())
        return pool.ThreadedConnectionPool(self._min_connections, self._max_connections, **params)

    def get_connection(self):
        """Borrow a raw connection; pair with ``return_connection``.

        Raises:
            RuntimeError: While in backoff, or when no connection can be made
        """
        with self._lock:
            if self.in_backoff:
                raise RuntimeError(
                    f"Database pool in backoff after {self._failure_count} failures; "
                    f"retry in {self._backoff_seconds:.0f}s"
                )

            if self._pool is None:
                try:
                    self._pool = self._open()
                except psycopg2.Error as e:
                    self._record_failure("Opening pool", e)
                    raise RuntimeError(f"Could not open database pool: {e}") from e

            try:
                conn = self._pool.getconn()
            except (psycopg2.Error, pool.PoolError) as e:
                self._record_failure("Borrowing connection", e)
                if self._failure_count >= 2:
                    # Reconnect from scratch on the next call
                    self._close_pool()
                raise RuntimeError(f"Could not borrow database connection: {e}") from e

            self._failure_count = 0
            return conn

    def return_connection(self, conn, close_connection: bool = False) -> None:
        if self._pool is None:
            return
        try:
            self._pool.putconn(conn, close=close_connection)
        except pool.PoolError as e:
            logger.warning("[store] Could not return connection to pool: %s", e)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a connection for one unit of work.

        Commits when the block exits normally and rolls back otherwise. A
        connection that failed at the server level is closed instead of being
        handed back to the pool.
        """
        conn = self.get_connection()
        broken = False
        try:
            yield conn
            conn.commit()
        except psycopg2.OperationalError:
            broken = True
            raise
        except Exception:
            conn.rollback()
            raise
        finally:
            self.return_connection(conn, close_connection=broken)

    def _close_pool(self) -> None:
        if self._pool is None:
            return
        try:
            self._pool.closeall()
            logger.info("[store] Connection pool closed")
        except pool.PoolError as e:
            logger.warning("[store] Error closing pool: %s", e)
        finally:
            self._pool = None

    def close(self) -> None:
        with self._lock:
            self._close_pool()


_connection_pool: Optional[DatabaseConnectionPool] = None
_pool_lock = threading.Lock()


def get_connection_pool() -> DatabaseConnectionPool:
    """Process-wide pool shared by the PostgreSQL stores."""
    global _connection_pool

    with _pool_lock:
        if _connection_pool is None:
            _connection_pool = DatabaseConnectionPool(
                min_connections=common_settings.DB_POOL_MIN,
                max_connections=common_settings.DB_POOL_MAX,
            )
        return _connection_pool


def close_connection_pool() -> None:
    global _connection_pool

    with _pool_lock:
        if _connection_pool is not None:
            _connection_pool.close()
            _connection_pool = None
