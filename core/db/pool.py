"""
Database Connection Pool Manager

Provides thread-safe PostgreSQL connection pooling for the MES database
holding imported work cycles.
"""

import threading
import time
import logging
from contextlib import contextmanager
from typing import Optional, Dict, Any

import psycopg2
from psycopg2 import pool

from utils.config import get_database_config


# Configure logging
logger = logging.getLogger(__name__)


class DatabasePool:
    """Thread-safe database connection pool manager."""

    def __init__(self, db_config: Optional[Dict[str, Any]] = None):
        """
        Initialize the database pool.

        Args:
            db_config: psycopg2 connection keywords. Read from MESDB_* when None.

        Raises:
            ValueError: If required configuration is missing
        """
        if db_config is None:
            self.db_config = get_database_config()
        else:
            self.db_config = dict(db_config)
            self._validate_config()
        self.db_config.setdefault("sslmode", "disable")
        self.pool: Optional[pool.AbstractConnectionPool] = None
        self.pool_lock = threading.Lock()
        self.stats = {
            "connections_created": 0,
            "connections_used": 0,
            "connections_returned": 0,
            "pool_exhausted": 0,
            "fallback_connections": 0,
            "errors": 0
        }

    def _validate_config(self):
        """Validate an explicitly passed configuration."""
        required_keys = ["host", "port", "database", "user", "password"]
        missing = [k for k in required_keys if not self.db_config.get(k)]

        if missing:
            raise ValueError(
                f"Missing MES database configuration: {missing}. "
                f"Please check your .env file."
            )

    def initialize_pool(self, min_connections: int = 1, max_connections: int = 5) -> bool:
        """
        Initialize the connection pool.

        Args:
            min_connections: Minimum number of connections to maintain
            max_connections: Maximum number of connections allowed

        Returns:
            bool: True if pool was created successfully, False otherwise
        """
        try:
            with self.pool_lock:
                if self.pool is not None:
                    logger.info("MES pool already initialized")
                    return True

                self.pool = psycopg2.pool.ThreadedConnectionPool(
                    min_connections,
                    max_connections,
                    **self.db_config
                )
                self.stats["connections_created"] = min_connections

                logger.info(
                    f"Initialized MES pool with {min_connections}-{max_connections} connections"
                )
                return True

        except Exception as e:
            logger.error(f"Failed to initialize MES pool: {e}")
            self.stats["errors"] += 1
            return False

    @contextmanager
    def get_connection(self):
        """
        Get a connection from the pool using context manager.

        Falls back to a direct connection when the pool is missing or exhausted.

        Yields:
            psycopg2.connection: Database connection

        Example:
            >>> mes_pool = DatabasePool()
            >>> with mes_pool.get_connection() as conn:
            ...     cursor = conn.cursor()
            ...     cursor.execute("SELECT * FROM work_cycles LIMIT 1")
        """
        connection = None
        pooled = False
        start_time = time.time()

        try:
            if self.pool is not None:
                try:
                    connection = self.pool.getconn()
                    pooled = True
                    self.stats["connections_used"] += 1
                except pool.PoolError:
                    self.stats["pool_exhausted"] += 1
                    logger.warning("MES pool exhausted, using fallback")

            if connection is None:
                self.stats["fallback_connections"] += 1
                connection = psycopg2.connect(**self.db_config)

            yield connection

        except Exception as e:
            self.stats["errors"] += 1
            elapsed = time.time() - start_time
            logger.error(f"MES connection error after {elapsed:.2f}s: {e}")
            raise

        finally:
            if connection is not None:
                try:
                    if pooled and self.pool is not None:
                        self.pool.putconn(connection)
                        self.stats["connections_returned"] += 1
                    else:
                        connection.close()
                except Exception as e:
                    logger.warning(f"Error returning connection to pool: {e}")
                    self.stats["errors"] += 1

    def close_pool(self):
        """Close all connections in the pool."""
        with self.pool_lock:
            if self.pool is not None:
                try:
                    self.pool.closeall()
                    logger.info("Closed MES connection pool")
                except Exception as e:
                    logger.warning(f"Error closing MES pool: {e}")
                    self.stats["errors"] += 1
                finally:
                    self.pool = None

    def get_stats(self) -> Dict[str, Any]:
        """
        Get connection pool statistics.

        Returns:
            Dictionary with pool statistics
        """
        stats = self.stats.copy()
        stats["pool_initialized"] = self.pool is not None
        if self.pool is not None:
            stats["pool_type"] = type(self.pool).__name__
        return stats


# Global pool instance
_mes_pool: Optional[DatabasePool] = None
_pool_lock = threading.Lock()


def get_pool() -> DatabasePool:
    """
    Get or create the MES database pool.

    Raises:
        ValueError: If MESDB_* configuration is missing
    """
    global _mes_pool

    with _pool_lock:
        if _mes_pool is None:
            _mes_pool = DatabasePool()
            _mes_pool.initialize_pool()
        return _mes_pool


def close_pool():
    """Close the MES database pool."""
    global _mes_pool

    with _pool_lock:
        if _mes_pool is not None:
            _mes_pool.close_pool()
            _mes_pool = None


@contextmanager
def get_mes_connection():
    """
    Get an MES database connection using context manager.

    Yields:
        psycopg2.connection: Database connection
    """
    with get_pool().get_connection() as conn:
        yield conn
