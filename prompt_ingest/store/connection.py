"""
PostgreSQL connection pool management using psycopg3 (async)

This module provides an async connection pool shared by the PostgreSQL
adapters, plus a factory for the dedicated autocommit connection that
LISTEN/NOTIFY needs.
"""
import asyncio
import os
from contextlib import asynccontextmanager

import psycopg
from psycopg import OperationalError
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from prompt_ingest.observability.logger import get_logger

logger = get_logger(__name__)


def build_conninfo(
    host: str | None = None,
    port: int | None = None,
    database: str | None = None,
    user: str | None = None,
    password: str | None = None,
    timeout: float = 30.0,
) -> str:
    """
    Build a libpq connection string from parts or DB_* environment variables

    Raises:
        ValueError: If no password is configured
    """
    password = password or os.getenv("DB_PASSWORD")

    # Security: Require password to be explicitly set
    if not password:
        raise ValueError(
            "Database password must be provided. "
            "Set DB_PASSWORD environment variable, pass to constructor or use a database URL."
        )

    return (
        f"host={host or os.getenv('DB_HOST', 'localhost')} "
        f"port={port or int(os.getenv('DB_PORT', '5432'))} "
        f"dbname={database or os.getenv('DB_NAME', 'prompts')} "
        f"user={user or os.getenv('DB_USER', 'ingest')} "
        f"password={password} "
        f"connect_timeout={int(timeout)}"
    )


class DatabaseConnectionPool:
    """
    PostgreSQL connection pool manager using psycopg3

    Rows are returned as dictionaries. Use as an async context manager or
    call ``open()`` / ``close()`` explicitly.
    """

    def __init__(
        self,
        conninfo: str | None = None,
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize database connection pool

        Args:
            conninfo: libpq connection string or postgresql:// URL
                      (defaults to env var DATABASE_URL, then DB_* variables)
            min_size: Minimum pool size
            max_size: Maximum pool size
            timeout: Connection timeout in seconds
        """
        self.conninfo = conninfo or os.getenv("DATABASE_URL") or build_conninfo(timeout=timeout)
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self._pool: AsyncConnectionPool | None = None

    async def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the connection pool with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds

        Raises:
            OperationalError: If connection fails after all retries
        """
        if self._pool is not None:
            return

        for attempt in range(1, max_retries + 1):
            pool = AsyncConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                await pool.open(wait=True, timeout=self.timeout)
                self._pool = pool
                return
            except OperationalError as e:
                await pool.close()
                logger.warning(
                    "Database connection attempt failed",
                    extra={"attempt": attempt, "max_retries": max_retries, "error_message": str(e)},
                )
                if attempt == max_retries:
                    raise OperationalError(
                        f"Failed to connect to database after {max_retries} attempts: {e}"
                    ) from e
                await asyncio.sleep(retry_delay)

    async def close(self) -> None:
        """Close the connection pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def get_connection(self):
        """
        Get a connection from the pool

        The transaction is committed when the block exits normally and rolled
        back when it raises.

        Yields:
            psycopg.AsyncConnection: Database connection

        Raises:
            RuntimeError: If pool is not open
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        async with self._pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def get_cursor(self):
        """
        Get a cursor from a pooled connection

        Yields:
            psycopg.AsyncCursor: Database cursor
        """
        async with self.get_connection() as conn:
            async with conn.cursor() as cur:
                yield cur

    async def execute_query(self, query: str, params: tuple | dict | None = None) -> list[dict]:
        """
        Execute a SELECT query and return results

        Args:
            query: SQL SELECT query
            params: Query parameters (optional)

        Returns:
            List of dictionaries (one per row)
        """
        async with self.get_cursor() as cur:
            await cur.execute(query, params)
            return await cur.fetchall()

    async def execute_command(self, command: str, params: tuple | dict | None = None) -> int:
        """
        Execute an INSERT/UPDATE/DELETE command

        Args:
            command: SQL command
            params: Command parameters (optional)

        Returns:
            Number of rows affected
        """
        async with self.get_cursor() as cur:
            await cur.execute(command, params)
            return cur.rowcount

    async def listen_connection(self) -> psycopg.AsyncConnection:
        """
        Open a dedicated autocommit connection for LISTEN.

        The caller owns the connection and must close it.
        """
        return await psycopg.AsyncConnection.connect(self.conninfo, autocommit=True)

    async def __aenter__(self):
        """Context manager entry"""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        await self.close()
        return False
