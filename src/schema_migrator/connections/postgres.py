"""PostgreSQL connection management."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from ..config import MigratorConfig
from ..exceptions import PoolExhaustedError, PostgresConnectionError
from ..models.types import ConnectionState
from .base import BaseConnection

logger = logging.getLogger(__name__)


class PostgresConnection(BaseConnection):
    """PostgreSQL database connection manager."""

    def __init__(self, config: MigratorConfig):
        """Initialize PostgreSQL connection.

        Args:
            config: Migrator configuration
        """
        super().__init__(config)
        self._pool: AsyncConnectionPool | None = None

    async def connect(self) -> None:
        """Establish connection pool to PostgreSQL."""
        try:
            self._state = ConnectionState.CONNECTING
            logger.info("Creating PostgreSQL connection pool")

            self._pool = AsyncConnectionPool(
                conninfo=self.config.postgres_dsn,
                min_size=1,
                max_size=self.config.connection_pool_size,
                timeout=self.config.timeout_seconds,
                open=False,
                kwargs={
                    "row_factory": dict_row,
                    "autocommit": False,
                }
            )

            await self._pool.open()
            await self._pool.wait()

            self._state = ConnectionState.CONNECTED
            logger.info("Successfully created PostgreSQL connection pool")

        except psycopg.OperationalError as e:
            self._state = ConnectionState.FAILED
            logger.error(f"PostgreSQL connection failed: {e}")
            raise PostgresConnectionError(f"Failed to connect to PostgreSQL: {e}") from e
        except Exception as e:
            self._state = ConnectionState.FAILED
            logger.error(f"Unexpected error connecting to PostgreSQL: {e}")
            raise PostgresConnectionError(f"Unexpected error: {e}") from e

    async def disconnect(self) -> None:
        """Close PostgreSQL connection pool."""
        if self._pool:
            try:
                logger.info("Closing PostgreSQL connection pool")
                await self._pool.close()
                self._pool = None
                self._state = ConnectionState.CLOSED
                logger.info("Successfully closed PostgreSQL connection pool")
            except Exception as e:
                logger.error(f"Error closing PostgreSQL pool: {e}")
                self._state = ConnectionState.FAILED

    async def health_check(self) -> tuple[bool, float]:
        """Perform health check on PostgreSQL connection.

        Returns:
            Tuple of (is_healthy, latency_ms)
        """
        if not self._pool:
            return False, 0.0

        try:
            start_time = time.time()

            async with self._pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1 as health")
                    await cur.fetchone()

            latency_ms = (time.time() - start_time) * 1000
            return True, latency_ms

        except psycopg.OperationalError as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            if self.config.enable_auto_reconnect:
                self._state = ConnectionState.RECONNECTING
            return False, 0.0
        except Exception as e:
            logger.error(f"Unexpected error during PostgreSQL health check: {e}")
            return False, 0.0

    @asynccontextmanager
    async def acquire_connection(self) -> AsyncIterator[AsyncConnection]:
        """Acquire a connection from the pool.

        Yields:
            PostgreSQL connection

        Raises:
            PoolExhaustedError: If pool is exhausted
        """
        await self.ensure_connected()

        try:
            async with self._pool.connection() as conn:
                yield conn
        except PoolTimeout as e:
            raise PoolExhaustedError(
                f"Connection pool exhausted (timeout: {self.config.timeout_seconds}s)"
            ) from e

    @staticmethod
    async def _run(
        conn: AsyncConnection,
        query: str,
        parameters: tuple | list | dict[str, Any] | None,
    ) -> list[dict[str, Any]]:
        """Run one statement and collect rows if it produced any."""
        async with conn.cursor() as cur:
            await cur.execute(query, parameters or None)
            if cur.description is None:
                return []
            results = await cur.fetchall()
            return [dict(row) for row in results]

    async def fetch_all(
        self,
        query: str,
        parameters: tuple | list | dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute a query and fetch all results.

        Args:
            query: SQL query string
            parameters: Query parameters as tuple, list, or dict

        Returns:
            List of result records as dictionaries

        Raises:
            PostgresConnectionError: If query execution fails
        """
        try:
            async with self.acquire_connection() as conn:
                return await self._run(conn, query, parameters)
        except psycopg.Error as e:
            logger.error(f"PostgreSQL query execution failed: {e}")
            raise PostgresConnectionError(f"Query execution failed: {e}") from e

    async def fetch_one(
        self,
        query: str,
        parameters: tuple | list | dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute a query and fetch one result.

        Returns:
            Single result record as dictionary or None if no results
        """
        results = await self.fetch_all(query, parameters)
        return results[0] if results else None

    async def execute(
        self,
        query: str,
        parameters: tuple | list | dict[str, Any] | None = None,
        transaction: AsyncConnection | None = None
    ) -> list[dict[str, Any]]:
        """Execute a SQL statement with optional transaction support.

        Statements that return no rows (DDL, INSERT without RETURNING)
        yield an empty list.

        Args:
            query: SQL statement
            parameters: Query parameters
            transaction: Optional transaction connection from begin_transaction

        Returns:
            List of result records as dictionaries

        Raises:
            PostgresConnectionError: If execution fails
            OperationTimeoutError: If the statement exceeds timeout_seconds
        """
        try:
            if transaction is not None:
                return await self.execute_with_timeout(
                    self._run(transaction, query, parameters)
                )

            async with self.acquire_connection() as conn:
                # The pool commits the connection on a clean exit.
                return await self.execute_with_timeout(self._run(conn, query, parameters))
        except psycopg.Error as e:
            logger.error(f"PostgreSQL statement execution failed: {e}")
            raise PostgresConnectionError(f"Statement execution failed: {e}") from e

    async def begin_transaction(self) -> AsyncConnection:
        """Begin a new transaction on a dedicated pool connection.

        Returns:
            Transaction connection object

        Raises:
            PostgresConnectionError: If transaction creation fails
        """
        await self.ensure_connected()

        try:
            conn = await self._pool.getconn()
            await conn.set_autocommit(False)
            return conn
        except PoolTimeout as e:
            raise PoolExhaustedError(
                f"Connection pool exhausted (timeout: {self.config.timeout_seconds}s)"
            ) from e
        except Exception as e:
            logger.error(f"Failed to begin transaction: {e}")
            raise PostgresConnectionError(f"Failed to begin transaction: {e}") from e

    async def commit_transaction(self, transaction: AsyncConnection) -> None:
        """Commit a transaction and return its connection to the pool.

        Raises:
            PostgresConnectionError: If commit fails
        """
        if not transaction:
            return

        try:
            await transaction.commit()
        except Exception as e:
            logger.error(f"Failed to commit transaction: {e}")
            raise PostgresConnectionError(f"Failed to commit transaction: {e}") from e
        finally:
            await self._pool.putconn(transaction)

    async def rollback_transaction(self, transaction: AsyncConnection) -> None:
        """Rollback a transaction and return its connection to the pool.

        Raises:
            PostgresConnectionError: If rollback fails
        """
        if not transaction:
            return

        try:
            await transaction.rollback()
        except Exception as e:
            logger.error(f"Failed to rollback transaction: {e}")
            raise PostgresConnectionError(f"Failed to rollback transaction: {e}") from e
        finally:
            await self._pool.putconn(transaction)

    @property
    def pool(self) -> AsyncConnectionPool | None:
        """Get the underlying connection pool."""
        return self._pool

    @property
    def pool_status(self) -> dict[str, Any]:
        """Get connection pool status."""
        if not self._pool:
            return {"status": "not_initialized"}

        stats = self._pool.get_stats()
        return {
            "status": "active",
            "min_size": self._pool.min_size,
            "max_size": self._pool.max_size,
            "current_size": stats.get("pool_size", 0),
            "available": stats.get("pool_available", 0),
        }
