"""Mock PostgreSQL connection.

Statements are recorded rather than run. Failures can be injected per
statement pattern to exercise retry and rollback paths.
"""

import asyncio
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from schema_migrator.exceptions import PostgresConnectionError
from schema_migrator.mocks.data_store import InMemoryDataStore
from schema_migrator.models.types import ConnectionState

_SELECT_FROM = re.compile(r'^\s*SELECT\s+\*\s+FROM\s+(?:"[^"]+"\.)?"([^"]+)"', re.IGNORECASE)


@dataclass
class MockTransaction:
    """Statements buffered until commit."""
    tx_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    statements: list[str] = field(default_factory=list)
    finished: bool = False


@dataclass
class _Failure:
    pattern: str
    remaining: int | None
    message: str


class MockPostgresConnection:
    """Mock implementation of PostgreSQL connection."""

    def __init__(self, data_store: InMemoryDataStore, config: dict[str, Any] | None = None):
        """Initialize mock PostgreSQL connection.

        Args:
            data_store: Shared in-memory data store
            config: Connection configuration
        """
        self.data_store = data_store
        self.config = config or {}
        self.state = ConnectionState.DISCONNECTED
        self.is_connected = False
        self._latency_ms = self.config.get("postgres_latency", 0)
        self._failures: list[_Failure] = []
        self.attempts: dict[str, int] = {}

    async def connect_with_retry(self) -> None:
        """Simulate connection with retry logic."""
        self.state = ConnectionState.CONNECTING
        await asyncio.sleep(self._latency_ms / 1000)
        self.state = ConnectionState.CONNECTED
        self.is_connected = True

    async def disconnect(self) -> None:
        """Simulate disconnection."""
        await asyncio.sleep(self._latency_ms / 1000)
        self.state = ConnectionState.CLOSED
        self.is_connected = False

    async def health_check(self) -> tuple[bool, float]:
        """Perform health check.

        Returns:
            Tuple of (is_healthy, latency_ms)
        """
        start_time = time.time()
        await asyncio.sleep(self._latency_ms / 1000)
        latency = (time.time() - start_time) * 1000
        return self.is_connected, latency

    def fail_on(self, pattern: str, times: int | None = None,
                message: str = "simulated failure") -> None:
        """Make statements containing ``pattern`` fail.

        Args:
            pattern: Substring matched against each statement
            times: Number of failures before the statement succeeds (None: always)
            message: Error message of the raised exception
        """
        self._failures.append(_Failure(pattern, times, message))

    def clear_failures(self) -> None:
        self._failures.clear()

    def _maybe_fail(self, query: str) -> None:
        for failure in self._failures:
            if failure.pattern not in query:
                continue
            if failure.remaining is None:
                raise PostgresConnectionError(f"Statement execution failed: {failure.message}")
            if failure.remaining > 0:
                failure.remaining -= 1
                raise PostgresConnectionError(f"Statement execution failed: {failure.message}")

    async def fetch_all(
        self,
        query: str,
        parameters: tuple | list | dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Return stored rows for ``SELECT * FROM table`` queries."""
        await asyncio.sleep(self._latency_ms / 1000)
        self._maybe_fail(query)
        match = _SELECT_FROM.match(query)
        if match:
            return [dict(row) for row in self.data_store.rows.get(match.group(1), [])]
        return []

    async def fetch_one(
        self,
        query: str,
        parameters: tuple | list | dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        results = await self.fetch_all(query, parameters)
        return results[0] if results else None

    async def execute(
        self,
        query: str,
        parameters: tuple | list | dict[str, Any] | None = None,
        transaction: MockTransaction | None = None
    ) -> list[dict[str, Any]]:
        """Record a statement, raising any injected failure."""
        await asyncio.sleep(self._latency_ms / 1000)
        self.attempts[query] = self.attempts.get(query, 0) + 1
        self._maybe_fail(query)
        self.data_store.executed.append(query)
        if transaction is not None:
            transaction.statements.append(query)
        else:
            self.data_store.committed.append((query,))
        return []

    async def begin_transaction(self) -> MockTransaction:
        return MockTransaction()

    async def commit_transaction(self, transaction: MockTransaction) -> None:
        if transaction.finished:
            raise PostgresConnectionError("Transaction already finished")
        transaction.finished = True
        self.data_store.committed.append(tuple(transaction.statements))

    async def rollback_transaction(self, transaction: MockTransaction) -> None:
        if transaction.finished:
            raise PostgresConnectionError("Transaction already finished")
        transaction.finished = True
        self.data_store.rolled_back.append(tuple(transaction.statements))

    @property
    def pool_status(self) -> dict[str, Any]:
        return {"status": "mock", "transactions_committed": len(self.data_store.committed)}
