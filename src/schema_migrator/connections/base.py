"""Reconnect and timeout handling shared by database connections."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime

from schema_migrator.config import MigratorConfig
from schema_migrator.exceptions import (
    ConnectionError,
    OperationTimeoutError,
    RetryExhaustedError,
)
from schema_migrator.models.types import ConnectionState

logger = logging.getLogger(__name__)


class BaseConnection(ABC):
    """Connection that reconnects with exponential backoff.

    After a full round of failed attempts the circuit breaker opens, and
    further reconnects fail immediately with ``RetryExhaustedError`` until
    ``retry_max_delay`` seconds have passed. The executor treats that error
    like any other connection failure of a step.
    """

    def __init__(self, config: MigratorConfig):
        self.config = config
        self._state = ConnectionState.DISCONNECTED
        self._breaker_opened_at: datetime | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def breaker_open(self) -> bool:
        """Whether reconnects are currently refused."""
        if self._breaker_opened_at is None:
            return False
        elapsed = (datetime.now() - self._breaker_opened_at).total_seconds()
        return elapsed < self.config.retry_max_delay

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection, raising ConnectionError on failure."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection."""

    @abstractmethod
    async def health_check(self) -> tuple[bool, float]:
        """Return (is_healthy, latency_ms)."""

    async def ensure_connected(self) -> None:
        if not self.is_connected:
            await self.connect_with_retry()

    async def connect_with_retry(self) -> None:
        """Connect, retrying up to ``max_retry_attempts`` times.

        Raises:
            RetryExhaustedError: If every attempt failed or the breaker is open
        """
        attempts = self.config.max_retry_attempts + 1
        if self.breaker_open:
            raise RetryExhaustedError(
                f"Circuit breaker is open after {attempts} failed connection attempts"
            )

        last_error: ConnectionError | None = None
        for attempt in range(attempts):
            try:
                await self.connect()
            except ConnectionError as e:
                last_error = e
                if attempt + 1 < attempts:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        "Connection attempt %d/%d failed: %s. Retrying in %ss",
                        attempt + 1, attempts, e, delay
                    )
                    await asyncio.sleep(delay)
                continue
            self._breaker_opened_at = None
            return

        self._breaker_opened_at = datetime.now()
        logger.error("Circuit breaker opened after %d failed connection attempts", attempts)
        raise RetryExhaustedError(f"Failed to connect after {attempts} attempts", last_error)

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds after the 0-indexed ``attempt``, capped at retry_max_delay."""
        return min(self.config.retry_backoff_factor ** attempt, self.config.retry_max_delay)

    async def execute_with_timeout(self, coro, timeout: float | None = None):
        """Await ``coro``, bounded by ``timeout`` or ``timeout_seconds``.

        Raises:
            OperationTimeoutError: If the coroutine does not finish in time
        """
        timeout = timeout or self.config.timeout_seconds
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except TimeoutError as e:
            raise OperationTimeoutError(f"Operation timed out after {timeout} seconds") from e
