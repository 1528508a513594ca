"""Type definitions for schema_migrator."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ConnectionState(Enum):
    """Connection state enumeration."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class HealthStatus:
    """Health status of the migration engine."""
    postgres_connected: bool
    postgres_latency_ms: float
    catalog_available: bool = False
    table_count: int = 0
    recent_executions: int = 0
    timestamp: datetime = field(default_factory=datetime.now)
    error: str | None = None

    @property
    def is_healthy(self) -> bool:
        """Check if the database and catalog are both reachable."""
        return self.postgres_connected and self.catalog_available
