"""Tests for data models."""

from datetime import datetime

from schema_migrator import ConnectionState, HealthStatus


class TestConnectionState:
    """Tests for ConnectionState enum."""

    def test_connection_states(self):
        """Test all connection states."""
        assert ConnectionState.DISCONNECTED.value == "disconnected"
        assert ConnectionState.CONNECTING.value == "connecting"
        assert ConnectionState.CONNECTED.value == "connected"
        assert ConnectionState.RECONNECTING.value == "reconnecting"
        assert ConnectionState.FAILED.value == "failed"
        assert ConnectionState.CLOSED.value == "closed"


class TestHealthStatus:
    """Tests for HealthStatus dataclass."""

    def test_health_status_creation(self):
        """Test creating health status."""
        status = HealthStatus(postgres_connected=True, postgres_latency_ms=5.2)

        assert status.postgres_connected is True
        assert status.postgres_latency_ms == 5.2
        assert status.catalog_available is False
        assert status.error is None
        assert isinstance(status.timestamp, datetime)

    def test_is_healthy(self):
        """Test is_healthy property."""
        status = HealthStatus(
            postgres_connected=True,
            postgres_latency_ms=3.0,
            catalog_available=True,
        )
        assert status.is_healthy

        status.catalog_available = False
        assert not status.is_healthy

        status = HealthStatus(
            postgres_connected=False,
            postgres_latency_ms=0,
            catalog_available=True,
        )
        assert not status.is_healthy
