"""Shared test fixtures for all test modules.

This module provides gateway configuration fixtures and a mocked
SQLAlchemy engine so gateway behavior can be tested without a server.
"""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from db_gateway import registry
from db_gateway.models import GatewayConfig


@pytest.fixture(autouse=True)
def reset_registry():
    """Forget the process-wide gateway before and after each test."""
    registry.reset()
    yield
    registry.reset()


@pytest.fixture
def gateway_config():
    """MySQL-style configuration without an explicit port."""
    return GatewayConfig(
        driver="mysql+pymysql",
        hostname="db.example.org",
        database="reporting",
        username="reporter",
        password="s3cret",
        encoding="utf8mb4",
    )


@pytest.fixture
def make_connection():
    """Factory for mocked SQLAlchemy connections."""

    def _make():
        connection = MagicMock(name="connection")
        connection.closed = False
        return connection

    return _make


@pytest.fixture
def mock_create_engine():
    """Patch create_engine in the gateway module."""
    with patch("db_gateway.gateway.create_engine") as mock_factory:
        mock_factory.return_value = MagicMock(name="engine")
        yield mock_factory


@pytest.fixture
def gone_away_error():
    """Error raised by pymysql when the server closed the connection."""
    return OperationalError(
        "SELECT 1", {}, Exception(2006, "MySQL server has gone away")
    )


@pytest.fixture
def driver_error():
    """Error raised for a statement the server rejects."""
    return OperationalError(
        "SELECT 1", {}, Exception(1146, "Table 'reporting.missing' doesn't exist")
    )
