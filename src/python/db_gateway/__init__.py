"""Lazily-connected database gateway with reconnect-on-gone-away."""

from .errors import (
    ConfigurationError,
    DatabaseConnectionError,
    GatewayError,
    QueryError,
    is_gone_away,
    serialize_params,
)
from .gateway import ConnectionGateway, Statement
from .models import GatewayConfig
from .registry import get_configuration, get_instance, reset, set_configuration

__all__ = [
    "ConfigurationError",
    "ConnectionGateway",
    "DatabaseConnectionError",
    "GatewayConfig",
    "GatewayError",
    "QueryError",
    "Statement",
    "get_configuration",
    "get_instance",
    "is_gone_away",
    "reset",
    "serialize_params",
    "set_configuration",
]
