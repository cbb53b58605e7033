"""Process-wide access to a shared ConnectionGateway.

Configuration is first-writer-wins: once set, later calls to
set_configuration are ignored with a warning until reset() is called.
"""

import logging
import threading
from typing import Any, Mapping, Optional, Union

from db_gateway.errors import ConfigurationError
from db_gateway.gateway import ConnectionGateway
from db_gateway.models import GatewayConfig

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_config: Optional[GatewayConfig] = None
_instance: Optional[ConnectionGateway] = None


def set_configuration(
    config: Union[GatewayConfig, Mapping[str, Any]],
    field_names: Optional[Mapping[str, str]] = None,
) -> GatewayConfig:
    """Store the configuration used to build the shared gateway.

    Args:
        config: GatewayConfig, or a mapping of connection settings
        field_names: Canonical field name to source key in ``config``;
            only used when ``config`` is a mapping

    Returns:
        The stored configuration (the earlier one if already set)

    Raises:
        ConfigurationError: If the settings are missing or invalid
    """
    global _config

    with _lock:
        if _config is not None:
            logger.warning(
                "Gateway configuration already set, ignoring new configuration"
            )
            return _config

        if isinstance(config, GatewayConfig):
            _config = config
        else:
            _config = GatewayConfig.from_mapping(config, field_names)

        logger.info(
            "Gateway configuration set",
            extra={"locator": _config.data_source_locator()},
        )
        return _config


def get_configuration() -> Optional[GatewayConfig]:
    """Return the stored configuration, or None if it was never set."""
    return _config


def get_instance() -> ConnectionGateway:
    """Return the shared gateway, building it on first call.

    Raises:
        ConfigurationError: If set_configuration() has not been called
    """
    global _instance

    with _lock:
        if _instance is None:
            if _config is None:
                raise ConfigurationError(
                    "set_configuration() must be called before get_instance()"
                )
            _instance = ConnectionGateway(_config)
        return _instance


def reset() -> None:
    """Close the shared gateway and forget the stored configuration."""
    global _config, _instance

    with _lock:
        instance, _instance = _instance, None
        _config = None

    if instance is not None:
        instance.close()
