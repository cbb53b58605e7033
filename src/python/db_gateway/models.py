"""GatewayConfig model for database gateway configuration.

This module contains the GatewayConfig model that validates the settings
used to open the gateway's connection, and builds the data-source locator
and SQLAlchemy URL from them.
"""

import os
from typing import Any, Dict, Mapping, Optional, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from sqlalchemy.engine import URL

from db_gateway.errors import ConfigurationError

DEFAULT_PORT = 3306
DEFAULT_INIT_COMMAND = "SET NAMES {encoding}"

# Pattern definitions
ENCODING_PATTERN = r"^[A-Za-z0-9_]+$"

FIELD_NAMES = (
    "driver",
    "hostname",
    "port",
    "database",
    "username",
    "password",
    "encoding",
    "init_command",
)


class GatewayConfig(BaseModel):
    """Connection settings for a ConnectionGateway.

    The configuration is frozen once built. The port stays unset when the
    caller omits it; the default port is only applied when a locator or URL
    is built.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True, frozen=True, extra="forbid"
    )

    driver: str = Field(
        min_length=1, description="SQLAlchemy drivername, e.g. mysql+pymysql"
    )
    hostname: Optional[str] = Field(default=None, description="Database host")
    port: Optional[int] = Field(
        default=None, ge=1, le=65535, description="Database port - optional"
    )
    database: Optional[str] = Field(default=None, description="Database name")
    username: Optional[str] = Field(default=None, description="Login user")
    password: Optional[SecretStr] = Field(default=None, description="Login password")
    encoding: str = Field(
        pattern=ENCODING_PATTERN, description="Session character encoding"
    )
    init_command: Optional[str] = Field(
        default=None,
        description="Directive run after connecting; {encoding} is substituted",
    )

    @field_validator("hostname", "database", "username", "init_command")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank strings as unset."""
        return v or None

    @model_validator(mode="after")
    def validate_init_command(self) -> Self:
        """Check that the init directive template renders.

        Raises:
            ValueError: If the template references anything but {encoding}
        """
        if self.init_command is not None:
            try:
                self.init_command.format(encoding=self.encoding)
            except (KeyError, IndexError, ValueError) as e:
                raise ValueError(f"Invalid init_command template: {e}") from e
        return self

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        field_names: Optional[Mapping[str, str]] = None,
    ) -> "GatewayConfig":
        """Build a configuration from a caller-supplied mapping.

        Args:
            config: Source mapping holding the connection settings
            field_names: Maps canonical field name to the key used in
                ``config``. Fields not listed are read under their own name.

        Returns:
            Validated GatewayConfig

        Raises:
            ConfigurationError: If the settings are missing or invalid
        """
        field_names = field_names or {}
        unknown = set(field_names) - set(FIELD_NAMES)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration fields in rename table: {sorted(unknown)}"
            )

        values: Dict[str, Any] = {}
        for name in FIELD_NAMES:
            source_key = field_names.get(name, name)
            if source_key in config and config[source_key] is not None:
                values[name] = config[source_key]

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid gateway configuration: {e}") from e

    @classmethod
    def from_environment(cls, prefix: str = "DB_") -> "GatewayConfig":
        """Build a configuration from ``{prefix}DRIVER``, ``{prefix}HOSTNAME``
        and the other upper-cased field names."""
        source = {
            name: os.environ.get(f"{prefix}{name.upper()}") for name in FIELD_NAMES
        }
        return cls.from_mapping(source)

    @property
    def effective_port(self) -> int:
        """Port used for connecting, falling back to the MySQL default."""
        return self.port if self.port is not None else DEFAULT_PORT

    def data_source_locator(self) -> str:
        """Generate the data-source locator for this configuration.

        Returns:
            Locator in the form ``driver:host=...;port=...;dbname=...``
        """
        return (
            f"{self.driver}:host={self.hostname or ''};"
            f"port={self.effective_port};dbname={self.database or ''}"
        )

    def sqlalchemy_url(self) -> URL:
        """Generate the SQLAlchemy URL used to create the engine."""
        return URL.create(
            drivername=self.driver,
            username=self.username,
            password=self.password.get_secret_value() if self.password else None,
            host=self.hostname,
            port=self.effective_port if self.hostname else None,
            database=self.database,
        )

    def session_init_command(self) -> str:
        """Directive that sets the session character encoding."""
        template = self.init_command or DEFAULT_INIT_COMMAND
        return template.format(encoding=self.encoding)

    def as_dict(self) -> Dict[str, Any]:
        """Configuration under canonical field names, password masked."""
        values = self.model_dump()
        if self.password is not None:
            values["password"] = "**********"
        return values
