"""ConnectionGateway component for lazily-opened database access.

This module provides the ConnectionGateway class, which owns one
configuration and at most one open connection, and the Statement class
for prepared SQL executed through the gateway.

Statements are bound to the gateway rather than to a connection handle:
when the gateway replaces its connection after the server closed it, any
previously prepared statement runs on the new connection.
"""

import logging
import threading
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import Connection, Engine, create_engine, text
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from db_gateway.errors import (
    DatabaseConnectionError,
    QueryError,
    is_gone_away,
    serialize_params,
)
from db_gateway.models import GatewayConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 2


def normalize_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Accept ``:name`` and ``name`` keys alike for named placeholders."""
    return {key.lstrip(":"): value for key, value in (params or {}).items()}


class Statement:
    """Prepared SQL text executed through a ConnectionGateway."""

    def __init__(self, gateway: "ConnectionGateway", sql: str):
        self.gateway = gateway
        self.sql = sql
        self.clause = text(sql)

    def execute(self, params: Optional[Mapping[str, Any]] = None) -> CursorResult:
        """Execute this statement on the gateway's current connection."""
        return self.gateway.execute_statement(self, params)

    def __repr__(self) -> str:
        return f"Statement({self.sql!r})"


class ConnectionGateway:
    """Single access point for a database connection.

    The connection is opened on first use and cached. Statements run in
    autocommit mode; transaction management is left to the caller's SQL.
    """

    def __init__(self, config: GatewayConfig, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        """Initialize with gateway configuration.

        Args:
            config: Validated connection settings
            max_attempts: Total attempts execute_query makes when the server
                closed the connection (2 means one retry)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.config = config
        self.max_attempts = max_attempts
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        self._lock = threading.RLock()

    def __enter__(self) -> "ConnectionGateway":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        """True while a connection handle is cached."""
        return self._connection is not None

    def get_connection(self) -> Connection:
        """Return the current connection, opening one if needed.

        Returns:
            Open SQLAlchemy connection owned by this gateway

        Raises:
            DatabaseConnectionError: If the connection cannot be opened
        """
        with self._lock:
            if self._connection is None:
                self._connection = self._open_connection()
            return self._connection

    def prepare(self, sql: str) -> Statement:
        """Prepare a statement for later execution.

        Args:
            sql: SQL text with ``:name`` placeholders

        Returns:
            Statement bound to this gateway

        Raises:
            DatabaseConnectionError: If the connection cannot be opened
        """
        self.get_connection()
        return Statement(self, sql)

    def execute_query(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> CursorResult:
        """Prepare and execute a statement, reconnecting if the server went away.

        Args:
            sql: SQL text with ``:name`` placeholders
            params: Placeholder name to value

        Returns:
            Result of the execution for fetching rows

        Raises:
            DatabaseConnectionError: If a connection cannot be opened
            QueryError: If execution fails for any other reason, or the
                server keeps closing the connection
        """
        bound = normalize_params(params)
        clause = text(sql)
        attempt = 1

        while True:
            connection = self.get_connection()
            try:
                return self._execute(connection, clause, bound)
            except SQLAlchemyError as e:
                if attempt < self.max_attempts and is_gone_away(e):
                    logger.warning(
                        f"Database server has gone away, reconnecting "
                        f"(attempt {attempt} of {self.max_attempts})",
                        extra={
                            "sql": sql,
                            "attempt": attempt,
                            "error_message": str(e),
                        },
                    )
                    self._discard_connection()
                    attempt += 1
                    continue

                raise self._query_failure(sql, bound, e, attempt) from e

    def execute_statement(
        self, statement: Statement, params: Optional[Mapping[str, Any]] = None
    ) -> CursorResult:
        """Execute a prepared statement.

        Parameters are only bound when some are given. Unlike execute_query,
        a gone-away failure is not retried here.

        Args:
            statement: Statement returned by prepare()
            params: Placeholder name to value

        Returns:
            Result of the execution for fetching rows

        Raises:
            DatabaseConnectionError: If a connection cannot be opened
            QueryError: If execution fails
        """
        bound = normalize_params(params)
        connection = self.get_connection()
        try:
            return self._execute(connection, statement.clause, bound)
        except SQLAlchemyError as e:
            raise self._query_failure(statement.sql, bound, e, 1) from e

    def close(self) -> None:
        """Close the connection and release the engine."""
        with self._lock:
            connection, self._connection = self._connection, None
            engine, self._engine = self._engine, None

        if connection is not None:
            connection.close()
            logger.info(
                "Database connection closed",
                extra={"locator": self.config.data_source_locator()},
            )
        if engine is not None:
            engine.dispose()

    def _execute(
        self, connection: Connection, clause: Any, bound: Dict[str, Any]
    ) -> CursorResult:
        if bound:
            return connection.execute(clause, bound)
        return connection.execute(clause)

    def _get_engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(
                self.config.sqlalchemy_url(),
                poolclass=NullPool,  # one live session per gateway
                isolation_level="AUTOCOMMIT",
            )
        return self._engine

    def _open_connection(self) -> Connection:
        locator = self.config.data_source_locator()
        try:
            connection = self._get_engine().connect()
        except (SQLAlchemyError, ImportError) as e:
            raise self._connection_failure(locator, e) from e

        try:
            connection.exec_driver_sql(self.config.session_init_command())
        except SQLAlchemyError as e:
            connection.close()
            raise self._connection_failure(locator, e) from e

        logger.info(
            f"Database connection opened: {locator}", extra={"locator": locator}
        )
        return connection

    def _discard_connection(self) -> None:
        with self._lock:
            connection, self._connection = self._connection, None
        if connection is not None:
            connection.invalidate()

    def _connection_failure(
        self, locator: str, error: Exception
    ) -> DatabaseConnectionError:
        logger.error(
            f"Cannot connect database: {locator}",
            extra={
                "locator": locator,
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
            exc_info=True,
        )
        return DatabaseConnectionError(
            f"Cannot connect to {locator}: {error}", locator=locator
        )

    def _query_failure(
        self, sql: str, bound: Dict[str, Any], error: Exception, attempts: int
    ) -> QueryError:
        logger.error(
            f"SQL error: {sql}",
            extra={
                "sql": sql,
                "params": serialize_params(bound),
                "error_type": type(error).__name__,
                "error_message": str(error),
                "attempts": attempts,
            },
            exc_info=True,
        )
        return QueryError(
            f"Statement failed after {attempts} attempt(s): {error}",
            sql=sql,
            params=bound,
            attempts=attempts,
        )
