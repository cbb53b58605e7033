"""Tests for the connectivity check lambda function."""

import json
from unittest.mock import MagicMock, patch

import pytest

from db_gateway.errors import DatabaseConnectionError, QueryError
from db_gateway.lambda_function import lambda_handler
from db_gateway.registry import get_configuration

ENV_FIELDS = (
    "DRIVER",
    "HOSTNAME",
    "PORT",
    "DATABASE",
    "USERNAME",
    "PASSWORD",
    "ENCODING",
    "INIT_COMMAND",
)


@pytest.fixture
def lambda_context():
    """Mock Lambda context."""
    context = MagicMock()
    context.aws_request_id = "test-request-id"
    context.function_name = "test-function"
    context.memory_limit_in_mb = 128
    return context


@pytest.fixture
def database_environment(monkeypatch):
    """DB_* variables for a MySQL database."""
    for name in ENV_FIELDS:
        monkeypatch.delenv(f"DB_{name}", raising=False)
    monkeypatch.setenv("DB_DRIVER", "mysql+pymysql")
    monkeypatch.setenv("DB_HOSTNAME", "db.example.org")
    monkeypatch.setenv("DB_DATABASE", "reporting")
    monkeypatch.setenv("DB_USERNAME", "reporter")
    monkeypatch.setenv("DB_PASSWORD", "s3cret")
    monkeypatch.setenv("DB_ENCODING", "utf8mb4")


def test_lambda_handler_success(database_environment, lambda_context):
    """Test a successful check reports the query result."""
    with patch("db_gateway.lambda_function.get_instance") as mock_get_instance:
        gateway = MagicMock()
        gateway.execute_query.return_value.scalar.return_value = 1
        gateway.config.data_source_locator.return_value = "locator"
        mock_get_instance.return_value = gateway

        response = lambda_handler({"source": "aws.events"}, lambda_context)

    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["status"] == "ok"
    assert body["result"] == 1
    assert body["locator"] == "locator"
    assert body["request_id"] == "test-request-id"
    gateway.execute_query.assert_called_once_with("SELECT 1")


def test_lambda_handler_configures_from_environment(
    database_environment, lambda_context
):
    """Test the first invocation stores configuration read from DB_*."""
    with patch("db_gateway.lambda_function.get_instance") as mock_get_instance:
        gateway = MagicMock()
        gateway.execute_query.return_value.scalar.return_value = 1
        gateway.config.data_source_locator.return_value = "locator"
        mock_get_instance.return_value = gateway

        lambda_handler({}, lambda_context)

    config = get_configuration()
    assert config is not None
    assert config.data_source_locator() == (
        "mysql+pymysql:host=db.example.org;port=3306;dbname=reporting"
    )


def test_lambda_handler_missing_configuration(monkeypatch, lambda_context):
    """Test an unconfigured environment returns a configuration error."""
    for name in ENV_FIELDS:
        monkeypatch.delenv(f"DB_{name}", raising=False)

    response = lambda_handler({}, lambda_context)

    assert response["statusCode"] == 500
    body = json.loads(response["body"])
    assert body["error_code"] == "CONFIGURATION_ERROR"


@pytest.mark.parametrize(
    "error",
    [
        DatabaseConnectionError("Cannot connect", locator="mysql:host=x"),
        QueryError("Statement failed", sql="SELECT 1"),
    ],
)
def test_lambda_handler_database_error(database_environment, lambda_context, error):
    """Test gateway failures return a database error response."""
    with patch("db_gateway.lambda_function.get_instance") as mock_get_instance:
        mock_get_instance.return_value.execute_query.side_effect = error

        response = lambda_handler({}, lambda_context)

    assert response["statusCode"] == 500
    body = json.loads(response["body"])
    assert body["error"] == "Database error"
    assert body["error_code"] == "DATABASE_ERROR"
