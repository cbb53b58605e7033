"""Connectivity check Lambda function.

Each invocation reuses the gateway shared by the execution environment,
which is configured from DB_* environment variables on first use.
"""

import json
from typing import Any, Dict

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from db_gateway.errors import ConfigurationError, GatewayError
from db_gateway.models import GatewayConfig
from db_gateway.registry import get_configuration, get_instance, set_configuration

logger = Logger()

HEALTH_CHECK_SQL = "SELECT 1"


def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """Check that the database answers a trivial query.

    Args:
        event: Lambda event data
        context: Lambda context

    Returns:
        API Gateway response
    """
    logger.info(
        "Processing connectivity check",
        extra={"request_id": context.aws_request_id, "source": event.get("source")},
    )

    try:
        if get_configuration() is None:
            set_configuration(GatewayConfig.from_environment())

        gateway = get_instance()
        value = gateway.execute_query(HEALTH_CHECK_SQL).scalar()

    except ConfigurationError as e:
        logger.error(
            "Gateway configuration error",
            extra={"error": str(e), "request_id": context.aws_request_id},
        )
        return error_response(500, "Database not configured", "CONFIGURATION_ERROR")

    except GatewayError as e:
        logger.error(
            "Database error",
            extra={
                "error": str(e),
                "error_type": type(e).__name__,
                "request_id": context.aws_request_id,
            },
        )
        return error_response(500, "Database error", "DATABASE_ERROR")

    logger.info(
        "Connectivity check succeeded", extra={"request_id": context.aws_request_id}
    )

    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(
            {
                "status": "ok",
                "result": value,
                "locator": gateway.config.data_source_locator(),
                "request_id": context.aws_request_id,
            }
        ),
    }


def error_response(status_code: int, message: str, error_code: str) -> Dict[str, Any]:
    """Create standardized error response.

    Args:
        status_code: HTTP status code
        message: Error message
        error_code: Application-specific error code

    Returns:
        Error response
    """
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps({"error": message, "error_code": error_code}),
    }
