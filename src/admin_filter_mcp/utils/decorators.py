"""Decorators for consistent MCP tool error handling."""

import functools
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable

from ..exceptions import FilterError

logger = logging.getLogger(__name__)


def error_response(error_code: str, message: str, request_id: str, **extra: Any) -> str:
    """Format a failed tool call as the JSON error envelope."""
    response = {
        "success": False,
        "error": error_code,
        "message": message,
        **extra,
        "metadata": {
            "timestamp": datetime.now().isoformat() + "Z",
            "request_id": request_id,
        },
    }
    return json.dumps(response, indent=2)


def handle_tool_errors(func: Callable[..., str]) -> Callable[..., str]:
    """Decorator to turn tool exceptions into JSON error responses.

    Args:
        func: The tool function to decorate

    Returns:
        Decorated function that logs timing and never raises
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> str:
        request_id = str(uuid.uuid4())
        start_time = datetime.now()

        try:
            logger.info(f"Request {request_id}: Starting {func.__name__}")
            result = func(*args, **kwargs)

            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.info(f"Request {request_id}: Completed {func.__name__} in {duration_ms}ms")

            return result

        except FilterError as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.warning(f"Request {request_id}: {e.error_code} in {duration_ms}ms: {e}")

            return error_response(e.error_code, str(e), request_id, details=e.details)

        except ValueError as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.exception(f"Request {request_id}: Validation error in {duration_ms}ms: {e}")

            return error_response("invalid_input", str(e), request_id)

        except Exception as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.exception(f"Request {request_id}: Unexpected error in {duration_ms}ms: {e}")

            return error_response("unexpected_error", f"An unexpected error occurred: {e!s}", request_id)

    return wrapper
