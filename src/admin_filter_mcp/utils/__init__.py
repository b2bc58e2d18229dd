"""Utility modules for filter tools."""

from .decorators import error_response, handle_tool_errors
from .validators import (
    validate_condition_update,
    validate_filter_config,
    validate_group_update,
    validate_identifier,
    validate_logic,
    validate_preset_name,
)

__all__ = [
    "error_response",
    "handle_tool_errors",
    "validate_condition_update",
    "validate_filter_config",
    "validate_group_update",
    "validate_identifier",
    "validate_logic",
    "validate_preset_name",
]
