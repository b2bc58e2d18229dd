"""Common exceptions for the admin-filter-mcp package."""

from typing import Optional


class FilterError(Exception):
    """Base class for filter and preset errors surfaced to callers."""

    error_code = "filter_error"

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InvalidFilterConfigError(FilterError):
    """Raised when a filter payload cannot be parsed into a filter tree."""

    error_code = "invalid_input"

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        super().__init__(message, details={"errors": errors or []})
        self.errors = errors or []


class PresetNotFoundError(FilterError):
    """Raised when a preset id or name does not exist."""

    error_code = "not_found"

    def __init__(self, preset_ref: str) -> None:
        super().__init__(f"Filter preset '{preset_ref}' not found", details={"preset": preset_ref})
        self.preset_ref = preset_ref


class PresetSaveError(FilterError):
    """Raised when a preset could not be written to the preset database."""

    error_code = "preset_save_failed"
