"""
Filter manager for applying filter configs and saved presets to user records.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..exceptions import FilterError, InvalidFilterConfigError
from ..utils.validators import validate_filter_config
from .evaluator import evaluate_records
from .models import AdvancedFilterConfig
from .preset_library import PresetLibrary

logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """Result of filter application."""

    success: bool
    data: list[Any]
    original_count: int
    final_count: int
    reduction_percent: float
    execution_time_ms: float
    filters_applied: list[str]
    error: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


def parse_filter_config(config_json: str) -> AdvancedFilterConfig:
    """Parse and validate a JSON filter config.

    Raises:
        InvalidFilterConfigError: if the text is not JSON or the tree is malformed
    """
    try:
        payload = json.loads(config_json) if config_json else {}
    except json.JSONDecodeError as e:
        raise InvalidFilterConfigError(f"Filter config must be valid JSON: {e}") from e

    is_valid, errors = validate_filter_config(payload)
    if not is_valid:
        raise InvalidFilterConfigError("Filter config is malformed", errors)

    return AdvancedFilterConfig.from_dict(payload)


class FilterManager:
    """Applies filter configs and presets to record collections."""

    def __init__(self, db_path: Optional[str] = None, preset_library: Optional[PresetLibrary] = None):
        self._db_path = db_path
        self._preset_library = preset_library

    @property
    def preset_library(self) -> PresetLibrary:
        if self._preset_library is None:
            self._preset_library = PresetLibrary(self._db_path)
        return self._preset_library

    def apply_config(
        self, records: list[Any], config: AdvancedFilterConfig, label: str = "custom"
    ) -> FilterResult:
        """Evaluate config against every record."""
        start_time = time.time()
        original_count = len(records)

        matched = evaluate_records(records, config)

        final_count = len(matched)
        reduction_percent = ((original_count - final_count) / original_count * 100) if original_count > 0 else 0.0
        execution_time = (time.time() - start_time) * 1000

        logger.debug(f"Filter '{label}': {final_count}/{original_count} records in {execution_time:.2f}ms")

        return FilterResult(
            success=True,
            data=matched,
            original_count=original_count,
            final_count=final_count,
            reduction_percent=reduction_percent,
            execution_time_ms=execution_time,
            filters_applied=[label] if config.groups else [],
            metadata={
                "logic": config.logic.value,
                "group_count": len(config.groups),
                "condition_count": config.condition_count,
            },
        )

    def apply_preset(self, records: list[Any], preset_ref: str) -> FilterResult:
        """Apply a saved preset, looked up by id or name."""
        try:
            config = self.preset_library.load_config(preset_ref)
        except FilterError as e:
            return self._failed(records, str(e))

        result = self.apply_config(records, config, label=preset_ref)
        result.metadata["preset"] = preset_ref
        return result

    def apply_custom_filter(self, records: list[Any], config_json: str) -> FilterResult:
        """Apply a filter config given as JSON text."""
        try:
            config = parse_filter_config(config_json)
        except InvalidFilterConfigError as e:
            result = self._failed(records, str(e))
            result.metadata["errors"] = e.errors
            return result

        return self.apply_config(records, config)

    def apply_enhanced_filtering(
        self,
        records: list[Any],
        preset_id: str = "",
        filter_config: str = "",
        limit: int = 0,
    ) -> dict[str, Any]:
        """
        Apply a preset or a JSON config and format the outcome as a response payload.
        With neither given, every record passes through.
        """
        if preset_id:
            result = self.apply_preset(records, preset_id)
        elif filter_config:
            result = self.apply_custom_filter(records, filter_config)
        else:
            result = self.apply_config(records, AdvancedFilterConfig())

        data = result.data[:limit] if limit and limit > 0 else result.data

        response = {
            "success": result.success,
            "data": data,
            "metadata": {
                "original_count": result.original_count,
                "final_count": result.final_count,
                "returned_count": len(data),
                "reduction_percent": round(result.reduction_percent, 1),
                "execution_time_ms": round(result.execution_time_ms, 2),
                "filters_applied": result.filters_applied,
                "timestamp": datetime.now().isoformat(),
            },
        }
        response["metadata"].update(result.metadata)

        if not result.success:
            response["error"] = result.error

        return response

    def _failed(self, records: list[Any], error: str) -> FilterResult:
        return FilterResult(
            success=False,
            data=list(records),
            original_count=len(records),
            final_count=len(records),
            reduction_percent=0.0,
            execution_time_ms=0.0,
            filters_applied=[],
            error=error,
        )
