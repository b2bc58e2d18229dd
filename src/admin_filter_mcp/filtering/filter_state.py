"""
Filter state store for the advanced user filter.

The store owns the current filter tree and the record collection and keeps
the filtered result in step with both. Edits never mutate a node: the matched
group or condition is replaced by a merged copy and everything else is shared
with the previous tree.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any, Callable, Optional

from .evaluator import evaluate_records
from .models import AdvancedFilterConfig, FilterCondition, FilterLogic, OperatorKind

logger = logging.getLogger(__name__)

Listener = Callable[[list[Any]], None]
PresetSaver = Callable[[AdvancedFilterConfig, str], Any]


def _group_changes(update: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for key, value in update.items():
        if key == "id":
            changes["id"] = str(value)
        elif key == "logic":
            changes["logic"] = FilterLogic.parse(value, FilterLogic.OR)
        elif key == "conditions":
            conditions = []
            for c in value or []:
                if isinstance(c, FilterCondition):
                    conditions.append(c)
                elif isinstance(c, Mapping):
                    conditions.append(FilterCondition.from_dict(c))
                elif c is not None:
                    logger.debug(f"Ignoring condition entry of type {type(c).__name__}")
            changes["conditions"] = tuple(conditions)
        else:
            logger.debug(f"Ignoring unknown group attribute '{key}'")
    return changes


def _condition_changes(update: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for key, value in update.items():
        if key == "id":
            changes["id"] = str(value)
        elif key == "field":
            changes["field"] = value or ""
        elif key == "operator":
            changes["operator"] = OperatorKind.parse(value)
        elif key == "value":
            changes["value"] = value
        else:
            logger.debug(f"Ignoring unknown condition attribute '{key}'")
    return changes


class FilterStateStore:
    """Holds the filter tree and derives the filtered record list from it."""

    def __init__(
        self,
        records: Iterable[Any] = (),
        initial_filters: Optional[AdvancedFilterConfig] = None,
    ):
        self._records: list[Any] = list(records)
        self._filters = initial_filters or AdvancedFilterConfig()
        self._listeners: list[Listener] = []
        self._filtered: list[Any] = []
        self._recompute()

    def get_filters(self) -> AdvancedFilterConfig:
        return self._filters

    def get_records(self) -> list[Any]:
        return list(self._records)

    def get_filtered_records(self) -> list[Any]:
        return list(self._filtered)

    def set_records(self, records: Iterable[Any]) -> None:
        """Replace the record collection."""
        self._records = list(records)
        self._recompute()

    def set_filters(self, config: AdvancedFilterConfig) -> None:
        """Replace the whole filter tree."""
        self._filters = config
        self._recompute()

    def update_group(self, group_id: str, update: Mapping[str, Any]) -> None:
        """Merge update into the group with the given id."""
        changes = _group_changes(update)
        groups = []
        matched = False
        for group in self._filters.groups:
            if group.id == group_id:
                group = replace(group, **changes)
                matched = True
            groups.append(group)

        if not matched:
            logger.debug(f"update_group: no group '{group_id}'")
            return

        self._filters = replace(self._filters, groups=tuple(groups))
        self._recompute()

    def update_condition(self, group_id: str, condition_id: str, update: Mapping[str, Any]) -> None:
        """Merge update into one condition of one group."""
        changes = _condition_changes(update)
        groups = []
        matched = False
        for group in self._filters.groups:
            if group.id == group_id:
                conditions = []
                for condition in group.conditions:
                    if condition.id == condition_id:
                        condition = replace(condition, **changes)
                        matched = True
                    conditions.append(condition)
                if matched:
                    group = replace(group, conditions=tuple(conditions))
            groups.append(group)

        if not matched:
            logger.debug(f"update_condition: no condition '{condition_id}' in group '{group_id}'")
            return

        self._filters = replace(self._filters, groups=tuple(groups))
        self._recompute()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with the filtered records after every recomputation.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def save_preset(self, name: str, saver: PresetSaver) -> Any:
        """Hand the current filter tree to a preset saver.

        The saver is called exactly once; whatever it raises reaches the caller.
        """
        try:
            result = saver(self._filters, name)
        except Exception:
            logger.exception(f"Saving filter preset '{name}' failed")
            raise
        logger.info(f"Saved filter preset '{name}'")
        return result

    def _recompute(self) -> None:
        self._filtered = evaluate_records(self._records, self._filters)
        for listener in list(self._listeners):
            listener(list(self._filtered))
