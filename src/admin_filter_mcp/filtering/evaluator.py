"""
Evaluates advanced filter trees against user records.

    record + AdvancedFilterConfig
           │
           ▼
    ┌──────────────────────────────┐
    │ evaluate_query               │ ◄─── drop groups without an id,
    │   all()/any() per config     │      no groups left → True
    └──────────────────────────────┘
           │
           ▼
    ┌──────────────────────────────┐
    │ evaluate_group               │ ◄─── drop conditions without a field,
    │   all()/any() per group      │      no conditions left → True
    └──────────────────────────────┘
           │
           ▼
    ┌──────────────────────────────┐
    │ evaluate_condition           │ ◄─── empty field → True
    │   OPERATOR_HANDLERS[op]      │      unknown operator → True
    └──────────────────────────────┘

Incomplete rules fail open: a half-edited condition in the builder must not
hide every user while the admin is still typing.
"""

import logging
import math
from collections.abc import Iterable
from typing import Any, Callable, Optional

from .coercion import is_null, is_number, is_sequence, resolve_field, strict_equals, to_number, to_text
from .models import AdvancedFilterConfig, FilterCondition, FilterGroup, FilterLogic, OperatorKind

logger = logging.getLogger(__name__)


def _between(field_value: Any, bounds: Any) -> bool:
    if not is_sequence(bounds) or len(bounds) < 2:
        return True
    number = to_number(field_value)
    # Bounds are used as given; lo > hi matches nothing.
    return to_number(bounds[0]) <= number <= to_number(bounds[1])


def _is_blank(field_value: Any) -> bool:
    # Zero, NaN and False read as empty alongside blank text.
    if field_value is False or (is_number(field_value) and (field_value == 0 or math.isnan(field_value))):
        return True
    return to_text(field_value).strip() == ""


# For each operator: handler(field_value, condition_value) -> bool
OPERATOR_HANDLERS: dict[OperatorKind, Callable[[Any, Any], bool]] = {
    OperatorKind.EQ: lambda fv, cv: strict_equals(fv, cv),
    OperatorKind.NEQ: lambda fv, cv: not strict_equals(fv, cv),
    OperatorKind.CONTAINS: lambda fv, cv: to_text(cv).lower() in to_text(fv).lower(),
    OperatorKind.STARTS_WITH: lambda fv, cv: to_text(fv).lower().startswith(to_text(cv).lower()),
    OperatorKind.ENDS_WITH: lambda fv, cv: to_text(fv).lower().endswith(to_text(cv).lower()),
    OperatorKind.IN: lambda fv, cv: is_sequence(cv) and any(strict_equals(fv, item) for item in cv),
    OperatorKind.NOT_IN: lambda fv, cv: not is_sequence(cv) or not any(strict_equals(fv, item) for item in cv),
    OperatorKind.GT: lambda fv, cv: to_number(fv) > to_number(cv),
    OperatorKind.GTE: lambda fv, cv: to_number(fv) >= to_number(cv),
    OperatorKind.LT: lambda fv, cv: to_number(fv) < to_number(cv),
    OperatorKind.LTE: lambda fv, cv: to_number(fv) <= to_number(cv),
    OperatorKind.BETWEEN: _between,
    OperatorKind.IS_EMPTY: lambda fv, cv: _is_blank(fv),
    OperatorKind.IS_NOT_EMPTY: lambda fv, cv: not _is_blank(fv),
    OperatorKind.IS_NULL: lambda fv, cv: is_null(fv),
    OperatorKind.IS_NOT_NULL: lambda fv, cv: not is_null(fv),
}


def _combine(results: Iterable[bool], logic: FilterLogic) -> bool:
    if logic == FilterLogic.AND:
        return all(results)
    return any(results)


def evaluate_condition(record: Any, condition: FilterCondition) -> bool:
    """Check whether one record satisfies one condition."""
    if not condition.field:
        return True

    field_value = resolve_field(record, condition.field)

    operator = OperatorKind.parse(condition.operator)
    handler = OPERATOR_HANDLERS.get(operator) if isinstance(operator, OperatorKind) else None
    if handler is None:
        # Unknown operator → pass
        return True

    return bool(handler(field_value, condition.value))


def evaluate_group(record: Any, group: FilterGroup) -> bool:
    """Combine a group's configured conditions with the group's logic."""
    active = [c for c in group.conditions or () if c is not None and c.field]
    if not active:
        return True
    return _combine([evaluate_condition(record, c) for c in active], group.logic)


def evaluate_query(record: Any, config: Optional[AdvancedFilterConfig]) -> bool:
    """Combine a config's groups with the config's logic."""
    if config is None:
        return True
    groups = [g for g in config.groups or () if g is not None and g.id]
    if not groups:
        return True
    return _combine([evaluate_group(record, g) for g in groups], config.logic)


def evaluate_records(records: Iterable[Any], config: Optional[AdvancedFilterConfig]) -> list[Any]:
    """Return the records matching config, in their original order."""
    records = list(records)
    if config is None or not config.groups:
        return records

    matched = [record for record in records if evaluate_query(record, config)]
    logger.debug(f"Filter matched {len(matched)} of {len(records)} records")
    return matched
