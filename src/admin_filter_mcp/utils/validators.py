"""Input validation utilities for filter payloads and presets."""

from typing import Any

from ..constants import PRESET_CONFIG


def validate_identifier(value: Any) -> bool:
    """Validate a group or condition id.

    Args:
        value: The id to validate

    Returns:
        True if the id is a non-blank string
    """
    return isinstance(value, str) and len(value.strip()) > 0


def validate_logic(value: Any) -> bool:
    """Validate a logic combinator.

    Args:
        value: The logic value to validate

    Returns:
        True if value is exactly AND or OR
    """
    return value in ("AND", "OR")


def validate_preset_name(name: Any) -> bool:
    """Validate a preset name.

    Args:
        name: The preset name to validate

    Returns:
        True if name is non-blank and within the length limit
    """
    if not isinstance(name, str) or not name.strip():
        return False
    return len(name.strip()) <= PRESET_CONFIG["MAX_NAME_LENGTH"]


def _condition_errors(condition: Any, prefix: str, seen_ids: set[str]) -> list[str]:
    """Check one condition payload, recording its id in seen_ids."""
    if not isinstance(condition, dict):
        return [f"{prefix}: must be an object"]

    errors = []
    condition_id = condition.get("id")
    if not validate_identifier(condition_id):
        errors.append(f"{prefix}: Missing required field 'id'")
    elif condition_id in seen_ids:
        errors.append(f"{prefix}: Duplicate condition id '{condition_id}'")
    else:
        seen_ids.add(condition_id)

    field_name = condition.get("field")
    if field_name is not None and not isinstance(field_name, str):
        errors.append(f"{prefix}: 'field' must be a string")

    return errors


def validate_filter_config(payload: Any) -> tuple[bool, list[str]]:
    """Validate the shape of a filter config payload.

    Operators and values are not checked here: the evaluator treats unknown
    operators and malformed values as unconfigured.

    Args:
        payload: Parsed JSON filter config

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if not isinstance(payload, dict):
        return False, ["Filter config must be an object"]

    if "logic" in payload and not validate_logic(payload["logic"]):
        errors.append(f"Invalid config logic: {payload['logic']!r}")

    groups = payload.get("groups", [])
    if not isinstance(groups, list):
        return False, errors + ["'groups' must be a list"]

    group_ids = set()
    for g_idx, group in enumerate(groups):
        if not isinstance(group, dict):
            errors.append(f"Group {g_idx}: must be an object")
            continue

        group_id = group.get("id")
        if not validate_identifier(group_id):
            errors.append(f"Group {g_idx}: Missing required field 'id'")
        elif group_id in group_ids:
            errors.append(f"Group {g_idx}: Duplicate group id '{group_id}'")
        else:
            group_ids.add(group_id)

        if "logic" in group and not validate_logic(group["logic"]):
            errors.append(f"Group {g_idx}: Invalid logic {group['logic']!r}")

        conditions = group.get("conditions", [])
        if not isinstance(conditions, list):
            errors.append(f"Group {g_idx}: 'conditions' must be a list")
            continue

        condition_ids: set[str] = set()
        for c_idx, condition in enumerate(conditions):
            errors.extend(_condition_errors(condition, f"Group {g_idx}, condition {c_idx}", condition_ids))

    return len(errors) == 0, errors


def _id_change_errors(update: dict[str, Any], sibling_ids: set[str], kind: str) -> list[str]:
    if "id" not in update:
        return []
    new_id = update["id"]
    if not validate_identifier(new_id):
        return [f"Invalid {kind} id {new_id!r}"]
    if new_id in sibling_ids:
        return [f"Duplicate {kind} id '{new_id}'"]
    return []


def validate_group_update(update: Any, sibling_ids: set[str]) -> tuple[bool, list[str]]:
    """Validate a partial update for one filter group.

    Args:
        update: Parsed JSON object of group attributes to change
        sibling_ids: Ids of the other groups in the same config

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if not isinstance(update, dict):
        return False, ["Group update must be an object"]

    errors = _id_change_errors(update, sibling_ids, "group")

    if "logic" in update and not validate_logic(update["logic"]):
        errors.append(f"Invalid logic {update['logic']!r}")

    if "conditions" in update:
        conditions = update["conditions"]
        if not isinstance(conditions, list):
            errors.append("'conditions' must be a list")
        else:
            condition_ids: set[str] = set()
            for c_idx, condition in enumerate(conditions):
                errors.extend(_condition_errors(condition, f"Condition {c_idx}", condition_ids))

    return len(errors) == 0, errors


def validate_condition_update(update: Any, sibling_ids: set[str]) -> tuple[bool, list[str]]:
    """Validate a partial update for one condition.

    Args:
        update: Parsed JSON object of condition attributes to change
        sibling_ids: Ids of the other conditions in the same group

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if not isinstance(update, dict):
        return False, ["Condition update must be an object"]

    errors = _id_change_errors(update, sibling_ids, "condition")

    field_name = update.get("field")
    if field_name is not None and not isinstance(field_name, str):
        errors.append("'field' must be a string")

    return len(errors) == 0, errors
