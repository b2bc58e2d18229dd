#!/usr/bin/env python3
"""MCP Server for the admin user directory's advanced filter builder using FastMCP.

Each auth token owns one filter session: a record collection, an editable
AND/OR filter tree, and the filtered users derived from both. Named filter
presets are shared across sessions and stored in sqlite.
"""

import json
import logging
import os
import secrets
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .constants import DEFAULT_PRESETS_FILE, OPERATORS, SAMPLE_USERS_FILE, USER_FIELDS, USER_ROLES, USER_STATUSES
from .exceptions import InvalidFilterConfigError, PresetNotFoundError
from .filtering import FilterManager, FilterStateStore, PresetLibrary, parse_filter_config
from .utils.decorators import handle_tool_errors
from .utils.validators import validate_condition_update, validate_group_update

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

mcp: FastMCP = FastMCP(
    "admin-filter-mcp",
    instructions="Build AND/OR filters over the admin user directory, inspect the matching users, and manage saved filter presets.",
)

SEED_DATA_DIR = Path(__file__).parent / "filtering" / "seed_data"

AUTH_ERROR = "Error: Invalid or missing auth token. Please call get_auth_token() first to obtain a valid token."

# Auth token storage - stores valid authentication tokens
auth_tokens: set[str] = set()

# One filter session per auth token
filter_sessions: dict[str, FilterStateStore] = {}

_filter_manager: Optional[FilterManager] = None


def get_filter_manager() -> FilterManager:
    """Shared filter manager, created on first use so the preset database opens lazily."""
    global _filter_manager
    if _filter_manager is None:
        _filter_manager = FilterManager()
    return _filter_manager


def get_preset_library() -> PresetLibrary:
    return get_filter_manager().preset_library


def initialize_preset_database() -> None:
    """Seed an empty preset database with the bundled default presets."""
    library = get_preset_library()

    if library.search_presets():
        logger.info("Preset database already populated, skipping seed import")
        return

    result = library.import_presets_from_json(str(SEED_DATA_DIR / DEFAULT_PRESETS_FILE))
    if result["success"]:
        logger.info(f"Imported {result['imported_count']} default presets")
        for error in result["errors"]:
            logger.warning(error)
    else:
        logger.warning(f"Failed to import default presets: {result.get('error', 'Unknown error')}")


def load_sample_users() -> list[dict[str, Any]]:
    with open(SEED_DATA_DIR / SAMPLE_USERS_FILE, encoding="utf-8") as f:
        return json.load(f)


def validate_auth_token(token: str) -> bool:
    """Validate if the provided auth token is valid."""
    return token in auth_tokens


def get_session(token: str) -> FilterStateStore:
    """Filter session for a valid token, created on first use."""
    if token not in filter_sessions:
        filter_sessions[token] = FilterStateStore()
    return filter_sessions[token]


def _success(data: Any, **metadata: Any) -> str:
    return json.dumps(
        {
            "success": True,
            "data": data,
            "metadata": {"timestamp": datetime.now().isoformat() + "Z", **metadata},
        },
        indent=2,
        default=str,
    )


def _parse_object(text: str, param_name: str) -> dict[str, Any]:
    try:
        payload = json.loads(text) if text else {}
    except json.JSONDecodeError as e:
        raise ValueError(f"{param_name} must be valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ValueError(f"{param_name} must be a JSON object")
    return payload


@mcp.tool()
def get_auth_token() -> str:
    """Generate and return a new authentication token (session ID) that must be used for all other function calls.

    This is the FIRST function you must call before using any other functions in this MCP server.
    Each token owns its own filter session (records, filter tree, filtered users).

    Returns:
        str: A secure, randomly generated authentication token to be used for all other function calls
    """
    token = secrets.token_hex(32)
    auth_tokens.add(token)
    filter_sessions[token] = FilterStateStore()
    return f"Authentication successful. Your auth token is: {token}"


@mcp.tool()
@handle_tool_errors
def get_filter_operators(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
) -> str:
    """List the operators and user fields available to filter conditions.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().

    Operator arity tells you the value shape: 'single' takes one value, 'list' takes a JSON array,
    'range' takes [low, high], 'none' ignores the value.
    Enum fields list their known values under field_values.
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    return _success(
        {
            "operators": OPERATORS,
            "fields": USER_FIELDS,
            "field_values": {"role": USER_ROLES, "status": USER_STATUSES},
            "logic": ["AND", "OR"],
        }
    )


@mcp.tool()
@handle_tool_errors
def load_user_records(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    records_json: Annotated[
        str,
        "JSON array of user objects to filter. Leave empty to load the bundled sample user directory.",
    ] = "",
) -> str:
    """Replace the user records of this session.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().

    The current filter tree is kept and re-applied to the new records.
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    if records_json:
        try:
            records = json.loads(records_json)
        except json.JSONDecodeError as e:
            raise ValueError(f"records_json must be valid JSON: {e}") from e
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise ValueError("records_json must be a JSON array of objects")
        source = "request"
    else:
        records = load_sample_users()
        source = "sample"

    session = get_session(auth_token)
    session.set_records(records)

    return _success(
        {"record_count": len(records), "filtered_count": len(session.get_filtered_records())},
        source=source,
    )


@mcp.tool()
@handle_tool_errors
def get_filters(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
) -> str:
    """Return the current filter tree of this session.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    config = get_session(auth_token).get_filters()
    return _success(config.to_dict(), group_count=len(config.groups), condition_count=config.condition_count)


@mcp.tool()
@handle_tool_errors
def set_filters(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    config_json: Annotated[
        str,
        'Whole filter tree as JSON: {"logic": "AND"|"OR", "groups": [{"id", "logic", "conditions": [{"id", "field", "operator", "value"}]}]}. Leave empty to clear all filters.',
    ] = "",
) -> str:
    """Replace the whole filter tree of this session.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().

    Use this to add or remove groups and conditions; update_filter_group and update_filter_condition
    only edit existing nodes. Conditions without a field, and unknown operators, match every user.
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    config = parse_filter_config(config_json)
    session = get_session(auth_token)
    session.set_filters(config)

    return _success(
        config.to_dict(),
        filtered_count=len(session.get_filtered_records()),
        record_count=len(session.get_records()),
    )


@mcp.tool()
@handle_tool_errors
def update_filter_group(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    group_id: Annotated[str, "Id of the group to update"],
    update_json: Annotated[str, 'JSON object with the attributes to change, e.g. {"logic": "OR"}'],
) -> str:
    """Merge attribute changes into one filter group.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().

    An unknown group_id leaves the filter tree unchanged. Logic must be AND or OR, conditions must be
    objects with unique ids, and a new id must not collide with another group.
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    update = _parse_object(update_json, "update_json")
    session = get_session(auth_token)
    before = session.get_filters()

    sibling_ids = {group.id for group in before.groups if group.id != group_id}
    is_valid, errors = validate_group_update(update, sibling_ids)
    if not is_valid:
        raise InvalidFilterConfigError("Group update is malformed", errors)

    session.update_group(group_id, update)
    after = session.get_filters()

    return _success(
        after.to_dict(),
        changed=after is not before,
        filtered_count=len(session.get_filtered_records()),
    )


@mcp.tool()
@handle_tool_errors
def update_filter_condition(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    group_id: Annotated[str, "Id of the group holding the condition"],
    condition_id: Annotated[str, "Id of the condition to update"],
    update_json: Annotated[
        str, 'JSON object with the attributes to change, e.g. {"operator": "in", "value": ["ADMIN", "STAFF"]}'
    ],
) -> str:
    """Merge attribute changes into one condition of one group.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().

    Unknown group or condition ids leave the filter tree unchanged. field must be a string, and a new
    id must not collide with another condition in the group.
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    update = _parse_object(update_json, "update_json")
    session = get_session(auth_token)
    before = session.get_filters()

    sibling_ids = {
        condition.id
        for group in before.groups
        if group.id == group_id
        for condition in group.conditions
        if condition.id != condition_id
    }
    is_valid, errors = validate_condition_update(update, sibling_ids)
    if not is_valid:
        raise InvalidFilterConfigError("Condition update is malformed", errors)

    session.update_condition(group_id, condition_id, update)
    after = session.get_filters()

    return _success(
        after.to_dict(),
        changed=after is not before,
        filtered_count=len(session.get_filtered_records()),
    )


@mcp.tool()
@handle_tool_errors
def get_filtered_users(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    limit: Annotated[int, "Maximum number of users to return. 0 returns all matches."] = 0,
) -> str:
    """Return the users matching the session's current filter tree, in their original order.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    if limit < 0:
        raise ValueError("limit must be zero or a positive integer")

    session = get_session(auth_token)
    filtered = session.get_filtered_records()
    data = filtered[:limit] if limit else filtered

    return _success(
        data,
        record_count=len(session.get_records()),
        filtered_count=len(filtered),
        returned_count=len(data),
    )


@mcp.tool()
@handle_tool_errors
def save_filter_preset(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    name: Annotated[str, "Preset name. Saving under an existing name replaces that preset."],
    description: Annotated[str, "Optional description of what the preset selects"] = "",
    tags: Annotated[str, "Comma-separated tags, e.g. 'roles,review'"] = "",
) -> str:
    """Save the session's current filter tree as a named preset.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().

    The save is attempted once; a failure is reported in the response and not retried.
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    library = get_preset_library()
    tag_list = [t.strip() for t in tags.split(",")] if tags else []

    preset = get_session(auth_token).save_preset(
        name,
        lambda config, preset_name: library.save_preset(
            config, preset_name, description=description, tags=tag_list
        ),
    )

    return _success(preset.to_dict())


@mcp.tool()
@handle_tool_errors
def load_filter_preset(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    preset_id: Annotated[str, "Id or name of the preset to load"],
) -> str:
    """Replace the session's filter tree with a saved preset.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    config = get_preset_library().load_config(preset_id)
    session = get_session(auth_token)
    session.set_filters(config)

    return _success(config.to_dict(), preset=preset_id, filtered_count=len(session.get_filtered_records()))


@mcp.tool()
@handle_tool_errors
def apply_filter_preset(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    preset_id: Annotated[str, "Id or name of the preset to apply"],
    limit: Annotated[int, "Maximum number of users to return. 0 returns all matches."] = 0,
) -> str:
    """Preview a saved preset against the session's users without changing the session's filter tree.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    records = get_session(auth_token).get_records()
    result = get_filter_manager().apply_enhanced_filtering(records, preset_id=preset_id, limit=limit)

    return json.dumps(result, indent=2, default=str)


@mcp.tool()
@handle_tool_errors
def list_filter_presets(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    search_term: Annotated[str, "Text to match against preset names and descriptions. Leave empty for all."] = "",
    tag: Annotated[str, "Only list presets carrying this tag. Leave empty for all."] = "",
) -> str:
    """List saved filter presets.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    presets = get_preset_library().search_presets(search_term=search_term, tag=tag)
    return _success(
        [preset.to_dict() for preset in presets],
        total_presets=len(presets),
        search_criteria={"search_term": search_term, "tag": tag},
    )


@mcp.tool()
@handle_tool_errors
def delete_filter_preset(
    auth_token: Annotated[
        str,
        "Authentication token obtained from get_auth_token(). Required for this function to work.",
    ],
    preset_id: Annotated[str, "Id of the preset to delete"],
) -> str:
    """Delete a saved filter preset.

    REQUIRES AUTHENTICATION: You must provide a valid auth_token obtained from get_auth_token().
    """
    if not validate_auth_token(auth_token):
        return AUTH_ERROR

    if not get_preset_library().delete_preset(preset_id):
        raise PresetNotFoundError(preset_id)

    return _success({"deleted": preset_id})


def main() -> None:
    """Entry point for the MCP server."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    initialize_preset_database()
    mcp.run()


if __name__ == "__main__":
    main()
