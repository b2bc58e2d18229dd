"""Constants and configuration for the admin user filter engine."""

import os

# Preset database location, overridable through the environment
DEFAULT_PRESET_DB_PATH = os.path.join(os.path.expanduser("~"), ".admin_filter_mcp", "presets.db")
PRESET_DB_ENV_VAR = "FILTER_PRESET_DB_PATH"

PRESET_CONFIG = {
    "MAX_NAME_LENGTH": 100,
    "MAX_TAGS": 20,
    "EXPORT_VERSION": "1.0.0",
}

# Operator metadata for builder UIs; "arity" is the shape of the condition value
OPERATORS = {
    "eq": {"label": "equals", "arity": "single"},
    "neq": {"label": "does not equal", "arity": "single"},
    "contains": {"label": "contains", "arity": "single"},
    "startsWith": {"label": "starts with", "arity": "single"},
    "endsWith": {"label": "ends with", "arity": "single"},
    "in": {"label": "is one of", "arity": "list"},
    "notIn": {"label": "is not one of", "arity": "list"},
    "gt": {"label": "greater than", "arity": "single"},
    "gte": {"label": "greater than or equal", "arity": "single"},
    "lt": {"label": "less than", "arity": "single"},
    "lte": {"label": "less than or equal", "arity": "single"},
    "between": {"label": "between", "arity": "range"},
    "isEmpty": {"label": "is empty", "arity": "none"},
    "isNotEmpty": {"label": "is not empty", "arity": "none"},
    "isNull": {"label": "is null", "arity": "none"},
    "isNotNull": {"label": "is not null", "arity": "none"},
}

# Fields exposed by the user directory
USER_FIELDS = {
    "id": "string",
    "name": "string",
    "email": "string",
    "role": "enum",
    "status": "enum",
    "department": "string",
    "age": "number",
    "loginCount": "number",
    "lastLogin": "date",
    "createdAt": "date",
    "tags": "array",
}

USER_ROLES = ["ADMIN", "STAFF", "CLIENT", "VIEWER"]
USER_STATUSES = ["ACTIVE", "INACTIVE", "SUSPENDED"]

SAMPLE_USERS_FILE = "sample_users.json"
DEFAULT_PRESETS_FILE = "default_presets.json"
