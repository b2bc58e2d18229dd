"""
Admin User Filtering Module

This module evaluates advanced AND/OR filter trees against user records and
keeps named filter presets in a sqlite database.

Key Components:
- evaluate_condition / evaluate_group / evaluate_query: pure evaluators
- FilterStateStore: editable filter tree with a derived filtered record list
- PresetDatabase / PresetLibrary: preset persistence and migrations
- FilterManager: applies configs and presets and reports counts

Usage:
    from admin_filter_mcp.filtering import AdvancedFilterConfig, FilterStateStore

    store = FilterStateStore(users, AdvancedFilterConfig.from_dict(payload))
    visible = store.get_filtered_records()
"""

from .coercion import MISSING, resolve_field
from .database import MigrationManager, PresetDatabase
from .evaluator import evaluate_condition, evaluate_group, evaluate_query, evaluate_records
from .filter_manager import FilterManager, FilterResult, parse_filter_config
from .filter_state import FilterStateStore
from .models import AdvancedFilterConfig, FilterCondition, FilterGroup, FilterLogic, OperatorKind
from .preset_library import FilterPreset, PresetLibrary

__all__ = [
    "MISSING",
    "AdvancedFilterConfig",
    "FilterCondition",
    "FilterGroup",
    "FilterLogic",
    "FilterManager",
    "FilterPreset",
    "FilterResult",
    "FilterStateStore",
    "MigrationManager",
    "OperatorKind",
    "PresetDatabase",
    "PresetLibrary",
    "evaluate_condition",
    "evaluate_group",
    "evaluate_query",
    "evaluate_records",
    "parse_filter_config",
    "resolve_field",
]
