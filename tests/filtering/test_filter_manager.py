"""Tests for applying configs and presets through the filter manager."""

import json

import pytest

from admin_filter_mcp.exceptions import InvalidFilterConfigError
from admin_filter_mcp.filtering import AdvancedFilterConfig, FilterManager, parse_filter_config

USERS = [
    {"id": "u1", "role": "ADMIN", "age": 34},
    {"id": "u2", "role": "STAFF", "age": 27},
    {"id": "u3", "role": "CLIENT", "age": 45},
    {"id": "u4", "role": "STAFF", "age": 70},
]

STAFF_FILTER = {
    "logic": "AND",
    "groups": [
        {"id": "g1", "logic": "AND", "conditions": [{"id": "c1", "field": "role", "operator": "eq", "value": "STAFF"}]}
    ],
}


@pytest.fixture
def manager(tmp_path):
    return FilterManager(db_path=str(tmp_path / "presets.db"))


class TestParseFilterConfig:
    """JSON parsing at the tool boundary."""

    def test_parses_valid_config(self):
        config = parse_filter_config(json.dumps(STAFF_FILTER))
        assert config.groups[0].conditions[0].value == "STAFF"

    def test_empty_text_is_empty_config(self):
        assert parse_filter_config("") == AdvancedFilterConfig()

    def test_invalid_json(self):
        with pytest.raises(InvalidFilterConfigError, match="valid JSON"):
            parse_filter_config("{not json")

    def test_malformed_tree(self):
        with pytest.raises(InvalidFilterConfigError) as exc_info:
            parse_filter_config(json.dumps({"logic": "XOR", "groups": []}))
        assert exc_info.value.errors == ["Invalid config logic: 'XOR'"]


class TestFilterManager:
    """Filter application results."""

    def test_apply_config_reports_counts(self, manager):
        result = manager.apply_config(USERS, AdvancedFilterConfig.from_dict(STAFF_FILTER))

        assert result.success is True
        assert [u["id"] for u in result.data] == ["u2", "u4"]
        assert result.original_count == 4
        assert result.final_count == 2
        assert result.reduction_percent == 50.0
        assert result.filters_applied == ["custom"]
        assert result.metadata["condition_count"] == 1

    def test_apply_empty_config_keeps_everything(self, manager):
        result = manager.apply_config(USERS, AdvancedFilterConfig())

        assert result.final_count == 4
        assert result.filters_applied == []

    def test_apply_config_to_no_records(self, manager):
        result = manager.apply_config([], AdvancedFilterConfig.from_dict(STAFF_FILTER))
        assert result.reduction_percent == 0.0

    def test_apply_preset(self, manager):
        manager.preset_library.save_preset(AdvancedFilterConfig.from_dict(STAFF_FILTER), "Staff")

        result = manager.apply_preset(USERS, "Staff")

        assert result.success is True
        assert result.final_count == 2
        assert result.metadata["preset"] == "Staff"

    def test_apply_missing_preset(self, manager):
        result = manager.apply_preset(USERS, "missing")

        assert result.success is False
        assert result.data == USERS
        assert "not found" in result.error

    def test_apply_custom_filter_with_errors(self, manager):
        bad = {"groups": [{"id": "g1", "conditions": [{"field": "role"}]}]}

        result = manager.apply_custom_filter(USERS, json.dumps(bad))

        assert result.success is False
        assert result.metadata["errors"] == ["Group 0, condition 0: Missing required field 'id'"]

    def test_enhanced_filtering_with_limit(self, manager):
        response = manager.apply_enhanced_filtering(USERS, filter_config=json.dumps(STAFF_FILTER), limit=1)

        assert response["success"] is True
        assert [u["id"] for u in response["data"]] == ["u2"]
        assert response["metadata"]["final_count"] == 2
        assert response["metadata"]["returned_count"] == 1

    def test_enhanced_filtering_without_filter(self, manager):
        response = manager.apply_enhanced_filtering(USERS)

        assert response["data"] == USERS
        assert response["metadata"]["filters_applied"] == []

    def test_enhanced_filtering_reports_error(self, manager):
        response = manager.apply_enhanced_filtering(USERS, preset_id="missing")

        assert response["success"] is False
        assert "not found" in response["error"]
