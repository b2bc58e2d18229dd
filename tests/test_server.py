"""Tests for the MCP server tools."""

import json

import pytest

from admin_filter_mcp import server
from admin_filter_mcp.server import (
    AUTH_ERROR,
    apply_filter_preset,
    auth_tokens,
    delete_filter_preset,
    filter_sessions,
    get_auth_token,
    get_filter_operators,
    get_filtered_users,
    get_filters,
    list_filter_presets,
    load_filter_preset,
    load_user_records,
    save_filter_preset,
    set_filters,
    update_filter_condition,
    update_filter_group,
    validate_auth_token,
)

ADMIN_FILTER = {
    "logic": "AND",
    "groups": [
        {
            "id": "g1",
            "logic": "OR",
            "conditions": [{"id": "c1", "field": "role", "operator": "eq", "value": "ADMIN"}],
        }
    ],
}


def call(tool, **kwargs):
    """Invoke the function behind a registered tool."""
    return getattr(tool, "fn", tool)(**kwargs)


def call_json(tool, **kwargs):
    return json.loads(call(tool, **kwargs))


@pytest.fixture(autouse=True)
def isolated_server(tmp_path, monkeypatch):
    monkeypatch.setenv("FILTER_PRESET_DB_PATH", str(tmp_path / "presets.db"))
    monkeypatch.setattr(server, "_filter_manager", None)
    auth_tokens.clear()
    filter_sessions.clear()
    yield
    auth_tokens.clear()
    filter_sessions.clear()


@pytest.fixture
def token():
    result = call(get_auth_token)
    return result.split(": ")[-1]


@pytest.fixture
def loaded_token(token):
    call(load_user_records, auth_token=token)
    return token


def test_get_auth_token():
    """Test the get_auth_token function."""
    result = call(get_auth_token)
    assert "Authentication successful. Your auth token is:" in result

    token = result.split(": ")[-1]

    # 32 bytes in hex
    assert len(token) == 64
    assert token in auth_tokens
    assert token in filter_sessions

    token2 = call(get_auth_token).split(": ")[-1]
    assert token != token2


def test_validate_auth_token(token):
    """Test the validate_auth_token function."""
    assert validate_auth_token("invalid_token") is False
    assert validate_auth_token(token) is True

    auth_tokens.clear()
    assert validate_auth_token(token) is False


def test_tools_require_auth():
    assert call(get_filters, auth_token="invalid") == AUTH_ERROR
    assert call(get_filtered_users, auth_token="invalid") == AUTH_ERROR
    assert call(set_filters, auth_token="invalid", config_json="") == AUTH_ERROR


class TestFilterSessionTools:
    """Editing the session filter tree and reading results."""

    def test_get_filter_operators(self, token):
        response = call_json(get_filter_operators, auth_token=token)

        assert response["success"] is True
        assert response["data"]["operators"]["between"]["arity"] == "range"
        assert response["data"]["logic"] == ["AND", "OR"]
        assert response["data"]["field_values"]["role"] == ["ADMIN", "STAFF", "CLIENT", "VIEWER"]
        assert "SUSPENDED" in response["data"]["field_values"]["status"]

    def test_load_sample_users(self, token):
        response = call_json(load_user_records, auth_token=token)

        assert response["data"]["record_count"] == 6
        assert response["data"]["filtered_count"] == 6
        assert response["metadata"]["source"] == "sample"

    def test_load_users_from_json(self, token):
        records = [{"id": "a", "role": "ADMIN"}, {"id": "b", "role": "STAFF"}]
        response = call_json(load_user_records, auth_token=token, records_json=json.dumps(records))

        assert response["data"]["record_count"] == 2
        assert response["metadata"]["source"] == "request"

    def test_load_users_rejects_non_list(self, token):
        response = call_json(load_user_records, auth_token=token, records_json='{"id": "a"}')

        assert response["success"] is False
        assert response["error"] == "invalid_input"

    def test_set_filters_and_read_users(self, loaded_token):
        response = call_json(set_filters, auth_token=loaded_token, config_json=json.dumps(ADMIN_FILTER))
        assert response["metadata"]["filtered_count"] == 2

        users = call_json(get_filtered_users, auth_token=loaded_token)
        assert [u["id"] for u in users["data"]] == ["u-001", "u-006"]
        assert users["metadata"]["record_count"] == 6

        limited = call_json(get_filtered_users, auth_token=loaded_token, limit=1)
        assert [u["id"] for u in limited["data"]] == ["u-001"]
        assert limited["metadata"]["filtered_count"] == 2

    def test_set_filters_rejects_malformed_tree(self, loaded_token):
        bad = {"groups": [{"id": "g1"}, {"id": "g1"}]}
        response = call_json(set_filters, auth_token=loaded_token, config_json=json.dumps(bad))

        assert response["success"] is False
        assert response["error"] == "invalid_input"
        assert response["details"]["errors"] == ["Group 1: Duplicate group id 'g1'"]

    def test_update_condition(self, loaded_token):
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(ADMIN_FILTER))

        response = call_json(
            update_filter_condition,
            auth_token=loaded_token,
            group_id="g1",
            condition_id="c1",
            update_json=json.dumps({"operator": "in", "value": ["ADMIN", "VIEWER"]}),
        )

        assert response["metadata"]["changed"] is True
        assert response["metadata"]["filtered_count"] == 3

    def test_update_unknown_condition_is_noop(self, loaded_token):
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(ADMIN_FILTER))
        before = call_json(get_filters, auth_token=loaded_token)["data"]

        response = call_json(
            update_filter_condition,
            auth_token=loaded_token,
            group_id="g1",
            condition_id="missing",
            update_json=json.dumps({"value": "NEW"}),
        )

        assert response["metadata"]["changed"] is False
        assert response["data"] == before

    def test_update_group(self, loaded_token):
        two_conditions = json.loads(json.dumps(ADMIN_FILTER))
        two_conditions["groups"][0]["conditions"].append(
            {"id": "c2", "field": "status", "operator": "eq", "value": "ACTIVE"}
        )
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(two_conditions))
        assert call_json(get_filtered_users, auth_token=loaded_token)["metadata"]["filtered_count"] == 4

        response = call_json(
            update_filter_group, auth_token=loaded_token, group_id="g1", update_json=json.dumps({"logic": "AND"})
        )

        assert response["data"]["groups"][0]["logic"] == "AND"
        assert response["metadata"]["filtered_count"] == 2

    def test_update_group_rejects_non_object(self, loaded_token):
        response = call_json(update_filter_group, auth_token=loaded_token, group_id="g1", update_json="[1, 2]")
        assert response["error"] == "invalid_input"

    @pytest.mark.parametrize(
        "update,expected_errors",
        [
            ({"conditions": ["oops"]}, ["Condition 0: must be an object"]),
            ({"logic": "xor"}, ["Invalid logic 'xor'"]),
            ({"id": "g2"}, ["Duplicate group id 'g2'"]),
        ],
    )
    def test_update_group_rejects_malformed_update(self, loaded_token, update, expected_errors):
        two_groups = json.loads(json.dumps(ADMIN_FILTER))
        two_groups["groups"].append({"id": "g2", "logic": "AND", "conditions": []})
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(two_groups))

        response = call_json(update_filter_group, auth_token=loaded_token, group_id="g1", update_json=json.dumps(update))

        assert response["success"] is False
        assert response["error"] == "invalid_input"
        assert response["details"]["errors"] == expected_errors
        assert call_json(get_filters, auth_token=loaded_token)["data"] == two_groups

    def test_update_condition_rejects_colliding_id(self, loaded_token):
        two_conditions = json.loads(json.dumps(ADMIN_FILTER))
        two_conditions["groups"][0]["conditions"].append(
            {"id": "c2", "field": "status", "operator": "eq", "value": "ACTIVE"}
        )
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(two_conditions))

        response = call_json(
            update_filter_condition,
            auth_token=loaded_token,
            group_id="g1",
            condition_id="c1",
            update_json=json.dumps({"id": "c2"}),
        )

        assert response["error"] == "invalid_input"
        assert response["details"]["errors"] == ["Duplicate condition id 'c2'"]

    def test_update_condition_rejects_non_string_field(self, loaded_token):
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(ADMIN_FILTER))

        response = call_json(
            update_filter_condition,
            auth_token=loaded_token,
            group_id="g1",
            condition_id="c1",
            update_json=json.dumps({"field": 5}),
        )

        assert response["error"] == "invalid_input"

    def test_update_condition_may_keep_its_own_id(self, loaded_token):
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(ADMIN_FILTER))

        response = call_json(
            update_filter_condition,
            auth_token=loaded_token,
            group_id="g1",
            condition_id="c1",
            update_json=json.dumps({"id": "c1", "value": "STAFF"}),
        )

        assert response["success"] is True
        assert response["metadata"]["filtered_count"] == 2

    def test_sessions_are_isolated(self, loaded_token):
        other = call(get_auth_token).split(": ")[-1]
        call(load_user_records, auth_token=other)

        call(set_filters, auth_token=loaded_token, config_json=json.dumps(ADMIN_FILTER))

        assert call_json(get_filtered_users, auth_token=other)["metadata"]["filtered_count"] == 6


class TestPresetTools:
    """Saving and loading presets through the tools."""

    def test_save_list_and_load_preset(self, loaded_token):
        call(set_filters, auth_token=loaded_token, config_json=json.dumps(ADMIN_FILTER))

        saved = call_json(
            save_filter_preset, auth_token=loaded_token, name="Admins", description="Admin users", tags="roles, team"
        )
        assert saved["success"] is True
        assert saved["data"]["tags"] == ["roles", "team"]

        listed = call_json(list_filter_presets, auth_token=loaded_token, tag="roles")
        assert [p["name"] for p in listed["data"]] == ["Admins"]

        call(set_filters, auth_token=loaded_token, config_json="")
        loaded = call_json(load_filter_preset, auth_token=loaded_token, preset_id="Admins")
        assert loaded["metadata"]["filtered_count"] == 2
        assert call_json(get_filters, auth_token=loaded_token)["data"] == ADMIN_FILTER

    def test_save_preset_failure_is_reported(self, loaded_token):
        response = call_json(save_filter_preset, auth_token=loaded_token, name="   ")

        assert response["success"] is False
        assert response["error"] == "preset_save_failed"

    def test_load_missing_preset(self, loaded_token):
        response = call_json(load_filter_preset, auth_token=loaded_token, preset_id="missing")
        assert response["error"] == "not_found"

    def test_apply_preset_keeps_session_filters(self, loaded_token):
        server.initialize_preset_database()

        response = call_json(apply_filter_preset, auth_token=loaded_token, preset_id="Never logged in")

        assert response["success"] is True
        assert [u["id"] for u in response["data"]] == ["u-003", "u-005"]
        assert call_json(get_filters, auth_token=loaded_token)["data"]["groups"] == []

    def test_seed_import_runs_once(self):
        server.initialize_preset_database()
        server.initialize_preset_database()

        assert len(server.get_preset_library().search_presets()) == 3

    def test_delete_preset(self, loaded_token):
        saved = call_json(save_filter_preset, auth_token=loaded_token, name="Everyone")
        preset_id = saved["data"]["id"]

        assert call_json(delete_filter_preset, auth_token=loaded_token, preset_id=preset_id)["success"] is True
        missing = call_json(delete_filter_preset, auth_token=loaded_token, preset_id=preset_id)
        assert missing["error"] == "not_found"
        assert missing["details"] == {"preset": preset_id}
        assert "request_id" in missing["metadata"]
