"""
Tests for YAML configuration loading (``reimburse_config``).
"""

from __future__ import annotations

import pytest
import yaml

from reimburse_config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    compute_checksum,
    get_active_config,
    resolve_config_path,
)
from reimburse_config.loader import load_yaml_file, parse_config
from reimburse_kernel.domain.reimbursement import Role
from reimburse_kernel.domain.templates import FieldType

MINIMAL = {"funders": ["FunderX"]}


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestPackagedDefaults:
    """The shipped defaults.yaml."""

    def test_defaults_load(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        config = get_active_config()

        assert config.funders == ("FunderA", "FunderB")
        assert config.currency_label == "ETB"
        assert config.approval_letter_template is None
        assert [u.username for u in config.seed.users] == [
            "admin", "pi", "fac", "coord1", "field1", "finance",
        ]
        assert config.seed.templates.categories() == ("Fuel", "Per diem", "Air ticket", "Other")

    def test_seed_coordinator_scope(self):
        config = get_active_config(DEFAULT_CONFIG_PATH)
        coord = next(u for u in config.seed.users if u.username == "coord1")
        assert coord.user.role == Role.COORDINATOR
        assert coord.user.name == "Coord NICU"
        assert coord.user.fund_sources == frozenset({"FunderA"})
        assert coord.password == "coord123"

    def test_field_staff_role_parsed(self):
        config = get_active_config(DEFAULT_CONFIG_PATH)
        assert config.seed.users[4].user.role == Role.FIELD_STAFF

    def test_template_types(self):
        fields = get_active_config(DEFAULT_CONFIG_PATH).seed.templates.get_fields("Other")
        assert fields[0].type is FieldType.TEXTAREA

    def test_trace_logged(self, captured_logs):
        get_active_config(DEFAULT_CONFIG_PATH)
        traces = [r for r in captured_logs() if r["message"] == "REIMBURSE_CONFIG_TRACE"]
        assert traces and traces[0]["funder_count"] == 2


class TestResolution:
    """Explicit path, then environment, then defaults."""

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.yaml"))
        explicit = write_yaml(tmp_path / "explicit.yaml", MINIMAL)
        assert get_active_config(explicit).funders == ("FunderX",)

    def test_env_var(self, tmp_path, monkeypatch):
        path = write_yaml(tmp_path / "env.yaml", {"funders": ["FunderE"]})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert resolve_config_path() == path
        assert get_active_config().funders == ("FunderE",)

    def test_default_path(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert resolve_config_path() == DEFAULT_CONFIG_PATH

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestValidation:
    """Malformed configuration is rejected with descriptive errors."""

    def test_minimal_config(self):
        config = parse_config(MINIMAL)
        assert config.seed.users == ()
        assert config.database_url.startswith("sqlite")

    def test_funders_required(self):
        with pytest.raises(KeyError):
            parse_config({})

    def test_empty_funders(self):
        with pytest.raises(ValueError, match="funder"):
            parse_config({"funders": []})

    def test_unknown_role(self):
        data = {**MINIMAL, "seed": {"users": [
            {"id": "u1", "username": "x", "password": "p", "role": "Janitor"},
        ]}}
        with pytest.raises(ValueError, match="Janitor"):
            parse_config(data)

    def test_fund_sources_as_comma_separated_string(self):
        data = {**MINIMAL, "seed": {"users": [{
            "id": "u9", "username": "c", "password": "p", "role": "Coordinator",
            "fund_sources": "FunderA, FunderB",
        }]}}
        user = parse_config(data).seed.users[0].user
        assert user.fund_sources == frozenset({"FunderA", "FunderB"})

    def test_duplicate_seed_usernames(self):
        user = {"id": "u1", "username": "x", "password": "p", "role": "PI"}
        data = {**MINIMAL, "seed": {"users": [user, {**user, "id": "u2"}]}}
        with pytest.raises(ValueError, match="Duplicate"):
            parse_config(data)

    def test_unknown_field_type(self):
        data = {**MINIMAL, "seed": {"templates": {"Fuel": [{"key": "k", "type": "checkbox"}]}}}
        with pytest.raises(ValueError, match="checkbox"):
            parse_config(data)

    def test_letter_template_placeholders_checked(self):
        ok = parse_config({**MINIMAL, "approval_letter_template": "Pay {total} for {request_id}"})
        assert ok.approval_letter_template == "Pay {total} for {request_id}"
        with pytest.raises(ValueError, match="bank_account"):
            parse_config({**MINIMAL, "approval_letter_template": "Pay to {bank_account}"})

    @pytest.mark.parametrize("template", [
        "Total {}",
        "Total {0}",
        "Total {total:d}",
        "Total {total!z}",
        "Total {total",
    ])
    def test_unrenderable_letter_template_rejected(self, template):
        with pytest.raises(ValueError, match="letter template"):
            parse_config({**MINIMAL, "approval_letter_template": template})

    def test_format_spec_on_known_placeholder_accepted(self):
        config = parse_config({**MINIMAL, "approval_letter_template": "{item_count:d} items, {total:>10}"})
        assert config.approval_letter_template == "{item_count:d} items, {total:>10}"

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_yaml_file(path)


class TestChecksum:
    """Deterministic configuration identity."""

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_content_sensitive(self):
        assert compute_checksum({"funders": ["A"]}) != compute_checksum({"funders": ["B"]})

    def test_config_carries_checksum(self):
        assert parse_config(MINIMAL).checksum == compute_checksum(MINIMAL)
