"""Unit tests for policy_tools.utils.flags module."""

from __future__ import annotations

import pytest

from policy_tools.policy_runtime.models import UsageError
from policy_tools.utils.flags import (
    has_flag,
    parse_flag_value,
    parse_int_flag,
    parse_org_list,
)


class TestParseFlagValue:
    """Tests for parse_flag_value."""

    def test_value(self):
        assert parse_flag_value(["--org", "acme", "--dry-run"], "--org") == "acme"

    def test_absent_uses_fallback(self):
        assert parse_flag_value(["--dry-run"], "--org") == ""
        assert parse_flag_value([], "--config", "./config/x.json") == "./config/x.json"

    def test_missing_value(self):
        with pytest.raises(UsageError) as exc_info:
            parse_flag_value(["--org"], "--org")
        assert str(exc_info.value) == "Usage: --org requires a value"

    def test_flag_as_value_rejected(self):
        with pytest.raises(UsageError):
            parse_flag_value(["--org", "--dry-run"], "--org")

    def test_empty_value_rejected(self):
        with pytest.raises(UsageError):
            parse_flag_value(["--org", ""], "--org")


class TestParseIntFlag:
    """Tests for parse_int_flag."""

    def test_value(self):
        assert parse_int_flag(["--max-repos", "5"], "--max-repos") == 5

    def test_default(self):
        assert parse_int_flag([], "--max-repos") == 0

    @pytest.mark.parametrize("raw", ["five", "-1", "2.5"])
    def test_rejects_non_integer(self, raw):
        with pytest.raises(UsageError) as exc_info:
            parse_int_flag(["--max-repos", raw], "--max-repos")
        assert "--max-repos must be non-negative integer" in str(exc_info.value)


class TestParseOrgList:
    """Tests for parse_org_list."""

    def test_skips_flags_and_values(self):
        args = ["acme", "--config", "./config/management.json", "beta", "--dry-run", "--max-repos", "3"]
        assert parse_org_list(args) == ["acme", "beta"]

    def test_skips_manage_commands(self):
        assert parse_org_list(["run", "acme"]) == ["acme"]

    def test_empty(self):
        assert parse_org_list(["--allow-private"]) == []


def test_has_flag():
    assert has_flag(["--dry-run"], "--dry-run")
    assert not has_flag(["--dry-run-x"], "--dry-run")
