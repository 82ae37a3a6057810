"""Unit tests for policy_tools.flows module."""

from __future__ import annotations

import pytest

from policy_tools.flows import (
    run_apply_org_flow,
    run_create_flow,
    run_doctor,
    run_init_teams_flow,
    run_manage,
    run_remove_teams_flow,
    run_validate_flow,
)
from policy_tools.policy_runtime.models import (
    BatchApplyError,
    GhCommandError,
    UnknownRoleTokenError,
    UnsupportedConfigVersionError,
    UsageError,
)
from tests.conftest import fail, ok, repo_listing, write_config, write_policy_files

ALL_MODULES = ("rulesets", "discussions", "actions", "security", "environments", "teams")


def _app_config(tmp_path, *, enabled=(), repo_create=False, **defaults):
    modules = {name: {"enabled": name in enabled} for name in ALL_MODULES}
    modules["repo_create"] = {"enabled": repo_create}
    write_config(
        tmp_path,
        "config/app.config.json",
        {"defaults": {"preview": False, **defaults}, "modules": modules},
    )


def _auth_checks(fake_gh):
    return [call for call in fake_gh.calls if call.args == ["auth", "status"]]


class TestCreateFlow:
    """Tests for run_create_flow."""

    def test_optional_failures_are_collected(self, ctx, fake_gh, tmp_path, gh_installed, capsys):
        _app_config(tmp_path, enabled=("actions", "security"))
        write_config(tmp_path, "config/actions.config.json", {"policy": {"allowed_actions_mode": "some"}})
        write_config(tmp_path, "config/security.config.json", {"policy": {}})

        failures = run_create_flow(ctx, "acme", "w")

        assert failures == ["actions"]
        assert fake_gh.calls_to("repos/acme/w/vulnerability-alerts", "PUT")
        captured = capsys.readouterr()
        assert "Checking GitHub auth..." in captured.out
        assert "[error] actions failed for acme/w: Invalid policy value" in captured.err
        assert "[warn] create flow completed with optional failures: actions" in captured.err

    def test_malformed_module_config_does_not_stop_later_modules(
        self, ctx, fake_gh, tmp_path, gh_installed, capsys
    ):
        _app_config(tmp_path, enabled=("actions", "environments"))
        write_config(tmp_path, "config/actions.config.json", {"version": 1, "policy": ["oops"]})
        write_config(tmp_path, "config/environments.config.json", {"environments": [{"name": "qa"}]})

        failures = run_create_flow(ctx, "acme", "w")

        assert failures == ["actions"]
        assert fake_gh.calls_to("repos/acme/w/environments/qa", "PUT")
        captured = capsys.readouterr()
        assert "[error] actions failed for acme/w:" in captured.err
        assert "[warn] create flow completed with optional failures: actions" in captured.err

    def test_clean_run(self, ctx, tmp_path, gh_installed, capsys):
        _app_config(tmp_path, enabled=("environments",))
        write_config(tmp_path, "config/environments.config.json", {"environments": [{"name": "qa"}]})
        assert run_create_flow(ctx, "acme", "w") == []
        assert "Done: create flow completed for acme/w" in capsys.readouterr().out

    def test_repo_create_and_rulesets(self, ctx, fake_gh, tmp_path, gh_installed):
        _app_config(tmp_path, enabled=("rulesets",), repo_create=True)
        write_policy_files(tmp_path, rulesets=[{"name": "main-protection", "rules": []}])
        fake_gh.on(
            "repos/acme/w",
            "{visibility, archived}",
            response=ok({"visibility": "PUBLIC", "archived": False}),
        )
        run_create_flow(ctx, "acme", "w")
        assert fake_gh.calls_to("repos/acme/w", "PATCH")
        assert fake_gh.calls_to("repos/acme/w/rulesets", "POST")

    def test_missing_gh_aborts_before_calls(self, ctx, fake_gh, tmp_path, monkeypatch):
        monkeypatch.setattr("policy_tools.policy_runtime.gh.command_available", lambda _name: False)
        _app_config(tmp_path, enabled=("actions",))
        with pytest.raises(GhCommandError):
            run_create_flow(ctx, "acme", "w")
        assert fake_gh.calls == []


class TestApplyOrgFlow:
    """Tests for run_apply_org_flow."""

    def test_runs_every_module_then_fails(self, ctx, fake_gh, tmp_path, gh_installed, capsys):
        _app_config(tmp_path, enabled=("actions", "security", "environments"))
        write_config(tmp_path, "config/actions.config.json", {"policy": {"allowed_actions_mode": "all"}})
        write_config(
            tmp_path,
            "config/security.config.json",
            {"policy": {"security_and_analysis": {"secret_scanning": "on"}}},
        )
        write_config(tmp_path, "config/environments.config.json", {"environments": [{"name": "qa"}]})
        fake_gh.on("repo", "list", response=ok(repo_listing(("w", "PUBLIC", False))))

        with pytest.raises(BatchApplyError) as exc_info:
            run_apply_org_flow(ctx, "acme")

        assert "acme: security" in str(exc_info.value)
        assert fake_gh.calls_to("repos/acme/w/actions/permissions", "PUT")
        assert fake_gh.calls_to("repos/acme/w/environments/qa", "PUT")
        out = capsys.readouterr().out
        assert "==> actions: acme" in out
        assert "==> environments: acme" in out
        assert "==> rulesets: acme" not in out

    def test_all_modules_pass(self, ctx, fake_gh, tmp_path, gh_installed):
        _app_config(tmp_path, enabled=("actions",), allow_private=False)
        write_config(tmp_path, "config/actions.config.json", {"policy": {"allowed_actions_mode": "all"}})
        fake_gh.on("repo", "list", response=ok(repo_listing(("w", "PUBLIC", False), ("p", "PRIVATE", False))))
        run_apply_org_flow(ctx, "acme")
        assert not fake_gh.calls_to("repos/acme/p/actions/permissions", "PUT")


class TestTeamsFlows:
    """Tests for the teams flows."""

    def test_disabled_module(self, ctx, fake_gh, tmp_path, capsys):
        _app_config(tmp_path)
        run_init_teams_flow(ctx, "acme")
        assert fake_gh.calls == []
        assert "Teams module disabled in app config" in capsys.readouterr().out

    def test_unknown_role_fails_before_auth(self, ctx, fake_gh, tmp_path, gh_installed):
        _app_config(tmp_path, enabled=("teams",))
        write_config(
            tmp_path,
            "config/teams.config.json",
            {"teams": [{"slug": "devs", "title": "Devs", "roles": ["owner"]}]},
        )
        with pytest.raises(UnknownRoleTokenError):
            run_init_teams_flow(ctx, "acme")
        assert fake_gh.calls == []

    def test_init_uses_app_defaults(self, ctx, fake_gh, tmp_path, gh_installed):
        _app_config(tmp_path, enabled=("teams",), max_repos=1)
        write_config(
            tmp_path,
            "config/teams.config.json",
            {"teams": [{"slug": "devs", "title": "Devs", "roles": ["write"]}]},
        )
        fake_gh.on("repo", "list", response=ok(repo_listing(("a", "PUBLIC", False), ("b", "PUBLIC", False))))
        run_init_teams_flow(ctx, "acme")
        assert len(_auth_checks(fake_gh)) == 1
        assert fake_gh.calls_to("orgs/acme/teams/devs/repos/acme/a", "PUT")
        assert not fake_gh.calls_to("orgs/acme/teams/devs/repos/acme/b", "PUT")

    def test_remove(self, ctx, fake_gh, tmp_path, gh_installed):
        _app_config(tmp_path, enabled=("teams",), preview=True)
        write_config(tmp_path, "config/teams.config.json", {"teams": [{"slug": "devs", "title": "Devs"}]})
        run_remove_teams_flow(ctx, "acme")
        assert fake_gh.mutating_calls() == []


class TestValidateFlow:
    """Tests for run_validate_flow."""

    def test_checks_nested_files(self, ctx, tmp_path, capsys):
        write_config(tmp_path, "config/a.json", {})
        write_config(tmp_path, "config/nested/b.json", {})
        assert run_validate_flow(ctx) == 2
        out = capsys.readouterr().out
        assert "Validating JSON configs..." in out
        assert "nested" in out
        assert out.rstrip().endswith("Validation complete.")

    def test_wrong_version(self, ctx, tmp_path):
        write_config(tmp_path, "config/a.json", {}, version=2)
        with pytest.raises(UnsupportedConfigVersionError):
            run_validate_flow(ctx)


class TestManage:
    """Tests for run_manage."""

    @pytest.fixture
    def management(self, tmp_path):
        write_policy_files(tmp_path)
        write_config(
            tmp_path,
            "config/management.json",
            {
                "execution": {"preview": True, "allow_private": False, "max_repos_per_org": 3},
                "policy": {
                    "repo_settings_config": "./config/repo-settings.config.json",
                    "rulesets_config": "./config/rulesets.config.json",
                },
                "operations": {
                    "create_repos": [{"org": "acme", "name": "new", "visibility": "private"}],
                    "apply_org_policy": {"enabled": False, "orgs": ["acme"]},
                },
            },
        )
        return "./config/management.json"

    def test_unknown_command(self, ctx, management):
        with pytest.raises(UsageError):
            run_manage(ctx, "apply", management)

    def test_validate(self, ctx, management, capsys):
        run_manage(ctx, "validate", management)
        assert capsys.readouterr().out.strip() == "Validation OK"

    def test_plan(self, ctx, fake_gh, management, capsys):
        run_manage(ctx, "plan", management)
        assert fake_gh.calls == []
        lines = capsys.readouterr().out.splitlines()
        assert "- main-protection" in lines
        assert "preview=true" in lines
        assert "allow_private=false" in lines
        assert "max_repos=3" in lines
        assert "- acme/new visibility=private apply_policy=true" in lines
        assert lines[-1] == "- disabled"

    def test_run_in_preview(self, ctx, fake_gh, management, capsys):
        run_manage(ctx, "run", management)
        assert fake_gh.calls == []
        assert "[preview] gh repo create acme/new --private --clone=false" in capsys.readouterr().out


class TestDoctor:
    """Tests for run_doctor."""

    def test_missing_git(self, ctx, fake_gh, monkeypatch, capsys):
        monkeypatch.setattr("policy_tools.flows.command_available", lambda name: name == "gh")
        assert not run_doctor(ctx)
        out = capsys.readouterr().out
        assert "OK gh" in out
        assert "MISSING git" in out
        assert "OK gh auth" in out
        assert f"root {ctx.repo_root}" in out

    def test_unauthenticated(self, ctx, fake_gh, monkeypatch, capsys):
        monkeypatch.setattr("policy_tools.flows.command_available", lambda _name: True)
        fake_gh.on("auth", "status", response=fail("not logged in"))
        assert not run_doctor(ctx)
        assert "MISSING gh auth" in capsys.readouterr().out

    def test_no_gh_skips_auth_probe(self, ctx, fake_gh, monkeypatch):
        monkeypatch.setattr("policy_tools.flows.command_available", lambda _name: False)
        run_doctor(ctx)
        assert fake_gh.calls == []
