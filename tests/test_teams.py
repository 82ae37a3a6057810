"""Unit tests for policy_tools.operations.teams module."""

from __future__ import annotations

import pytest

from policy_tools.operations.teams import (
    TeamPlan,
    TeamsOptions,
    apply_team_plans,
    ensure_org_teams,
    ensure_team,
    grant_repo_permission,
    init_teams,
    load_team_plans,
    remove_teams,
)
from policy_tools.policy_runtime.models import PolicyValueError, UnknownRoleTokenError
from tests.conftest import fail, ok, repo_listing, write_config


def _missing_team(fake_gh, slug):
    """Make the existence probe for ``slug`` fail while writes still succeed."""

    def respond(args, _input_text):
        if "-X" in args:
            return ok({})
        return fail()

    fake_gh.on(f"orgs/acme/teams/{slug}", response=respond)


def _teams_config(tmp_path, teams):
    return write_config(tmp_path, "config/teams.config.json", {"teams": teams})


DEVS = {"slug": "devs", "title": "Developers", "roles": ["all-read", "all-write"]}


class TestTeamPlan:
    """Tests for TeamPlan.from_entry."""

    def test_defaults(self):
        plan = TeamPlan.from_entry(DEVS)
        assert plan.permission == "push"
        assert plan.privacy == "closed"
        assert plan.notification == "notifications_enabled"
        assert plan.access == "all-repos"

    def test_hidden_team_without_notifications(self):
        plan = TeamPlan.from_entry(
            {"slug": "ops", "title": "Ops", "visible": False, "notification": "off", "roles": []}
        )
        assert plan.privacy == "secret"
        assert plan.notification == "notifications_disabled"
        assert plan.permission == "pull"

    def test_missing_title(self):
        with pytest.raises(PolicyValueError):
            TeamPlan.from_entry({"slug": "ops"})

    def test_team_fields(self):
        assert TeamPlan.from_entry(DEVS).team_fields() == [
            "name=Developers",
            "description=",
            "privacy=closed",
            "notification_setting=notifications_enabled",
        ]


class TestLoadTeamPlans:
    """Tests for load_team_plans."""

    def test_unknown_role_fails_before_any_call(self, ctx, fake_gh, tmp_path):
        config = _teams_config(tmp_path, [DEVS, {"slug": "x", "title": "X", "roles": ["all-wrote"]}])
        with pytest.raises(UnknownRoleTokenError) as exc_info:
            init_teams(ctx, "acme", config, TeamsOptions())
        assert "all-wrote" in str(exc_info.value)
        assert fake_gh.calls == []

    def test_loads_in_order(self, tmp_path):
        config = _teams_config(tmp_path, [DEVS, {"slug": "qa", "title": "QA", "roles": ["triage"]}])
        assert [plan.slug for plan in load_team_plans(config)] == ["devs", "qa"]


class TestEnsureTeam:
    """Tests for ensure_team."""

    def test_creates_missing_team_with_pull_default(self, ctx, fake_gh, capsys):
        _missing_team(fake_gh, "devs")
        ensure_team(ctx, "acme", TeamPlan.from_entry(DEVS), False)
        (post,) = fake_gh.calls_to("orgs/acme/teams", "POST")
        assert "name=Developers" in post.args
        assert "permission=pull" in post.args
        assert "created: team acme/devs" in capsys.readouterr().out

    def test_updates_existing_team(self, ctx, fake_gh, capsys):
        ensure_team(ctx, "acme", TeamPlan.from_entry(DEVS), False)
        assert fake_gh.calls_to("orgs/acme/teams/devs", "PATCH")
        assert not fake_gh.calls_to("orgs/acme/teams", "POST")
        assert "updated: team acme/devs" in capsys.readouterr().out


class TestGrantRepoPermission:
    """Tests for grant_repo_permission."""

    def test_put(self, ctx, fake_gh):
        grant_repo_permission(ctx, "acme", "devs", "w", "push", False)
        (put,) = fake_gh.calls_to("orgs/acme/teams/devs/repos/acme/w", "PUT")
        assert "permission=push" in put.args

    def test_preview(self, ctx, fake_gh, capsys):
        grant_repo_permission(ctx, "acme", "devs", "w", "push", True)
        assert fake_gh.calls == []
        assert "[preview] grant push on acme/w to team devs" in capsys.readouterr().out


class TestApplyTeamPlans:
    """Tests for apply_team_plans."""

    @pytest.fixture
    def listing(self, fake_gh):
        fake_gh.on(
            "repo",
            "list",
            response=ok(
                repo_listing(
                    ("a", "PUBLIC", False),
                    ("old", "PUBLIC", True),
                    ("b", "PRIVATE", False),
                    ("c", "PUBLIC", False),
                )
            ),
        )

    @staticmethod
    def _granted(fake_gh, slug):
        prefix = f"orgs/acme/teams/{slug}/repos/acme/"
        return [call.path[len(prefix):] for call in fake_gh.calls if call.path.startswith(prefix)]

    def test_grants_skip_archived(self, ctx, fake_gh, listing):
        apply_team_plans(ctx, "acme", [TeamPlan.from_entry(DEVS)], TeamsOptions())
        assert self._granted(fake_gh, "devs") == ["a", "b", "c"]

    def test_include_archived(self, ctx, fake_gh, listing):
        apply_team_plans(ctx, "acme", [TeamPlan.from_entry(DEVS)], TeamsOptions(include_archived=True))
        assert self._granted(fake_gh, "devs") == ["a", "old", "b", "c"]

    def test_max_repos_caps_grants(self, ctx, fake_gh, listing):
        apply_team_plans(ctx, "acme", [TeamPlan.from_entry(DEVS)], TeamsOptions(max_repos=2))
        assert self._granted(fake_gh, "devs") == ["a", "b"]

    def test_scoped_access_skips_grants(self, ctx, fake_gh, listing, capsys):
        plan = TeamPlan.from_entry({**DEVS, "access": "selected"})
        apply_team_plans(ctx, "acme", [plan], TeamsOptions())
        assert self._granted(fake_gh, "devs") == []
        assert "access=selected (skipping repo grants)" in capsys.readouterr().out

    def test_repos_listed_once(self, ctx, fake_gh, listing):
        plans = [TeamPlan.from_entry(DEVS), TeamPlan.from_entry({**DEVS, "slug": "qa", "title": "QA"})]
        apply_team_plans(ctx, "acme", plans, TeamsOptions())
        assert len([call for call in fake_gh.calls if call.args[:2] == ["repo", "list"]]) == 1
        assert self._granted(fake_gh, "qa") == ["a", "b", "c"]

    def test_preview_makes_no_mutation(self, ctx, fake_gh, listing, capsys):
        apply_team_plans(ctx, "acme", [TeamPlan.from_entry(DEVS)], TeamsOptions(preview=True))
        assert fake_gh.mutating_calls() == []
        out = capsys.readouterr().out
        assert "effective_repo_permission=push" in out
        assert "[preview] update team: acme/devs" in out

    def test_missing_image_warns(self, ctx, fake_gh, listing, capsys):
        plan = TeamPlan.from_entry({**DEVS, "image": "assets/devs.png"})
        apply_team_plans(ctx, "acme", [plan], TeamsOptions(preview=True))
        assert "[warn] image asset missing: assets/devs.png" in capsys.readouterr().err


class TestRemoveTeams:
    """Tests for remove_teams."""

    def test_deletes_existing_and_skips_missing(self, ctx, fake_gh, tmp_path, capsys):
        _missing_team(fake_gh, "qa")
        config = _teams_config(tmp_path, [DEVS, {"slug": "qa", "title": "QA"}])
        remove_teams(ctx, "acme", config, False)
        assert fake_gh.calls_to("orgs/acme/teams/devs", "DELETE")
        assert not fake_gh.calls_to("orgs/acme/teams/qa", "DELETE")
        out = capsys.readouterr().out
        assert "deleted: team acme/devs" in out
        assert "[skip] team not found: acme/qa" in out

    def test_preview(self, ctx, fake_gh, tmp_path, capsys):
        remove_teams(ctx, "acme", _teams_config(tmp_path, [DEVS]), True)
        assert fake_gh.mutating_calls() == []
        assert "[preview] delete team: acme/devs" in capsys.readouterr().out


class TestEnsureOrgTeams:
    """Tests for ensure_org_teams."""

    def test_creates_teams_and_membership(self, ctx, fake_gh, capsys):
        _missing_team(fake_gh, "repo-approvers")
        _missing_team(fake_gh, "repo-bypass")
        ensure_org_teams(ctx, "acme", owner_user="octo")
        posts = fake_gh.calls_to("orgs/acme/teams", "POST")
        assert [next(arg for arg in call.args if arg.startswith("name=")) for call in posts] == [
            "name=Repo-Approvers",
            "name=Repo-Bypass",
        ]
        assert fake_gh.calls_to("orgs/acme/teams/repo-bypass/memberships/octo", "PUT")
        assert "upserted: member octo -> acme/repo-bypass" in capsys.readouterr().out

    def test_existing_teams_are_left_alone(self, ctx, fake_gh):
        ensure_org_teams(ctx, "acme", owner_user="octo")
        assert not fake_gh.calls_to("orgs/acme/teams", "POST")

    def test_prints_team_ids(self, ctx, fake_gh, capsys):
        fake_gh.on("orgs/acme/teams/repo-approvers", "--jq", response=ok("team=repo-approvers id=7\n"))
        ensure_org_teams(ctx, "acme", owner_user="octo")
        assert "team=repo-approvers id=7" in capsys.readouterr().out

    def test_preview(self, ctx, fake_gh, capsys):
        ensure_org_teams(ctx, "acme", owner_user="octo", preview=True)
        assert fake_gh.mutating_calls() == []
        assert "[preview] ensure member: octo in acme/repo-bypass" in capsys.readouterr().out
