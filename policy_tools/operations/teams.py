"""Managed organization teams and their repository grants."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ..policy_runtime.config import (
    DEFAULT_BYPASS_TEAM_SLUG,
    DEFAULT_REVIEWER_TEAM_SLUG,
    load_versioned_config,
    to_bool,
)
from ..policy_runtime.context import PolicyContext
from ..policy_runtime.models import PolicyValueError, RepoInfo
from ..policy_runtime.permissions import (
    notification_from_flag,
    privacy_from_visible,
    resolve_effective_permission,
)
from ..policy_runtime.upsert import upsert_by_name

ALL_REPOS_ACCESS = "all-repos"
DEFAULT_OWNER_USER = "repo-policy-admin"


@dataclass(frozen=True)
class TeamPlan:
    """A team entry from the teams config with its derived values resolved."""

    slug: str
    title: str
    description: str
    privacy: str
    notification: str
    permission: str
    image: str = ""
    access: str = ALL_REPOS_ACCESS

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "TeamPlan":
        slug = entry.get("slug")
        title = entry.get("title")
        if not slug or not title:
            raise PolicyValueError(detail="team entry missing slug/title")
        return cls(
            slug=str(slug),
            title=str(title),
            description=str(entry.get("description") or ""),
            privacy=privacy_from_visible(to_bool(entry.get("visible"), True)),
            notification=notification_from_flag(str(entry.get("notification") or "enabled")),
            permission=resolve_effective_permission(entry.get("roles") or []),
            image=str(entry.get("image") or ""),
            access=str(entry.get("access") or ALL_REPOS_ACCESS),
        )

    def team_fields(self) -> list[str]:
        return [
            f"name={self.title}",
            f"description={self.description}",
            f"privacy={self.privacy}",
            f"notification_setting={self.notification}",
        ]


@dataclass(frozen=True)
class TeamsOptions:
    preview: bool = False
    max_repos: int = 0
    include_archived: bool = False


def load_team_plans(config_file: Path) -> list[TeamPlan]:
    """Load the teams config and resolve every team before any remote call."""
    config = load_versioned_config(config_file)
    return [TeamPlan.from_entry(entry) for entry in config.get("teams") or []]


def ensure_team(ctx: PolicyContext, org: str, plan: TeamPlan, preview: bool) -> None:
    exists = ctx.gh.team_exists(org, plan.slug)
    upsert_by_name(
        ctx.reporter,
        kind="team",
        name=f"{org}/{plan.slug}",
        existing={"slug": plan.slug} if exists else None,
        create=lambda: ctx.gh.api(
            f"orgs/{org}/teams",
            method="POST",
            fields=[*plan.team_fields(), "permission=pull"],
        ),
        update=lambda _entry: ctx.gh.api(
            f"orgs/{org}/teams/{plan.slug}", method="PATCH", fields=plan.team_fields()
        ),
        preview=preview,
    )


def grant_repo_permission(
    ctx: PolicyContext, org: str, team_slug: str, repo_name: str, permission: str, preview: bool
) -> None:
    if preview:
        ctx.reporter.preview(f"grant {permission} on {org}/{repo_name} to team {team_slug}")
        return
    ctx.gh.api(
        f"orgs/{org}/teams/{team_slug}/repos/{org}/{repo_name}",
        method="PUT",
        fields=[f"permission={permission}"],
    )


def _grant_targets(repos: Sequence[RepoInfo], options: TeamsOptions) -> list[RepoInfo]:
    targets: list[RepoInfo] = []
    for repo in repos:
        if repo.is_archived and not options.include_archived:
            continue
        if options.max_repos > 0 and len(targets) >= options.max_repos:
            break
        targets.append(repo)
    return targets


def _report_image(ctx: PolicyContext, image: str) -> None:
    if ctx.resolve(image).exists():
        ctx.reporter.line(f"   image asset found: {image}")
    else:
        ctx.reporter.warn(f"image asset missing: {image}")
    ctx.reporter.line(
        "   note: team avatars cannot be uploaded through the REST API; set it in the UI."
    )


def apply_team_plans(
    ctx: PolicyContext, org: str, plans: Sequence[TeamPlan], options: TeamsOptions
) -> None:
    repos: Optional[list[RepoInfo]] = None

    for plan in plans:
        ctx.reporter.line("")
        ctx.reporter.line(f"== Team: {plan.slug}")
        ctx.reporter.line(f"   effective_repo_permission={plan.permission}")
        if plan.image:
            _report_image(ctx, plan.image)

        ensure_team(ctx, org, plan, options.preview)

        if plan.access != ALL_REPOS_ACCESS:
            ctx.reporter.line(f"   access={plan.access} (skipping repo grants)")
            continue

        if repos is None:
            repos = ctx.gh.list_repos(org)
        for repo in _grant_targets(repos, options):
            grant_repo_permission(ctx, org, plan.slug, repo.name, plan.permission, options.preview)

    ctx.reporter.line("")
    ctx.reporter.line("Done.")


def init_teams(ctx: PolicyContext, org: str, config_file: Path, options: TeamsOptions) -> None:
    apply_team_plans(ctx, org, load_team_plans(config_file), options)


def remove_teams(ctx: PolicyContext, org: str, config_file: Path, preview: bool) -> None:
    config = load_versioned_config(config_file)
    for entry in config.get("teams") or []:
        slug = entry.get("slug") if isinstance(entry, dict) else None
        if not slug:
            continue
        if not ctx.gh.team_exists(org, slug):
            ctx.reporter.skip(f"team not found: {org}/{slug}")
            continue
        if preview:
            ctx.reporter.preview(f"delete team: {org}/{slug}")
            continue
        ctx.gh.api(f"orgs/{org}/teams/{slug}", method="DELETE")
        ctx.reporter.line(f"deleted: team {org}/{slug}")
    ctx.reporter.line("Done.")


def _team_name(slug: str) -> str:
    return "-".join(part.capitalize() for part in slug.split("-"))


def ensure_org_teams(
    ctx: PolicyContext,
    org: str,
    *,
    owner_user: str = DEFAULT_OWNER_USER,
    preview: bool = False,
    approvers_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
    bypass_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
) -> None:
    """Create the approvers and bypass teams and put ``owner_user`` in the bypass team."""
    managed = (
        (approvers_slug, "Allowed reviewers for protected branch PR approvals"),
        (bypass_slug, "Single-user bypass team for emergency ruleset bypass"),
    )
    for slug, description in managed:
        name = _team_name(slug)
        exists = ctx.gh.team_exists(org, slug)
        upsert_by_name(
            ctx.reporter,
            kind="team",
            name=f"{org}/{slug}",
            existing={"slug": slug} if exists else None,
            create=lambda name=name, description=description: ctx.gh.api(
                f"orgs/{org}/teams",
                method="POST",
                fields=[
                    f"name={name}",
                    f"description={description}",
                    "privacy=closed",
                    "permission=pull",
                ],
            ),
            preview=preview,
        )

    if preview:
        ctx.reporter.preview(f"ensure member: {owner_user} in {org}/{bypass_slug}")
    else:
        ctx.gh.api(
            f"orgs/{org}/teams/{bypass_slug}/memberships/{owner_user}",
            method="PUT",
            fields=["role=member"],
        )
        ctx.reporter.line(f"upserted: member {owner_user} -> {org}/{bypass_slug}")

    for slug, _description in managed:
        result = ctx.gh.result(
            ["api", f"orgs/{org}/teams/{slug}", "--jq", '"team=" + .slug + " id=" + (.id|tostring)']
        )
        if result.ok:
            ctx.reporter.line(result.stdout.strip())


__all__ = [
    "ALL_REPOS_ACCESS",
    "DEFAULT_OWNER_USER",
    "TeamPlan",
    "TeamsOptions",
    "load_team_plans",
    "ensure_team",
    "grant_repo_permission",
    "apply_team_plans",
    "init_teams",
    "remove_teams",
    "ensure_org_teams",
]
