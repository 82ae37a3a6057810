"""Repository creation, settings patches and the combined repo policy."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ..policy_runtime.batch import collect_outcomes, report_summary
from ..policy_runtime.config import (
    DEFAULT_BYPASS_TEAM_SLUG,
    DEFAULT_REVIEWER_TEAM_SLUG,
    load_policy_bundle,
)
from ..policy_runtime.context import PolicyContext
from ..policy_runtime.models import (
    BatchApplyError,
    BatchOptions,
    BatchSummary,
    RepoInfo,
    RepoRef,
)
from .rulesets import apply_rulesets


def patch_repo_settings(
    ctx: PolicyContext, ref: RepoRef, settings: Mapping[str, Any], *, preview: bool
) -> None:
    if preview:
        ctx.reporter.preview(f"gh api -X PATCH repos/{ref.org}/{ref.repo} --input repo-settings.config.json")
        return
    ctx.gh.api(f"repos/{ref.org}/{ref.repo}", method="PATCH", payload=dict(settings))


def _lookup_visibility(ctx: PolicyContext, ref: RepoRef) -> tuple[str, bool]:
    data = ctx.gh.api_json(f"repos/{ref.org}/{ref.repo}", jq="{visibility, archived}")
    return str(data.get("visibility", "")).lower(), bool(data.get("archived", False))


def apply_one_repo_policy(
    ctx: PolicyContext,
    repo_full: str,
    config_file: Path,
    *,
    allow_private: bool,
    preview: bool,
    visibility: Optional[str] = None,
    archived: Optional[bool] = None,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
) -> bool:
    """Patch settings and upsert rulesets on one repo.

    Visibility and archived state are looked up when the caller does not
    supply both. Returns False when the repo was skipped.
    """
    ref = RepoRef.parse(repo_full)
    bundle = load_policy_bundle(ctx.repo_root, config_file)

    if not visibility or archived is None:
        visibility, archived = _lookup_visibility(ctx, ref)

    if archived:
        ctx.reporter.line(f"Skipping {ref} (archived).")
        return False
    if visibility != "public" and not allow_private:
        ctx.reporter.line(
            f"Skipping {ref} (visibility={visibility}, use --allow-private to include)."
        )
        return False

    ctx.reporter.line(f"Applying policy to {ref} (visibility={visibility})")
    patch_repo_settings(ctx, ref, bundle.repo_settings, preview=preview)
    applied = apply_rulesets(
        ctx,
        ref,
        bundle.rulesets,
        preview=preview,
        bypass_team_slug=bypass_team_slug,
        reviewer_team_slug=reviewer_team_slug,
        ruleset_name=bundle.ruleset_name,
    )
    ctx.reporter.line(f"Applied: settings patched, rulesets applied={applied}")
    return True


@dataclass(frozen=True)
class CreateRepoOptions:
    visibility: str = "public"
    description: str = ""
    template: str = ""
    apply_policy: bool = True
    allow_private_policy: bool = False
    preview: bool = False


def _create_args(ref: RepoRef, options: CreateRepoOptions) -> list[str]:
    args = ["repo", "create", ref.full_name, f"--{options.visibility}", "--clone=false"]
    if options.description:
        args.extend(["--description", options.description])
    if options.template:
        args.extend(["--template", options.template])
    return args


def create_repo_core(
    ctx: PolicyContext,
    org: str,
    repo: str,
    config_file: Path,
    options: CreateRepoOptions,
    *,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
) -> None:
    """Create ``org/repo`` unless it exists, then apply the repo policy."""
    ref = RepoRef(org, repo)

    if options.preview:
        ctx.reporter.preview(f"existence check skipped for {ref}")
        shown = _create_args(ref, options)
        if options.description:
            index = shown.index("--description") + 1
            shown[index] = json.dumps(options.description)
        ctx.reporter.preview("gh " + " ".join(shown))
    elif ctx.gh.succeeds(["repo", "view", ref.full_name]):
        ctx.reporter.line(f"Repo exists: {ref}")
    else:
        ctx.gh.run(_create_args(ref, options))
        ctx.reporter.line(f"created: repo {ref}")

    if not options.apply_policy:
        ctx.reporter.line("Policy application disabled (--no-apply-policy).")
        return
    if options.preview:
        ctx.reporter.preview(f"apply policy for {ref}")
        return

    visibility, archived = _lookup_visibility(ctx, ref)
    if visibility != "public" and not options.allow_private_policy:
        ctx.reporter.line(
            f"Skipping policy for {ref} (visibility={visibility}, "
            "use --allow-private-policy to include)."
        )
        return

    apply_one_repo_policy(
        ctx,
        ref.full_name,
        config_file,
        allow_private=options.allow_private_policy,
        preview=False,
        visibility=visibility,
        archived=archived,
        bypass_team_slug=bypass_team_slug,
        reviewer_team_slug=reviewer_team_slug,
    )


def apply_org_policy(
    ctx: PolicyContext,
    orgs: Sequence[str],
    config_file: Path,
    options: BatchOptions,
    *,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
) -> BatchSummary:
    """Apply the repo policy to every qualifying repo of each org in turn."""
    per_org: list[BatchSummary] = []
    for org in orgs:
        ctx.reporter.line("")
        ctx.reporter.line(f"=== Org: {org} ===")
        repos = ctx.gh.list_repos(org)
        ctx.reporter.line(f"Found {len(repos)} repos")

        def _apply(ref: RepoRef, repo: RepoInfo) -> None:
            apply_one_repo_policy(
                ctx,
                ref.full_name,
                config_file,
                allow_private=options.allow_private,
                preview=options.preview,
                visibility=repo.visibility,
                archived=repo.is_archived,
                bypass_team_slug=bypass_team_slug,
                reviewer_team_slug=reviewer_team_slug,
            )

        outcomes = collect_outcomes(ctx, org, repos, "policy", options, _apply)
        summary = BatchSummary(outcomes=outcomes, preview=options.preview)
        ctx.reporter.line(f"Org summary: {summary.counters()}")
        per_org.append(summary)

    overall = BatchSummary.merge(per_org, preview=options.preview)
    ctx.reporter.line("")
    ctx.reporter.line("=== Overall summary ===")
    report_summary(ctx, overall)
    if not overall.ok:
        raise BatchApplyError.with_failures(
            label="org policy", failed=overall.failed, seen=overall.seen
        )
    return overall


__all__ = [
    "patch_repo_settings",
    "apply_one_repo_policy",
    "CreateRepoOptions",
    "create_repo_core",
    "apply_org_policy",
]
