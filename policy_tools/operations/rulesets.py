"""Branch-protection ruleset templates and their per-repo upsert."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ..policy_runtime.batch import apply_to_org
from ..policy_runtime.config import (
    DEFAULT_BYPASS_TEAM_SLUG,
    DEFAULT_REVIEWER_TEAM_SLUG,
    load_policy_bundle,
)
from ..policy_runtime.context import PolicyContext
from ..policy_runtime.gh import parse_json_text
from ..policy_runtime.models import (
    BatchOptions,
    BatchSummary,
    ConfigLoadError,
    PolicyError,
    RepoInfo,
    RepoRef,
)
from ..policy_runtime.upsert import UpsertResult, find_by_name, upsert_by_name

BYPASS_TEAM_PLACEHOLDER = "__BYPASS_TEAM_ID__"
REVIEWER_TEAM_PLACEHOLDER = "__REQUIRED_REVIEWER_TEAM_ID__"


def resolve_ruleset_template(
    ctx: PolicyContext,
    raw_template: str,
    org: str,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
) -> str:
    """Replace quoted team-id placeholders with numeric ids.

    A team lookup is only issued for placeholders present in the template.
    """
    raw = raw_template
    if BYPASS_TEAM_PLACEHOLDER in raw:
        bypass_id = ctx.gh.team_id(org, bypass_team_slug)
        raw = raw.replace(f'"{BYPASS_TEAM_PLACEHOLDER}"', str(bypass_id))
    if REVIEWER_TEAM_PLACEHOLDER in raw:
        reviewer_id = ctx.gh.team_id(org, reviewer_team_slug)
        raw = raw.replace(f'"{REVIEWER_TEAM_PLACEHOLDER}"', str(reviewer_id))
    return raw


def list_rulesets(ctx: PolicyContext, ref: RepoRef) -> list[dict[str, Any]]:
    """Return ``{id, name}`` entries for the repo's rulesets in listing order."""
    raw = ctx.gh.api(f"repos/{ref.org}/{ref.repo}/rulesets", jq=".[] | {id,name}")
    entries: list[dict[str, Any]] = []
    for line in raw.splitlines():
        if line.strip():
            entries.append(parse_json_text(line, "rulesets list entry"))
    return entries


def upsert_ruleset(
    ctx: PolicyContext,
    ref: RepoRef,
    ruleset: Mapping[str, Any],
    *,
    preview: bool,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
    force_name: str = "",
) -> UpsertResult:
    """Create or update one ruleset on ``ref``, matched by name."""
    resolved = resolve_ruleset_template(
        ctx, json.dumps(ruleset), ref.org, bypass_team_slug, reviewer_team_slug
    )
    payload = parse_json_text(resolved, "ruleset template")
    name = force_name or payload.get("name") or ""
    if not name:
        raise ConfigLoadError(detail="missing ruleset name in rulesets config")
    if force_name and payload.get("name") != force_name:
        payload["name"] = force_name
        resolved = json.dumps(payload)

    existing = find_by_name(list_rulesets(ctx, ref), name)
    base = f"repos/{ref.org}/{ref.repo}/rulesets"
    return upsert_by_name(
        ctx.reporter,
        kind="ruleset",
        name=name,
        existing=existing,
        create=lambda: ctx.gh.api(base, method="POST", payload=resolved),
        update=lambda entry: ctx.gh.api(f"{base}/{entry['id']}", method="PUT", payload=resolved),
        preview=preview,
    )


def forced_ruleset_name(rulesets: Sequence[Mapping[str, Any]], name: Optional[str]) -> str:
    """A configured ruleset name only overrides the template when there is one ruleset."""
    if len(rulesets) == 1 and name:
        return name
    return ""


def apply_rulesets(
    ctx: PolicyContext,
    ref: RepoRef,
    rulesets: Sequence[Mapping[str, Any]],
    *,
    preview: bool,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
    ruleset_name: str = "",
) -> int:
    """Upsert every ruleset on ``ref``; all are attempted before failing."""
    force_name = forced_ruleset_name(rulesets, ruleset_name)
    failures: list[str] = []
    applied = 0
    for ruleset in rulesets:
        try:
            upsert_ruleset(
                ctx,
                ref,
                ruleset,
                preview=preview,
                bypass_team_slug=bypass_team_slug,
                reviewer_team_slug=reviewer_team_slug,
                force_name=force_name,
            )
        except Exception as exc:
            ctx.reporter.error(str(exc).strip())
            failures.append(str(exc))
            continue
        applied += 1
    if failures:
        raise PolicyError(detail=f"{len(failures)} ruleset(s) failed on {ref}: {'; '.join(failures)}")
    return applied


def apply_rulesets_repo(
    ctx: PolicyContext,
    repo_full: str,
    config_file: Path,
    *,
    preview: bool,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
    ruleset_name: str = "",
) -> int:
    ref = RepoRef.parse(repo_full)
    bundle = load_policy_bundle(ctx.repo_root, config_file)
    return apply_rulesets(
        ctx,
        ref,
        bundle.rulesets,
        preview=preview,
        bypass_team_slug=bypass_team_slug,
        reviewer_team_slug=reviewer_team_slug,
        ruleset_name=ruleset_name or bundle.ruleset_name,
    )


def apply_rulesets_org(
    ctx: PolicyContext,
    org: str,
    config_file: Path,
    options: BatchOptions,
    *,
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG,
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG,
) -> BatchSummary:
    bundle = load_policy_bundle(ctx.repo_root, config_file)

    def _apply(ref: RepoRef, _repo: RepoInfo) -> None:
        apply_rulesets(
            ctx,
            ref,
            bundle.rulesets,
            preview=options.preview,
            bypass_team_slug=bypass_team_slug,
            reviewer_team_slug=reviewer_team_slug,
        )

    # Archived repos reject ruleset writes.
    return apply_to_org(ctx, org, "rulesets", replace(options, include_archived=False), _apply)


__all__ = [
    "BYPASS_TEAM_PLACEHOLDER",
    "REVIEWER_TEAM_PLACEHOLDER",
    "resolve_ruleset_template",
    "list_rulesets",
    "upsert_ruleset",
    "forced_ruleset_name",
    "apply_rulesets",
    "apply_rulesets_repo",
    "apply_rulesets_org",
]
