"""GitHub Actions permission policy."""

from __future__ import annotations

from pathlib import Path

from ..policy_runtime.batch import apply_to_org
from ..policy_runtime.config import load_versioned_config, to_bool
from ..policy_runtime.context import PolicyContext
from ..policy_runtime.models import (
    BatchOptions,
    BatchSummary,
    PolicyValueError,
    RepoInfo,
    RepoRef,
)

ALLOWED_ACTIONS_MODES = ("all", "local_only", "selected")
ORG_PLACEHOLDER = "{ORG}"


def apply_actions_repo(ctx: PolicyContext, repo_full: str, config_file: Path, preview: bool) -> None:
    config = load_versioned_config(config_file)
    policy = config.get("policy") or {}
    ref = RepoRef.parse(repo_full)

    mode = policy.get("allowed_actions_mode", "selected")
    if mode not in ALLOWED_ACTIONS_MODES:
        raise PolicyValueError(detail=f"unsupported allowed_actions_mode: {mode}")

    patterns = [
        str(pattern).replace(ORG_PLACEHOLDER, ref.org)
        for pattern in policy.get("patterns_allowed") or []
    ]
    if mode == "selected" and not patterns:
        raise PolicyValueError(detail="selected mode requires at least one pattern")

    github_owned = to_bool(policy.get("allow_github_owned"), True)
    verified = to_bool(policy.get("allow_verified_creators"), False)

    if preview:
        ctx.reporter.preview(f"set actions policy on {ref}: mode={mode}")
        if mode == "selected":
            ctx.reporter.preview(
                f"selected-actions github_owned_allowed={github_owned} verified_allowed={verified}"
            )
            for pattern in patterns:
                ctx.reporter.preview(f"  pattern: {pattern}")
        return

    base = f"repos/{ref.org}/{ref.repo}/actions/permissions"
    ctx.gh.api(base, method="PUT", payload={"enabled": True, "allowed_actions": mode})
    if mode == "selected":
        ctx.gh.api(
            f"{base}/selected-actions",
            method="PUT",
            payload={
                "github_owned_allowed": github_owned,
                "verified_allowed": verified,
                "patterns_allowed": patterns,
            },
        )
    ctx.reporter.line(f"updated: actions policy {ref}")


def apply_actions_org(
    ctx: PolicyContext, org: str, config_file: Path, options: BatchOptions
) -> BatchSummary:
    def _apply(ref: RepoRef, _repo: RepoInfo) -> None:
        apply_actions_repo(ctx, ref.full_name, config_file, options.preview)

    return apply_to_org(ctx, org, "actions", options, _apply)


__all__ = ["ALLOWED_ACTIONS_MODES", "apply_actions_repo", "apply_actions_org"]
