"""Deployment environments."""

from __future__ import annotations

from pathlib import Path

from ..policy_runtime.batch import apply_to_org
from ..policy_runtime.config import load_versioned_config, to_bool, to_int
from ..policy_runtime.context import PolicyContext
from ..policy_runtime.models import (
    BatchOptions,
    BatchSummary,
    PolicyValueError,
    RepoInfo,
    RepoRef,
)


def apply_environments_repo(ctx: PolicyContext, repo_full: str, config_file: Path, preview: bool) -> None:
    """PUT each configured environment; the endpoint creates or replaces it."""
    config = load_versioned_config(config_file)
    ref = RepoRef.parse(repo_full)

    for env_cfg in config.get("environments") or []:
        name = env_cfg.get("name") if isinstance(env_cfg, dict) else None
        if not name:
            raise PolicyValueError(detail="environment entry has empty name")
        wait_timer = to_int(env_cfg.get("wait_timer"), 0)
        prevent_self_review = to_bool(env_cfg.get("prevent_self_review"), False)

        if preview:
            ctx.reporter.preview(
                f"upsert env '{name}' on {ref} "
                f"(wait_timer={wait_timer} prevent_self_review={prevent_self_review})"
            )
            continue

        ctx.gh.api(
            f"repos/{ref.org}/{ref.repo}/environments/{name}",
            method="PUT",
            payload={"wait_timer": wait_timer, "prevent_self_review": prevent_self_review},
        )
        ctx.reporter.line(f"upserted: env {name}")


def apply_environments_org(
    ctx: PolicyContext, org: str, config_file: Path, options: BatchOptions
) -> BatchSummary:
    def _apply(ref: RepoRef, _repo: RepoInfo) -> None:
        apply_environments_repo(ctx, ref.full_name, config_file, options.preview)

    return apply_to_org(ctx, org, "environments", options, _apply)


__all__ = ["apply_environments_repo", "apply_environments_org"]
