"""Repository security settings: alerts, fixes, reporting and analysis features."""

from __future__ import annotations

import json
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

FEATURE_STATUSES = ("enabled", "disabled")
PUBLIC_ADVANCED_SECURITY_NOTICE = "Advanced security is always available for public repos."

# (endpoint suffix, policy key, default)
TOGGLE_ENDPOINTS: tuple[tuple[str, str, bool], ...] = (
    ("vulnerability-alerts", "vulnerability_alerts", True),
    ("automated-security-fixes", "automated_security_fixes", True),
    ("private-vulnerability-reporting", "private_vulnerability_reporting", True),
)


def apply_security_repo(ctx: PolicyContext, repo_full: str, config_file: Path, preview: bool) -> None:
    config = load_versioned_config(config_file)
    policy = config.get("policy") or {}
    ref = RepoRef.parse(repo_full)

    analysis = policy.get("security_and_analysis") or {}
    for key, status in analysis.items():
        if status not in FEATURE_STATUSES:
            raise PolicyValueError(
                detail=f"invalid value for policy.security_and_analysis.{key}: {status}"
            )

    if preview:
        ctx.reporter.preview(f"apply security policy on {ref}")
        return

    for endpoint, key, default in TOGGLE_ENDPOINTS:
        method = "PUT" if to_bool(policy.get(key), default) else "DELETE"
        ctx.gh.api(f"repos/{ref.org}/{ref.repo}/{endpoint}", method=method, allow_error=True)

    for key, status in analysis.items():
        result = ctx.gh.result(
            ["api", "-X", "PATCH", f"repos/{ref.org}/{ref.repo}", "--input", "-"],
            input_text=_analysis_payload(key, status),
        )
        if result.ok:
            continue
        stderr = result.stderr.strip()
        if PUBLIC_ADVANCED_SECURITY_NOTICE not in stderr:
            ctx.reporter.warn(
                f"security_and_analysis.{key} update failed: {stderr or result.stdout.strip()}"
            )

    ctx.reporter.line(f"updated: security policy {ref}")


def _analysis_payload(key: str, status: str) -> str:
    return json.dumps({"security_and_analysis": {key: {"status": status}}})


def apply_security_org(
    ctx: PolicyContext, org: str, config_file: Path, options: BatchOptions
) -> BatchSummary:
    def _apply(ref: RepoRef, _repo: RepoInfo) -> None:
        apply_security_repo(ctx, ref.full_name, config_file, options.preview)

    return apply_to_org(ctx, org, "security", options, _apply)


__all__ = ["apply_security_repo", "apply_security_org"]
