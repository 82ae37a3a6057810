"""Apply one per-repository operation across every repo of an organization."""

from __future__ import annotations

from typing import Callable, Iterable

from .context import PolicyContext
from .models import (
    APPLIED,
    FAILED,
    SKIPPED,
    BatchApplyError,
    BatchOptions,
    BatchSummary,
    RepoInfo,
    RepoOutcome,
    RepoRef,
)

RepoOperation = Callable[[RepoRef, RepoInfo], None]


def skip_reason(repo: RepoInfo, options: BatchOptions) -> str:
    """Return why ``repo`` is filtered out, or an empty string."""
    if repo.is_archived and not options.include_archived:
        return "archived"
    if not repo.is_public and not options.allow_private:
        return "private"
    return ""


def _apply_one(
    ctx: PolicyContext,
    ref: RepoRef,
    repo: RepoInfo,
    label: str,
    operation: RepoOperation,
) -> RepoOutcome:
    try:
        operation(ref, repo)
    except Exception as exc:
        ctx.reporter.error(f"{label} failed for {ref}: {str(exc).strip()}")
        return RepoOutcome(ref.full_name, FAILED, str(exc))
    return RepoOutcome(ref.full_name, APPLIED)


def collect_outcomes(
    ctx: PolicyContext,
    org: str,
    repos: Iterable[RepoInfo],
    label: str,
    options: BatchOptions,
    operation: RepoOperation,
) -> list[RepoOutcome]:
    """Run ``operation`` over ``repos`` in order, one outcome per repo examined."""
    outcomes: list[RepoOutcome] = []
    for repo in repos:
        if options.max_repos > 0 and len(outcomes) >= options.max_repos:
            break
        ref = RepoRef(org, repo.name)
        reason = skip_reason(repo, options)
        if reason:
            ctx.reporter.skip(f"{ref} ({reason})")
            outcomes.append(RepoOutcome(ref.full_name, SKIPPED, reason))
            continue
        outcomes.append(_apply_one(ctx, ref, repo, label, operation))
    return outcomes


def report_summary(ctx: PolicyContext, summary: BatchSummary) -> None:
    preview_flag = 1 if summary.preview else 0
    ctx.reporter.line(f"Summary: {summary.counters()} preview={preview_flag}")


def apply_to_org(
    ctx: PolicyContext,
    org: str,
    label: str,
    options: BatchOptions,
    operation: RepoOperation,
) -> BatchSummary:
    """List the org's repos and apply ``operation`` to each qualifying one.

    A failure in one repository is logged and counted without stopping the
    loop. Once the summary line is printed, ``BatchApplyError`` is raised if
    any repository failed.
    """
    repos = ctx.gh.list_repos(org)
    outcomes = collect_outcomes(ctx, org, repos, label, options, operation)
    summary = BatchSummary(outcomes=outcomes, preview=options.preview)
    report_summary(ctx, summary)
    if not summary.ok:
        raise BatchApplyError.with_failures(
            label=label, failed=summary.failed, seen=summary.seen
        )
    return summary


__all__ = [
    "RepoOperation",
    "skip_reason",
    "collect_outcomes",
    "report_summary",
    "apply_to_org",
]
