"""Top-level flows behind the CLI sub-commands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

from .operations.actions import apply_actions_org, apply_actions_repo
from .operations.discussions import ensure_discussions_org, ensure_discussions_repo
from .operations.environments import apply_environments_org, apply_environments_repo
from .operations.repo_settings import (
    CreateRepoOptions,
    apply_org_policy,
    create_repo_core,
)
from .operations.rulesets import apply_rulesets_org, apply_rulesets_repo
from .operations.security import apply_security_org, apply_security_repo
from .operations.teams import (
    TeamsOptions,
    apply_team_plans,
    load_team_plans,
    remove_teams,
)
from .policy_runtime.config import (
    CONFIG_DIR,
    AppConfig,
    load_app_config,
    load_management_config,
    load_policy_bundle,
    load_versioned_config,
)
from .policy_runtime.context import PolicyContext
from .policy_runtime.gh import GH_EXECUTABLE, validate_required_tools
from .policy_runtime.models import (
    BatchApplyError,
    BatchOptions,
    UsageError,
)
from .policy_runtime.process import command_available

OPTIONAL_CREATE_MODULES = ("discussions", "actions", "security", "environments")
DOCTOR_TOOLS = (GH_EXECUTABLE, "git")


def preflight(ctx: PolicyContext) -> None:
    """Require gh on PATH and an authenticated gh session."""
    validate_required_tools()
    ctx.reporter.line("Checking GitHub auth...")
    ctx.gh.check_auth()


def _batch_options(app: AppConfig) -> BatchOptions:
    return BatchOptions(
        preview=app.preview,
        allow_private=app.allow_private,
        include_archived=app.include_archived,
        max_repos=app.max_repos,
    )


def run_create_flow(ctx: PolicyContext, org: str, repo: str) -> list[str]:
    """Create one repo and apply every enabled module to it.

    Repo creation and rulesets abort the flow on failure. The remaining
    modules are attempted independently; their names are returned when they
    fail.
    """
    app = load_app_config(ctx.repo_root)
    preflight(ctx)

    repo_full = f"{org}/{repo}"
    rulesets_cfg = ctx.resolve(app.module("rulesets").config)

    if app.repo_create.enabled:
        create_repo_core(
            ctx,
            org,
            repo,
            rulesets_cfg,
            CreateRepoOptions(
                visibility=app.repo_create.visibility,
                description=app.repo_create.description,
                template=app.repo_create.template,
                apply_policy=app.repo_create.apply_repo_policy,
                allow_private_policy=True,
                preview=app.preview,
            ),
            bypass_team_slug=app.bypass_team_slug,
            reviewer_team_slug=app.reviewer_team_slug,
        )

    if app.module("rulesets").enabled:
        apply_rulesets_repo(
            ctx,
            repo_full,
            rulesets_cfg,
            preview=app.preview,
            bypass_team_slug=app.bypass_team_slug,
            reviewer_team_slug=app.reviewer_team_slug,
        )

    optional: dict[str, Callable[[str, Path, bool], None]] = {
        "discussions": lambda name, path, preview: ensure_discussions_repo(ctx, name, path, preview),
        "actions": lambda name, path, preview: apply_actions_repo(ctx, name, path, preview),
        "security": lambda name, path, preview: apply_security_repo(ctx, name, path, preview),
        "environments": lambda name, path, preview: apply_environments_repo(ctx, name, path, preview),
    }
    failures: list[str] = []
    for module_name in OPTIONAL_CREATE_MODULES:
        settings = app.module(module_name)
        if not settings.enabled:
            continue
        try:
            optional[module_name](repo_full, ctx.resolve(settings.config), app.preview)
        except Exception as exc:
            ctx.reporter.error(f"{module_name} failed for {repo_full}: {exc}")
            failures.append(module_name)

    if failures:
        ctx.reporter.warn(f"create flow completed with optional failures: {' '.join(failures)}")
    else:
        ctx.reporter.line(f"Done: create flow completed for {repo_full}")
    return failures


def run_apply_org_flow(ctx: PolicyContext, org: str) -> None:
    """Run every enabled module's org batch; fail afterwards if any batch failed."""
    app = load_app_config(ctx.repo_root)
    preflight(ctx)
    options = _batch_options(app)

    batches: list[tuple[str, Callable[[Path], object]]] = [
        (
            "rulesets",
            lambda path: apply_rulesets_org(
                ctx,
                org,
                path,
                options,
                bypass_team_slug=app.bypass_team_slug,
                reviewer_team_slug=app.reviewer_team_slug,
            ),
        ),
        ("actions", lambda path: apply_actions_org(ctx, org, path, options)),
        ("security", lambda path: apply_security_org(ctx, org, path, options)),
        ("environments", lambda path: apply_environments_org(ctx, org, path, options)),
        ("discussions", lambda path: ensure_discussions_org(ctx, org, path, options)),
    ]

    failed_modules: list[str] = []
    for module_name, run_batch in batches:
        settings = app.module(module_name)
        if not settings.enabled:
            continue
        ctx.reporter.header(f"{module_name}: {org}")
        try:
            run_batch(ctx.resolve(settings.config))
        except BatchApplyError as exc:
            ctx.reporter.error(str(exc))
            failed_modules.append(module_name)

    if failed_modules:
        raise BatchApplyError(detail=f"{org}: {', '.join(failed_modules)}")


def run_init_teams_flow(ctx: PolicyContext, org: str) -> None:
    app = load_app_config(ctx.repo_root)
    settings = app.module("teams")
    if not settings.enabled:
        ctx.reporter.line("Teams module disabled in app config")
        return

    plans = load_team_plans(ctx.resolve(settings.config))
    preflight(ctx)
    apply_team_plans(
        ctx,
        org,
        plans,
        TeamsOptions(
            preview=app.preview,
            max_repos=app.max_repos,
            include_archived=app.include_archived,
        ),
    )


def run_remove_teams_flow(ctx: PolicyContext, org: str) -> None:
    app = load_app_config(ctx.repo_root)
    teams_cfg = ctx.resolve(app.module("teams").config)
    preflight(ctx)
    remove_teams(ctx, org, teams_cfg, app.preview)


def run_validate_flow(ctx: PolicyContext) -> int:
    """Parse and version-check every JSON file under ``config/``."""
    config_dir = ctx.repo_root / CONFIG_DIR
    ctx.reporter.line("Validating JSON configs...")
    checked = 0
    for path in sorted(config_dir.rglob("*.json")):
        load_versioned_config(path)
        ctx.reporter.line(f"  OK {path}")
        checked += 1
    ctx.reporter.line("")
    ctx.reporter.line("Validation complete.")
    return checked


def run_manage(ctx: PolicyContext, command: str, config_file: str) -> None:
    """Validate, plan or run the operations listed in a management config."""
    if command not in ("validate", "plan", "run"):
        raise UsageError.usage("gh_manage <validate|plan|run> [--config FILE]")

    config_path = ctx.resolve(config_file)
    management = load_management_config(config_path)
    if command == "validate":
        ctx.reporter.line("Validation OK")
        return

    bundle = load_policy_bundle(ctx.repo_root, config_path)
    ctx.reporter.line(f"Config: {config_path}")
    ctx.reporter.line("rulesets:")
    for ruleset in bundle.rulesets:
        name = ruleset.get("name")
        ctx.reporter.line(f"- {name if isinstance(name, str) else '<unnamed>'}")
    ctx.reporter.line(f"preview={str(management.preview).lower()}")
    ctx.reporter.line(f"allow_private={str(management.allow_private).lower()}")
    ctx.reporter.line(f"max_repos={management.max_repos_per_org}")

    ctx.reporter.line("")
    ctx.reporter.line("Create repos:")
    if not management.create_repos:
        ctx.reporter.line("- none")
    for item in management.create_repos:
        ctx.reporter.line(
            f"- {item.org}/{item.name} visibility={item.visibility} "
            f"apply_policy={str(item.apply_policy).lower()}"
        )

    apply_orgs = management.apply_org_orgs if management.apply_org_enabled else ()
    ctx.reporter.line("")
    ctx.reporter.line("Apply org policy:")
    if not apply_orgs:
        ctx.reporter.line("- disabled")
    for org in apply_orgs:
        ctx.reporter.line(f"- {org}")

    if command == "plan":
        return

    for item in management.create_repos:
        create_repo_core(
            ctx,
            item.org,
            item.name,
            config_path,
            CreateRepoOptions(
                visibility=item.visibility,
                description=item.description,
                template=item.template,
                apply_policy=item.apply_policy,
                allow_private_policy=management.allow_private,
                preview=management.preview,
            ),
            bypass_team_slug=management.bypass_team_slug,
            reviewer_team_slug=management.reviewer_team_slug,
        )

    if apply_orgs:
        apply_org_policy(
            ctx,
            list(apply_orgs),
            config_path,
            BatchOptions(
                preview=management.preview,
                allow_private=management.allow_private,
                max_repos=management.max_repos_per_org,
            ),
            bypass_team_slug=management.bypass_team_slug,
            reviewer_team_slug=management.reviewer_team_slug,
        )


def run_doctor(ctx: PolicyContext) -> bool:
    """Report which required tools are on PATH and whether gh is authenticated."""
    healthy = True
    for tool in DOCTOR_TOOLS:
        ok = command_available(tool)
        healthy = healthy and ok
        ctx.reporter.info(f"{'OK' if ok else 'MISSING'} {tool}")
    if command_available(GH_EXECUTABLE):
        authed = ctx.gh.succeeds(["auth", "status"])
        healthy = healthy and authed
        ctx.reporter.info(f"{'OK' if authed else 'MISSING'} gh auth")
    ctx.reporter.info(f"OK python {sys.version.split()[0]}")
    ctx.reporter.info(f"root {ctx.repo_root}")
    return healthy


__all__ = [
    "preflight",
    "run_create_flow",
    "run_apply_org_flow",
    "run_init_teams_flow",
    "run_remove_teams_flow",
    "run_validate_flow",
    "run_manage",
    "run_doctor",
]
