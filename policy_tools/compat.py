"""Dispatch table for the legacy ``scripts/*`` command ids accepted by ``exec``."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Callable, Sequence

from .flows import (
    run_apply_org_flow,
    run_create_flow,
    run_init_teams_flow,
    run_manage,
    run_remove_teams_flow,
    run_validate_flow,
)
from .operations.actions import apply_actions_org, apply_actions_repo
from .operations.discussions import ensure_discussions_org, ensure_discussions_repo
from .operations.environments import apply_environments_org, apply_environments_repo
from .operations.repo_settings import (
    CreateRepoOptions,
    apply_one_repo_policy,
    apply_org_policy,
    create_repo_core,
)
from .operations.rulesets import apply_rulesets_org, apply_rulesets_repo
from .operations.security import apply_security_org, apply_security_repo
from .operations.teams import (
    DEFAULT_OWNER_USER,
    TeamsOptions,
    ensure_org_teams,
    init_teams,
    remove_teams,
)
from .policy_runtime.config import (
    DEFAULT_BYPASS_TEAM_SLUG,
    DEFAULT_REVIEWER_TEAM_SLUG,
    load_management_config,
    load_versioned_config,
    to_bool,
)
from .policy_runtime.context import PolicyContext
from .policy_runtime.models import (
    BatchOptions,
    UnsupportedScriptError,
    UsageError,
)
from .utils.flags import (
    MANAGE_COMMANDS,
    has_flag,
    parse_flag_value,
    parse_int_flag,
    parse_org_list,
)

MANAGEMENT_CONFIG = "./config/management.json"
DRY_RUN_FLAG = "--dry-run"


class CompatOperation(Enum):
    CREATE_REPO_FLOW = "create_repo_flow"
    APPLY_ORG_CONFIG = "apply_org_config"
    INIT_ORG_TEAMS = "init_org_teams"
    REMOVE_ORG_TEAMS = "remove_org_teams"
    VALIDATE_PROJECT = "validate_project"
    UPDATE_RULESETS_REPO = "update_rulesets_repo"
    UPDATE_RULESETS_ORG = "update_rulesets_org"
    UPDATE_ACTIONS_REPO = "update_actions_policy_repo"
    UPDATE_ACTIONS_ORG = "update_actions_policy_org"
    UPDATE_SECURITY_REPO = "update_security_policy_repo"
    UPDATE_SECURITY_ORG = "update_security_policy_org"
    UPDATE_ENVIRONMENTS_REPO = "update_environments_repo"
    UPDATE_ENVIRONMENTS_ORG = "update_environments_org"
    INIT_DISCUSSIONS_REPO = "init_discussions_repo"
    INIT_DISCUSSIONS_ORG = "init_discussions_org"
    INIT_TEAMS = "init_teams"
    REMOVE_TEAMS_ORG = "remove_teams_org"
    ENSURE_ORG_TEAMS = "ensure_org_teams"
    APPLY_ONE_REPO_POLICY = "apply_one_repo_policy"
    CREATE_REPO = "create_repo"
    APPLY_ORG_POLICY = "apply_org_policy"
    MANAGE = "manage"


# (legacy path without extension, operation)
_LEGACY_STEMS: tuple[tuple[str, CompatOperation], ...] = (
    ("scripts/end/create_repo", CompatOperation.CREATE_REPO_FLOW),
    ("scripts/end/apply_org_config", CompatOperation.APPLY_ORG_CONFIG),
    ("scripts/end/init_org_teams", CompatOperation.INIT_ORG_TEAMS),
    ("scripts/end/remove_org_teams", CompatOperation.REMOVE_ORG_TEAMS),
    ("scripts/validate_project", CompatOperation.VALIDATE_PROJECT),
    ("scripts/update_rulesets_repo", CompatOperation.UPDATE_RULESETS_REPO),
    ("scripts/update_rulesets_org", CompatOperation.UPDATE_RULESETS_ORG),
    ("scripts/update_actions_policy_repo", CompatOperation.UPDATE_ACTIONS_REPO),
    ("scripts/update_actions_policy_org", CompatOperation.UPDATE_ACTIONS_ORG),
    ("scripts/update_security_policy_repo", CompatOperation.UPDATE_SECURITY_REPO),
    ("scripts/update_security_policy_org", CompatOperation.UPDATE_SECURITY_ORG),
    ("scripts/update_environments_repo", CompatOperation.UPDATE_ENVIRONMENTS_REPO),
    ("scripts/update_environments_org", CompatOperation.UPDATE_ENVIRONMENTS_ORG),
    ("scripts/init_discussions_repo", CompatOperation.INIT_DISCUSSIONS_REPO),
    ("scripts/init_discussions_org", CompatOperation.INIT_DISCUSSIONS_ORG),
    ("scripts/init_teams", CompatOperation.INIT_TEAMS),
    ("scripts/remove_teams_org", CompatOperation.REMOVE_TEAMS_ORG),
    ("scripts/ensure_org_teams", CompatOperation.ENSURE_ORG_TEAMS),
    ("scripts/apply_one_repo_policy", CompatOperation.APPLY_ONE_REPO_POLICY),
    ("apply_one_repo_policy", CompatOperation.APPLY_ONE_REPO_POLICY),
    ("scripts/create_repo", CompatOperation.CREATE_REPO),
    ("scripts/apply_org_policy", CompatOperation.APPLY_ORG_POLICY),
    ("scripts/gh_manage", CompatOperation.MANAGE),
    ("manage", CompatOperation.MANAGE),
)

LEGACY_IDS: dict[str, CompatOperation] = {
    f"{stem}{suffix}": operation
    for stem, operation in _LEGACY_STEMS
    for suffix in (".sh", ".ts")
}


def normalize_script_id(script: str) -> str:
    """Strip a leading ``./`` and then a leading ``src/``."""
    normalized = script[2:] if script.startswith("./") else script
    if normalized.startswith("src/"):
        normalized = normalized[len("src/"):]
    return normalized


def lookup_operation(script: str) -> CompatOperation:
    try:
        return LEGACY_IDS[normalize_script_id(script)]
    except KeyError:
        raise UnsupportedScriptError.for_script(script) from None


def _config_path(ctx: PolicyContext, args: Sequence[str], default: str) -> Path:
    return ctx.resolve(parse_flag_value(args, "--config", default))


def _positional(args: Sequence[str], count: int, usage: str) -> list[str]:
    values = list(args[:count])
    if len(values) < count or any(not value or value.startswith("--") for value in values):
        raise UsageError.usage(usage)
    return values


def _required_flag(args: Sequence[str], flag: str) -> str:
    value = parse_flag_value(args, flag)
    if not value:
        raise UsageError.missing_flag(flag)
    return value


def _org_from_flag_or_config(args: Sequence[str], config: dict) -> str:
    fallback = config.get("org") if isinstance(config.get("org"), str) else ""
    org = parse_flag_value(args, "--org", fallback)
    if not org:
        raise UsageError.missing_org()
    return org


def _org_batch_options(args: Sequence[str], config: dict) -> BatchOptions:
    execution = config.get("execution") if isinstance(config.get("execution"), dict) else {}
    return BatchOptions(
        preview=has_flag(args, DRY_RUN_FLAG),
        allow_private=has_flag(args, "--allow-private")
        or to_bool(execution.get("include_private"), True),
        include_archived=has_flag(args, "--include-archived")
        or to_bool(execution.get("include_archived"), False),
        max_repos=parse_int_flag(args, "--max-repos", 0),
    )


def _plain_batch_options(args: Sequence[str]) -> BatchOptions:
    return BatchOptions(
        preview=has_flag(args, DRY_RUN_FLAG),
        allow_private=has_flag(args, "--allow-private"),
        include_archived=has_flag(args, "--include-archived"),
        max_repos=parse_int_flag(args, "--max-repos", 0),
    )


def _team_slugs(args: Sequence[str]) -> dict[str, str]:
    return {
        "bypass_team_slug": parse_flag_value(args, "--bypass-team-slug", DEFAULT_BYPASS_TEAM_SLUG),
        "reviewer_team_slug": parse_flag_value(
            args, "--reviewer-team-slug", DEFAULT_REVIEWER_TEAM_SLUG
        ),
    }


def _create_repo_flow(ctx: PolicyContext, args: Sequence[str]) -> None:
    org, repo = _positional(args, 2, "create_repo <org> <repo>")
    run_create_flow(ctx, org, repo)


def _apply_org_config(ctx: PolicyContext, args: Sequence[str]) -> None:
    (org,) = _positional(args, 1, "apply_org_config <org>")
    run_apply_org_flow(ctx, org)


def _init_org_teams(ctx: PolicyContext, args: Sequence[str]) -> None:
    (org,) = _positional(args, 1, "init_org_teams <org>")
    run_init_teams_flow(ctx, org)


def _remove_org_teams(ctx: PolicyContext, args: Sequence[str]) -> None:
    (org,) = _positional(args, 1, "remove_org_teams <org>")
    run_remove_teams_flow(ctx, org)


def _validate_project(ctx: PolicyContext, _args: Sequence[str]) -> None:
    run_validate_flow(ctx)


def _update_rulesets_repo(ctx: PolicyContext, args: Sequence[str]) -> None:
    apply_rulesets_repo(
        ctx,
        _required_flag(args, "--repo"),
        _config_path(ctx, args, MANAGEMENT_CONFIG),
        preview=has_flag(args, DRY_RUN_FLAG),
        **_team_slugs(args),
    )


def _update_rulesets_org(ctx: PolicyContext, args: Sequence[str]) -> None:
    options = BatchOptions(
        preview=has_flag(args, DRY_RUN_FLAG),
        allow_private=has_flag(args, "--allow-private"),
        max_repos=parse_int_flag(args, "--max-repos", 0),
    )
    apply_rulesets_org(
        ctx,
        _required_flag(args, "--org"),
        _config_path(ctx, args, MANAGEMENT_CONFIG),
        options,
        **_team_slugs(args),
    )


def _repo_module(
    apply_repo: Callable[[PolicyContext, str, Path, bool], None], default_config: str
) -> Callable[[PolicyContext, Sequence[str]], None]:
    def handler(ctx: PolicyContext, args: Sequence[str]) -> None:
        apply_repo(
            ctx,
            _required_flag(args, "--repo"),
            _config_path(ctx, args, default_config),
            has_flag(args, DRY_RUN_FLAG),
        )

    return handler


def _org_module(
    apply_org: Callable[[PolicyContext, str, Path, BatchOptions], object], default_config: str
) -> Callable[[PolicyContext, Sequence[str]], None]:
    """Org batch whose org and execution defaults may come from the module config."""

    def handler(ctx: PolicyContext, args: Sequence[str]) -> None:
        config_file = _config_path(ctx, args, default_config)
        config = load_versioned_config(config_file)
        apply_org(
            ctx,
            _org_from_flag_or_config(args, config),
            config_file,
            _org_batch_options(args, config),
        )

    return handler


def _init_discussions_org(ctx: PolicyContext, args: Sequence[str]) -> None:
    ensure_discussions_org(
        ctx,
        _required_flag(args, "--org"),
        _config_path(ctx, args, "./config/discussions.config.json"),
        _plain_batch_options(args),
    )


def _init_teams(ctx: PolicyContext, args: Sequence[str]) -> None:
    config_file = _config_path(ctx, args, "./config/teams.config.json")
    config = load_versioned_config(config_file)
    init_teams(
        ctx,
        _org_from_flag_or_config(args, config),
        config_file,
        TeamsOptions(
            preview=has_flag(args, DRY_RUN_FLAG),
            max_repos=parse_int_flag(args, "--max-repos", 0),
            include_archived=has_flag(args, "--include-archived"),
        ),
    )


def _remove_teams_org(ctx: PolicyContext, args: Sequence[str]) -> None:
    remove_teams(
        ctx,
        _required_flag(args, "--org"),
        _config_path(ctx, args, "./config/teams.config.json"),
        has_flag(args, DRY_RUN_FLAG),
    )


def _ensure_org_teams(ctx: PolicyContext, args: Sequence[str]) -> None:
    (org,) = _positional(args, 1, "ensure_org_teams <org> [--owner-user USER] [--dry-run]")
    ensure_org_teams(
        ctx,
        org,
        owner_user=parse_flag_value(args, "--owner-user", DEFAULT_OWNER_USER),
        preview=has_flag(args, DRY_RUN_FLAG),
    )


def _apply_one_repo_policy(ctx: PolicyContext, args: Sequence[str]) -> None:
    org, repo = _positional(args, 2, "apply_one_repo_policy <org> <repo> [options]")
    rest = args[2:]
    archived_flag = parse_flag_value(rest, "--repo-archived")
    apply_one_repo_policy(
        ctx,
        f"{org}/{repo}",
        ctx.resolve(MANAGEMENT_CONFIG),
        allow_private=has_flag(rest, "--allow-private"),
        preview=has_flag(rest, DRY_RUN_FLAG),
        visibility=parse_flag_value(rest, "--repo-visibility").lower() or None,
        archived=archived_flag.lower() == "true" if archived_flag else None,
    )


def _create_repo(ctx: PolicyContext, args: Sequence[str]) -> None:
    org, repo = _positional(args, 2, "create_repo <org> <repo> [options]")
    rest = args[2:]
    create_repo_core(
        ctx,
        org,
        repo,
        ctx.resolve(MANAGEMENT_CONFIG),
        CreateRepoOptions(
            visibility="private" if has_flag(rest, "--private") else "public",
            description=parse_flag_value(rest, "--description"),
            template=parse_flag_value(rest, "--template"),
            apply_policy=not has_flag(rest, "--no-apply-policy"),
            allow_private_policy=has_flag(rest, "--allow-private-policy"),
            preview=has_flag(rest, DRY_RUN_FLAG),
        ),
    )


def _apply_org_policy(ctx: PolicyContext, args: Sequence[str]) -> None:
    config_file = ctx.resolve(MANAGEMENT_CONFIG)
    orgs = parse_org_list(args)
    if not orgs:
        orgs = list(load_management_config(config_file).apply_org_orgs)
    if not orgs:
        raise UsageError.usage("apply_org_policy <org> [<org> ...] [options]")
    apply_org_policy(
        ctx,
        orgs,
        config_file,
        BatchOptions(
            preview=has_flag(args, DRY_RUN_FLAG),
            allow_private=has_flag(args, "--allow-private"),
            max_repos=parse_int_flag(args, "--max-repos", 0),
        ),
    )


def _manage(ctx: PolicyContext, args: Sequence[str]) -> None:
    command = next((arg for arg in args if arg in MANAGE_COMMANDS), "")
    if not command:
        raise UsageError.usage("gh_manage <validate|plan|run> [--config FILE]")
    run_manage(ctx, command, parse_flag_value(args, "--config", MANAGEMENT_CONFIG))


HANDLERS: dict[CompatOperation, Callable[[PolicyContext, Sequence[str]], None]] = {
    CompatOperation.CREATE_REPO_FLOW: _create_repo_flow,
    CompatOperation.APPLY_ORG_CONFIG: _apply_org_config,
    CompatOperation.INIT_ORG_TEAMS: _init_org_teams,
    CompatOperation.REMOVE_ORG_TEAMS: _remove_org_teams,
    CompatOperation.VALIDATE_PROJECT: _validate_project,
    CompatOperation.UPDATE_RULESETS_REPO: _update_rulesets_repo,
    CompatOperation.UPDATE_RULESETS_ORG: _update_rulesets_org,
    CompatOperation.UPDATE_ACTIONS_REPO: _repo_module(
        apply_actions_repo, "./config/actions.config.json"
    ),
    CompatOperation.UPDATE_ACTIONS_ORG: _org_module(
        apply_actions_org, "./config/actions.config.json"
    ),
    CompatOperation.UPDATE_SECURITY_REPO: _repo_module(
        apply_security_repo, "./config/security.config.json"
    ),
    CompatOperation.UPDATE_SECURITY_ORG: _org_module(
        apply_security_org, "./config/security.config.json"
    ),
    CompatOperation.UPDATE_ENVIRONMENTS_REPO: _repo_module(
        apply_environments_repo, "./config/environments.config.json"
    ),
    CompatOperation.UPDATE_ENVIRONMENTS_ORG: _org_module(
        apply_environments_org, "./config/environments.config.json"
    ),
    CompatOperation.INIT_DISCUSSIONS_REPO: _repo_module(
        ensure_discussions_repo, "./config/discussions.config.json"
    ),
    CompatOperation.INIT_DISCUSSIONS_ORG: _init_discussions_org,
    CompatOperation.INIT_TEAMS: _init_teams,
    CompatOperation.REMOVE_TEAMS_ORG: _remove_teams_org,
    CompatOperation.ENSURE_ORG_TEAMS: _ensure_org_teams,
    CompatOperation.APPLY_ONE_REPO_POLICY: _apply_one_repo_policy,
    CompatOperation.CREATE_REPO: _create_repo,
    CompatOperation.APPLY_ORG_POLICY: _apply_org_policy,
    CompatOperation.MANAGE: _manage,
}


def run_compat_script(ctx: PolicyContext, script: str, args: Sequence[str]) -> None:
    """Run the operation behind a legacy script id.

    Raises:
        UnsupportedScriptError: If ``script`` is not a known id
    """
    HANDLERS[lookup_operation(script)](ctx, list(args))


__all__ = [
    "CompatOperation",
    "LEGACY_IDS",
    "HANDLERS",
    "normalize_script_id",
    "lookup_operation",
    "run_compat_script",
]
