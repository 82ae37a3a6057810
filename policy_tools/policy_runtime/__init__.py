"""Public API for the policy runtime package.

The submodules are the canonical location; this package re-exports the names
most callers need:
    from policy_tools.policy_runtime import PolicyContext, GhClient, Reporter
"""

from __future__ import annotations

from .batch import apply_to_org
from .config import (
    AppConfig,
    ManagementConfig,
    PolicyBundle,
    load_app_config,
    load_management_config,
    load_policy_bundle,
    load_versioned_config,
    resolve_path_from_root,
    resolve_repo_root,
)
from .console import COLOR, PLAIN, Reporter
from .context import PolicyContext
from .gh import GhClient, validate_required_tools
from .models import (
    PREVIEW_ID,
    BatchApplyError,
    BatchOptions,
    BatchSummary,
    CommandResult,
    ConfigLoadError,
    GhCommandError,
    MissingConfigError,
    PolicyError,
    PolicyValueError,
    RepoFormatError,
    RepoInfo,
    RepoOutcome,
    RepoRef,
    UnknownRoleTokenError,
    UnsupportedConfigVersionError,
    UnsupportedScriptError,
    UsageError,
)
from .permissions import resolve_effective_permission
from .process import run_command
from .upsert import UpsertResult, find_by_name, upsert_by_name

__all__ = [
    # ---- models ----
    "PREVIEW_ID",
    "BatchApplyError",
    "BatchOptions",
    "BatchSummary",
    "CommandResult",
    "ConfigLoadError",
    "GhCommandError",
    "MissingConfigError",
    "PolicyError",
    "PolicyValueError",
    "RepoFormatError",
    "RepoInfo",
    "RepoOutcome",
    "RepoRef",
    "UnknownRoleTokenError",
    "UnsupportedConfigVersionError",
    "UnsupportedScriptError",
    "UsageError",
    # ---- config ----
    "AppConfig",
    "ManagementConfig",
    "PolicyBundle",
    "load_app_config",
    "load_management_config",
    "load_policy_bundle",
    "load_versioned_config",
    "resolve_path_from_root",
    "resolve_repo_root",
    # ---- console ----
    "COLOR",
    "PLAIN",
    "Reporter",
    # ---- context / gh / process ----
    "PolicyContext",
    "GhClient",
    "validate_required_tools",
    "run_command",
    # ---- policy helpers ----
    "resolve_effective_permission",
    "UpsertResult",
    "find_by_name",
    "upsert_by_name",
    "apply_to_org",
]
