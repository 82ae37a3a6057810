"""Configuration loading, version checks and repository root resolution."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from .models import (
    ConfigLoadError,
    MissingConfigError,
    UnsupportedConfigVersionError,
)

SUPPORTED_CONFIG_VERSION = 1
ROOT_ENV_VAR = "REPO_POLICY_ROOT"
CONFIG_DIR = "config"
APP_CONFIG_PATH = f"{CONFIG_DIR}/app.config.json"
PACKAGE_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_BYPASS_TEAM_SLUG = "repo-bypass"
DEFAULT_REVIEWER_TEAM_SLUG = "repo-approvers"

DEFAULT_MODULE_CONFIGS: dict[str, str] = {
    "rulesets": "./config/management.json",
    "discussions": "./config/discussions.config.json",
    "actions": "./config/actions.config.json",
    "security": "./config/security.config.json",
    "environments": "./config/environments.config.json",
    "teams": "./config/teams.config.json",
}
DEFAULT_REPO_SETTINGS_CONFIG = "./config/repo-settings.config.json"
DEFAULT_RULESETS_CONFIG = "./config/rulesets.config.json"


def resolve_repo_root(
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    package_root: Path = PACKAGE_ROOT,
) -> Path:
    """Locate the directory that holds ``config/app.config.json``.

    Order: the ``REPO_POLICY_ROOT`` entry of ``env``, then ``cwd`` when it
    holds an app config, then ``package_root/dist``, then ``package_root``.
    """
    env = env if env is not None else {}
    override = env.get(ROOT_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser().resolve()

    working_dir = (cwd if cwd is not None else Path.cwd()).resolve()
    if (working_dir / APP_CONFIG_PATH).is_file():
        return working_dir

    packaged_dist = package_root / "dist"
    if (packaged_dist / APP_CONFIG_PATH).is_file():
        return packaged_dist

    return package_root


def resolve_path_from_root(root: Path, value: str) -> Path:
    """Resolve ``value`` against ``root`` unless it is already absolute."""
    candidate = Path(value)
    if candidate.is_absolute():
        return candidate
    if value.startswith("./"):
        value = value[2:]
    return (root / value).resolve()


def load_json_file(path: Path) -> Any:
    """Read and parse a JSON file.

    Raises:
        MissingConfigError: If the file does not exist
        ConfigLoadError: If the file is not valid JSON
    """
    if not path.is_file():
        raise MissingConfigError.for_path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigLoadError.invalid_json(source=str(path), reason=str(exc)) from exc


def ensure_version(path: Path, data: Mapping[str, Any]) -> None:
    """Reject configs whose ``version`` is not the supported schema version."""
    version = data.get("version", 0)
    if version is None:
        version = 0
    if isinstance(version, bool) or version != SUPPORTED_CONFIG_VERSION:
        raise UnsupportedConfigVersionError.found(
            source=path, version=version, expected=SUPPORTED_CONFIG_VERSION
        )


def load_versioned_config(path: Path) -> dict[str, Any]:
    """Load a JSON object from ``path`` and enforce the schema version."""
    data = load_json_file(path)
    if not isinstance(data, dict):
        msg = f"expected a JSON object in {path}, got {type(data).__name__}"
        raise ConfigLoadError(detail=msg)
    ensure_version(path, data)
    return data


def to_bool(value: Any, fallback: bool) -> bool:
    """Return ``value`` when it is a real boolean, else ``fallback``."""
    if isinstance(value, bool):
        return value
    return fallback


def to_int(value: Any, fallback: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return fallback


def _section(data: Mapping[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key)
    if isinstance(raw, dict):
        return raw
    return {}


def _str_value(data: Mapping[str, Any], key: str, fallback: str = "") -> str:
    raw = data.get(key)
    if isinstance(raw, str):
        return raw
    return fallback


@dataclass(frozen=True)
class ModuleSettings:
    """Enable flag and config path for one policy module."""

    enabled: bool
    config: str


@dataclass(frozen=True)
class RepoCreateSettings:
    enabled: bool = True
    visibility: str = "public"
    description: str = ""
    template: str = ""
    apply_repo_policy: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Application config: execution defaults plus per-module settings."""

    preview: bool = False
    allow_private: bool = True
    include_archived: bool = False
    max_repos: int = 0
    repo_create: RepoCreateSettings = field(default_factory=RepoCreateSettings)
    modules: dict[str, ModuleSettings] = field(default_factory=dict)
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppConfig":
        defaults = _section(data, "defaults")
        raw_modules = _section(data, "modules")

        modules: dict[str, ModuleSettings] = {}
        for name, default_path in DEFAULT_MODULE_CONFIGS.items():
            section = _section(raw_modules, name)
            modules[name] = ModuleSettings(
                enabled=to_bool(section.get("enabled"), True),
                config=_str_value(section, "config", default_path),
            )

        create_section = _section(raw_modules, "repo_create")
        visibility = "private" if create_section.get("visibility") == "private" else "public"
        repo_create = RepoCreateSettings(
            enabled=to_bool(create_section.get("enabled"), True),
            visibility=visibility,
            description=_str_value(create_section, "description"),
            template=_str_value(create_section, "template"),
            apply_repo_policy=to_bool(create_section.get("apply_repo_policy"), True),
        )

        rulesets_section = _section(raw_modules, "rulesets")
        return cls(
            preview=to_bool(defaults.get("preview"), False),
            allow_private=to_bool(defaults.get("allow_private"), True),
            include_archived=to_bool(defaults.get("include_archived"), False),
            max_repos=to_int(defaults.get("max_repos"), 0),
            repo_create=repo_create,
            modules=modules,
            bypass_team_slug=_str_value(
                rulesets_section, "bypass_team_slug", DEFAULT_BYPASS_TEAM_SLUG
            ),
            reviewer_team_slug=_str_value(
                rulesets_section, "reviewer_team_slug", DEFAULT_REVIEWER_TEAM_SLUG
            ),
        )

    def module(self, name: str) -> ModuleSettings:
        return self.modules.get(name, ModuleSettings(True, DEFAULT_MODULE_CONFIGS[name]))


@dataclass(frozen=True)
class CreateRepoSpec:
    """One entry of ``operations.create_repos`` in the management config."""

    org: str
    name: str
    visibility: str = "public"
    description: str = ""
    template: str = ""
    apply_policy: bool = True


@dataclass(frozen=True)
class ManagementConfig:
    """Management config: execution defaults, policy paths and operation lists."""

    preview: bool = True
    allow_private: bool = False
    max_repos_per_org: int = 0
    repo_settings_config: str = DEFAULT_REPO_SETTINGS_CONFIG
    rulesets_config: str = DEFAULT_RULESETS_CONFIG
    ruleset_name: str = ""
    bypass_team_slug: str = DEFAULT_BYPASS_TEAM_SLUG
    reviewer_team_slug: str = DEFAULT_REVIEWER_TEAM_SLUG
    create_repos: tuple[CreateRepoSpec, ...] = ()
    apply_org_enabled: bool = False
    apply_org_orgs: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManagementConfig":
        execution = _section(data, "execution")
        policy = _section(data, "policy")
        operations = _section(data, "operations")
        apply_org = _section(operations, "apply_org_policy")

        create_repos: list[CreateRepoSpec] = []
        raw_create = operations.get("create_repos")
        for entry in raw_create if isinstance(raw_create, list) else []:
            if not isinstance(entry, dict):
                continue
            create_repos.append(
                CreateRepoSpec(
                    org=_str_value(entry, "org"),
                    name=_str_value(entry, "name"),
                    visibility="private" if entry.get("visibility") == "private" else "public",
                    description=_str_value(entry, "description"),
                    template=_str_value(entry, "template"),
                    apply_policy=to_bool(entry.get("apply_policy"), True),
                )
            )

        raw_orgs = apply_org.get("orgs")
        orgs = tuple(str(org) for org in raw_orgs) if isinstance(raw_orgs, list) else ()
        return cls(
            preview=to_bool(execution.get("preview"), True),
            allow_private=to_bool(execution.get("allow_private"), False),
            max_repos_per_org=to_int(execution.get("max_repos_per_org"), 0),
            repo_settings_config=_str_value(
                policy, "repo_settings_config", DEFAULT_REPO_SETTINGS_CONFIG
            ),
            rulesets_config=_str_value(policy, "rulesets_config", DEFAULT_RULESETS_CONFIG),
            ruleset_name=_str_value(policy, "ruleset_name"),
            bypass_team_slug=_str_value(policy, "bypass_team_slug", DEFAULT_BYPASS_TEAM_SLUG),
            reviewer_team_slug=_str_value(
                policy, "reviewer_team_slug", DEFAULT_REVIEWER_TEAM_SLUG
            ),
            create_repos=tuple(create_repos),
            apply_org_enabled=to_bool(apply_org.get("enabled"), False),
            apply_org_orgs=orgs,
        )


@dataclass(frozen=True)
class PolicyBundle:
    """Repo settings patch and rulesets referenced by a management config."""

    management: ManagementConfig
    repo_settings: dict[str, Any]
    rulesets: list[dict[str, Any]]

    @property
    def ruleset_name(self) -> str:
        return self.management.ruleset_name


def load_app_config(repo_root: Path) -> AppConfig:
    return AppConfig.from_dict(load_versioned_config(repo_root / APP_CONFIG_PATH))


def load_management_config(path: Path) -> ManagementConfig:
    return ManagementConfig.from_dict(load_versioned_config(path))


def load_policy_bundle(repo_root: Path, management_path: Path) -> PolicyBundle:
    """Load the management config and the two policy files it points at."""
    management = load_management_config(management_path)

    settings_path = resolve_path_from_root(repo_root, management.repo_settings_config)
    settings_config = load_versioned_config(settings_path)
    repo_settings = settings_config.get("settings")
    if not isinstance(repo_settings, dict):
        raise ConfigLoadError.invalid_field(source=settings_path, field_name="settings")

    rulesets_path = resolve_path_from_root(repo_root, management.rulesets_config)
    rulesets_config = load_versioned_config(rulesets_path)
    rulesets = rulesets_config.get("rulesets")
    if not isinstance(rulesets, list) or not rulesets:
        raise ConfigLoadError.invalid_field(source=rulesets_path, field_name="rulesets")

    return PolicyBundle(
        management=management,
        repo_settings=repo_settings,
        rulesets=[dict(item) for item in rulesets if isinstance(item, dict)],
    )


__all__ = [
    "SUPPORTED_CONFIG_VERSION",
    "ROOT_ENV_VAR",
    "CONFIG_DIR",
    "APP_CONFIG_PATH",
    "PACKAGE_ROOT",
    "DEFAULT_BYPASS_TEAM_SLUG",
    "DEFAULT_REVIEWER_TEAM_SLUG",
    "DEFAULT_MODULE_CONFIGS",
    "resolve_repo_root",
    "resolve_path_from_root",
    "load_json_file",
    "ensure_version",
    "load_versioned_config",
    "to_bool",
    "to_int",
    "ModuleSettings",
    "RepoCreateSettings",
    "AppConfig",
    "CreateRepoSpec",
    "ManagementConfig",
    "PolicyBundle",
    "load_app_config",
    "load_management_config",
    "load_policy_bundle",
]
