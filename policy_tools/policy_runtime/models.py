"""Core data models and exception types for the policy runtime."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .._messages import format_default_message

PREVIEW_ID = "PREVIEW_ID"


def _normalize_output(*sources: Optional[str]) -> str:
    """Return the first non-empty stripped string from the provided sources."""
    for source in sources:
        if source is not None:
            stripped = source.strip()
            if stripped:
                return stripped
    return ""


class PolicyError(RuntimeError):
    """Base class for policy runtime failures."""

    default_message = "Policy operation failed"

    def __init__(self, *, detail: Optional[str] = None) -> None:
        """Initialise the exception with an optional detail string."""
        self.detail = detail
        message = format_default_message(self.default_message, detail)
        super().__init__(message)


class ConfigLoadError(PolicyError):
    """Raised when a JSON config file cannot be read or parsed."""

    default_message = "Invalid config"

    @classmethod
    def invalid_json(cls, *, source: str, reason: str) -> "ConfigLoadError":
        """Factory when a file or command output is not valid JSON."""
        return cls(detail=f"invalid JSON in {source}: {reason}")

    @classmethod
    def invalid_field(cls, *, source: Path, field_name: str) -> "ConfigLoadError":
        """Factory when a required config section is missing or malformed."""
        return cls(detail=f"invalid or empty {field_name} in {source}")


class MissingConfigError(ConfigLoadError):
    """Raised when a required config file does not exist."""

    default_message = "Missing file"

    @classmethod
    def for_path(cls, path: Path) -> "MissingConfigError":
        return cls(detail=str(path))


class UnsupportedConfigVersionError(ConfigLoadError):
    """Raised when a config declares a schema version other than the supported one."""

    default_message = "Unsupported config version"

    @classmethod
    def found(cls, *, source: Path, version: object, expected: int) -> "UnsupportedConfigVersionError":
        """Factory naming the offending file and the version it declared."""
        return cls(detail=f"{source} declares version {version} (expected {expected})")


class UnknownRoleTokenError(PolicyError):
    """Raised when a team config references a role token with no known weight."""

    default_message = "Unknown role token in config"

    @classmethod
    def for_token(cls, token: str) -> "UnknownRoleTokenError":
        return cls(detail=token)


class RepoFormatError(PolicyError):
    """Raised when a repository reference is not of the form ORG/REPO."""

    default_message = "Invalid repo format"

    @classmethod
    def for_value(cls, value: str) -> "RepoFormatError":
        return cls(detail=f"'{value}' (expected ORG/REPO)")


class GhCommandError(PolicyError):
    """Raised when a gh invocation exits with a non-zero status."""

    default_message = "gh command failed"

    @classmethod
    def exit_status(
        cls, *, args: Sequence[str], returncode: int, stdout: str, stderr: str
    ) -> "GhCommandError":
        """Build an error carrying the most useful part of the captured output."""
        output = _normalize_output(stderr, stdout)
        if output:
            return cls(detail=output)
        joined = " ".join(args)
        return cls(detail=f"gh {joined} exited with status {returncode}")

    @classmethod
    def missing_tool(cls, tool: str) -> "GhCommandError":
        return cls(detail=f"missing required command: {tool}")


class UsageError(PolicyError):
    """Raised when a command is invoked with missing or malformed arguments."""

    default_message = "Usage"

    @classmethod
    def usage(cls, text: str) -> "UsageError":
        return cls(detail=text)

    @classmethod
    def flag_requires_value(cls, flag: str) -> "UsageError":
        return cls(detail=f"{flag} requires a value")

    @classmethod
    def flag_not_integer(cls, flag: str) -> "UsageError":
        return cls(detail=f"{flag} must be non-negative integer")

    @classmethod
    def missing_flag(cls, flag: str) -> "UsageError":
        return cls(detail=f"{flag} is required")

    @classmethod
    def missing_org(cls) -> "UsageError":
        return cls(detail="missing .org in config and --org was not provided")


class UnsupportedScriptError(PolicyError):
    """Raised when the compatibility shim receives an unknown script identifier."""

    default_message = "Unsupported script path"

    @classmethod
    def for_script(cls, script: str) -> "UnsupportedScriptError":
        return cls(detail=script)


class PolicyValueError(PolicyError):
    """Raised when a policy value inside an otherwise valid config is rejected."""

    default_message = "Invalid policy value"


class BatchApplyError(PolicyError):
    """Raised after a batch run in which at least one repository failed."""

    default_message = "Batch apply finished with failures"

    @classmethod
    def with_failures(cls, *, label: str, failed: int, seen: int) -> "BatchApplyError":
        """Factory summarising how many repositories failed for ``label``."""
        return cls(detail=f"{label}: {failed} of {seen} repositories failed")


@dataclass
class CommandResult:
    """Captured output from a completed subprocess invocation."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """Return True when the process exited successfully."""
        return self.returncode == 0

    @property
    def combined_output(self) -> str:
        """Return stdout and stderr concatenated together."""
        return f"{self.stdout}{self.stderr}"


@dataclass(frozen=True)
class RepoRef:
    """An ``org/repo`` pair."""

    org: str
    repo: str

    @classmethod
    def parse(cls, value: str) -> "RepoRef":
        parts = value.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise RepoFormatError.for_value(value)
        return cls(org=parts[0], repo=parts[1])

    @property
    def full_name(self) -> str:
        return f"{self.org}/{self.repo}"

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class RepoInfo:
    """Repository listing entry as returned by ``gh repo list``."""

    name: str
    visibility: str
    is_archived: bool

    @classmethod
    def from_listing(cls, entry: dict) -> "RepoInfo":
        """Build from a ``gh repo list --json`` entry, normalizing visibility case."""
        return cls(
            name=str(entry.get("name", "")),
            visibility=str(entry.get("visibility", "")).lower(),
            is_archived=bool(entry.get("isArchived", False)),
        )

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"


@dataclass(frozen=True)
class BatchOptions:
    """Filters and mode flags shared by every org-wide batch run."""

    preview: bool = False
    allow_private: bool = False
    include_archived: bool = False
    max_repos: int = 0


APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class RepoOutcome:
    """Result of processing one repository within a batch."""

    repo: str
    status: str
    reason: str = ""


@dataclass
class BatchSummary:
    """Counters derived from the outcomes of one batch run."""

    outcomes: list[RepoOutcome] = field(default_factory=list)
    preview: bool = False

    def _count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def seen(self) -> int:
        return len(self.outcomes)

    @property
    def applied(self) -> int:
        return self._count(APPLIED)

    @property
    def skipped(self) -> int:
        return self._count(SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(FAILED)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def counters(self) -> str:
        """Render the four counters in ``key=value`` form."""
        return (
            f"seen={self.seen} applied={self.applied} "
            f"skipped={self.skipped} failed={self.failed}"
        )

    @classmethod
    def merge(cls, summaries: Iterable["BatchSummary"], *, preview: bool = False) -> "BatchSummary":
        merged = cls(preview=preview)
        for summary in summaries:
            merged.outcomes.extend(summary.outcomes)
        return merged


__all__ = [
    "PREVIEW_ID",
    "PolicyError",
    "ConfigLoadError",
    "MissingConfigError",
    "UnsupportedConfigVersionError",
    "UnknownRoleTokenError",
    "RepoFormatError",
    "GhCommandError",
    "UsageError",
    "UnsupportedScriptError",
    "PolicyValueError",
    "BatchApplyError",
    "CommandResult",
    "RepoRef",
    "RepoInfo",
    "BatchOptions",
    "APPLIED",
    "SKIPPED",
    "FAILED",
    "RepoOutcome",
    "BatchSummary",
]
