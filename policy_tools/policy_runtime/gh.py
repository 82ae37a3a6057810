"""Thin wrapper around the ``gh`` command-line client."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from .models import CommandResult, ConfigLoadError, GhCommandError, RepoInfo
from .process import command_available, run_command

GH_EXECUTABLE = "gh"
REPO_LIST_LIMIT = 200
REPO_LIST_FIELDS = "name,visibility,isArchived"

Runner = Callable[..., CommandResult]


def parse_json_text(raw: str, source: str) -> Any:
    """Parse JSON produced by gh, naming ``source`` when it is malformed."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigLoadError.invalid_json(source=source, reason=str(exc)) from exc


class GhClient:
    """Runs gh sequentially; every call blocks until the subprocess exits."""

    def __init__(
        self,
        *,
        cwd: Optional[Path] = None,
        executable: str = GH_EXECUTABLE,
        runner: Runner = run_command,
    ) -> None:
        self.cwd = cwd
        self.executable = executable
        self._runner = runner

    def result(self, args: Sequence[str], *, input_text: Optional[str] = None) -> CommandResult:
        """Run ``gh ARGS`` and return the captured result whatever its status.

        Raises:
            GhCommandError: If the gh executable cannot be started
        """
        try:
            return self._runner([self.executable, *args], cwd=self.cwd, input_text=input_text)
        except OSError as exc:
            raise GhCommandError.missing_tool(self.executable) from exc

    def run(
        self,
        args: Sequence[str],
        *,
        input_text: Optional[str] = None,
        allow_error: bool = False,
    ) -> str:
        """Run ``gh ARGS`` and return stripped stdout.

        Raises:
            GhCommandError: On a non-zero exit unless ``allow_error`` is set
        """
        result = self.result(args, input_text=input_text)
        if not result.ok and not allow_error:
            raise GhCommandError.exit_status(
                args=args,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result.stdout.strip()

    def succeeds(self, args: Sequence[str]) -> bool:
        """Return True when ``gh ARGS`` exits with status 0."""
        return self.result(args).ok

    def api(
        self,
        path: str,
        *,
        method: Optional[str] = None,
        payload: Optional[Any] = None,
        fields: Sequence[str] = (),
        typed_fields: Sequence[str] = (),
        jq: Optional[str] = None,
        allow_error: bool = False,
    ) -> str:
        """Call ``gh api``; a JSON ``payload`` is sent on stdin via ``--input -``."""
        args: list[str] = ["api"]
        if method:
            args.extend(["-X", method])
        args.append(path)
        for item in fields:
            args.extend(["-f", item])
        for item in typed_fields:
            args.extend(["-F", item])
        input_text = None
        if payload is not None:
            args.extend(["--input", "-"])
            input_text = payload if isinstance(payload, str) else json.dumps(payload)
        if jq:
            args.extend(["--jq", jq])
        return self.run(args, input_text=input_text, allow_error=allow_error)

    def api_json(self, path: str, **kwargs: Any) -> Any:
        raw = self.api(path, **kwargs)
        return parse_json_text(raw, f"gh api {path}")

    def graphql(self, query: str, **variables: str) -> Any:
        """Run a GraphQL query; variables are passed as typed ``-F`` fields."""
        typed = [f"{name}={value}" for name, value in variables.items()]
        raw = self.api("graphql", fields=[f"query={query}"], typed_fields=typed)
        return parse_json_text(raw, "gh api graphql")

    def check_auth(self) -> None:
        self.run(["auth", "status"])

    def list_repos(self, org: str) -> list[RepoInfo]:
        """Return a single page (capped at ``REPO_LIST_LIMIT``) of the org's repos."""
        raw = self.run(
            ["repo", "list", org, "--limit", str(REPO_LIST_LIMIT), "--json", REPO_LIST_FIELDS]
        )
        entries = parse_json_text(raw, f"gh repo list {org}") if raw else []
        return [RepoInfo.from_listing(entry) for entry in entries]

    def team_exists(self, org: str, slug: str) -> bool:
        return self.succeeds(["api", f"orgs/{org}/teams/{slug}"])

    def team_id(self, org: str, slug: str) -> int:
        raw = self.api(f"orgs/{org}/teams/{slug}", jq=".id")
        try:
            return int(raw)
        except ValueError as exc:
            raise GhCommandError(detail=f"unexpected team id for {org}/{slug}: {raw!r}") from exc


def validate_required_tools(tools: Sequence[str] = (GH_EXECUTABLE,)) -> None:
    """Raise when any of ``tools`` is missing from PATH."""
    for tool in tools:
        if not command_available(tool):
            raise GhCommandError.missing_tool(tool)


__all__ = [
    "GH_EXECUTABLE",
    "REPO_LIST_LIMIT",
    "GhClient",
    "parse_json_text",
    "validate_required_tools",
]
