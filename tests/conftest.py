"""Shared fixtures and helpers for the policy_tools test suite."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

import pytest

from policy_tools.policy_runtime.console import PLAIN, Reporter
from policy_tools.policy_runtime.context import PolicyContext
from policy_tools.policy_runtime.gh import GhClient
from policy_tools.policy_runtime.models import CommandResult

MUTATING_METHODS = ("POST", "PUT", "PATCH", "DELETE")

Responder = Callable[[list[str], Optional[str]], CommandResult]
Response = Union[CommandResult, Responder]


@dataclass
class GhCall:
    """One recorded gh invocation (executable stripped)."""

    args: list[str]
    input_text: Optional[str] = None

    @property
    def method(self) -> str:
        if "-X" in self.args:
            return self.args[self.args.index("-X") + 1]
        return "GET"

    @property
    def path(self) -> str:
        if not self.args or self.args[0] != "api":
            return ""
        for token in self.args[1:]:
            if token == "-X":
                continue
            if token in MUTATING_METHODS or token == "GET":
                continue
            return token
        return ""

    @property
    def payload(self) -> Any:
        return json.loads(self.input_text) if self.input_text else None

    @property
    def is_mutating(self) -> bool:
        if self.args[:2] == ["repo", "create"]:
            return True
        if self.method in MUTATING_METHODS:
            return True
        return any(token.startswith("query=mutation") for token in self.args)


def ok(stdout: Any = "") -> CommandResult:
    """Successful result; non-string stdout is JSON encoded."""
    text = stdout if isinstance(stdout, str) else json.dumps(stdout)
    return CommandResult(returncode=0, stdout=text, stderr="")


def fail(stderr: str = "HTTP 404: Not Found", returncode: int = 1) -> CommandResult:
    return CommandResult(returncode=returncode, stdout="", stderr=stderr)


class FakeGh:
    """Scripted stand-in for the gh runner.

    Routes are token sets: a route matches when every token appears in the
    argument list. The most recently registered matching route answers;
    unmatched calls succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[GhCall] = []
        self._routes: list[tuple[tuple[str, ...], Response]] = []

    def on(self, *tokens: str, response: Response) -> "FakeGh":
        self._routes.append((tokens, response))
        return self

    def __call__(
        self, args: Sequence[str], *, cwd: Optional[Path] = None, input_text: Optional[str] = None
    ) -> CommandResult:
        _ = cwd
        argv = list(args)[1:]
        self.calls.append(GhCall(argv, input_text))
        for tokens, response in reversed(self._routes):
            if all(token in argv for token in tokens):
                if callable(response):
                    return response(argv, input_text)
                return response
        return ok()

    def mutating_calls(self) -> list[GhCall]:
        return [call for call in self.calls if call.is_mutating]

    def calls_to(self, path: str, method: Optional[str] = None) -> list[GhCall]:
        return [
            call
            for call in self.calls
            if call.path == path and (method is None or call.method == method)
        ]


def repo_listing(*repos: tuple[str, str, bool]) -> list[dict[str, Any]]:
    """Build ``gh repo list --json`` output from (name, VISIBILITY, archived) triples."""
    return [
        {"name": name, "visibility": visibility, "isArchived": archived}
        for name, visibility, archived in repos
    ]


def write_config(root: Path, relative: str, data: dict[str, Any], *, version: Optional[int] = 1) -> Path:
    """Write a JSON config under ``root``; ``version`` is added unless None."""
    payload = dict(data)
    if version is not None:
        payload.setdefault("version", version)
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


SAMPLE_RULESET = {
    "name": "main-protection",
    "target": "branch",
    "enforcement": "active",
    "bypass_actors": [{"actor_id": "__BYPASS_TEAM_ID__", "actor_type": "Team"}],
    "rules": [{"type": "deletion"}],
}


def write_policy_files(root: Path, *, rulesets: Optional[list[dict[str, Any]]] = None, **policy: Any) -> Path:
    """Write a management config plus the settings and rulesets it references."""
    write_config(root, "config/repo-settings.config.json", {"settings": {"has_wiki": False}})
    write_config(
        root,
        "config/rulesets.config.json",
        {"rulesets": rulesets if rulesets is not None else [SAMPLE_RULESET]},
    )
    return write_config(
        root,
        "config/management.json",
        {
            "execution": {"preview": False, "allow_private": False},
            "policy": {
                "repo_settings_config": "./config/repo-settings.config.json",
                "rulesets_config": "./config/rulesets.config.json",
                **policy,
            },
            "operations": {},
        },
    )


@pytest.fixture
def fake_gh() -> FakeGh:
    return FakeGh()


@pytest.fixture
def ctx(tmp_path: Path, fake_gh: FakeGh) -> PolicyContext:
    """Context rooted at ``tmp_path`` with plain output and the scripted gh runner."""
    return PolicyContext(
        repo_root=tmp_path,
        gh=GhClient(cwd=tmp_path, runner=fake_gh),
        reporter=Reporter(PLAIN),
    )


@pytest.fixture
def gh_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("policy_tools.policy_runtime.gh.command_available", lambda _name: True)
