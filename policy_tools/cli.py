"""Command-line entry point for repo-policy."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Iterable, Optional

from . import __version__
from .compat import run_compat_script
from .flows import (
    run_apply_org_flow,
    run_create_flow,
    run_doctor,
    run_init_teams_flow,
    run_remove_teams_flow,
    run_validate_flow,
)
from .policy_runtime.config import resolve_repo_root
from .policy_runtime.console import COLOR, PLAIN, Reporter
from .policy_runtime.context import PolicyContext
from .policy_runtime.gh import GhClient
from .policy_runtime.models import PolicyError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-policy",
        description="Apply declarative GitHub repository and organization policy through gh.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--plain", action="store_true", help="Disable colored output.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create one repo and apply bootstrap modules.")
    create.add_argument("org", help="GitHub organization.")
    create.add_argument("repo", help="Repository name.")

    for name, help_text in (
        ("apply-org", "Apply configured modules to all repos in one org."),
        ("init-teams", "Create or update managed teams for one org."),
        ("remove-teams", "Remove managed teams for one org."),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("org", help="GitHub organization.")

    subparsers.add_parser("validate", help="Validate local JSON config files.")

    exec_parser = subparsers.add_parser(
        "exec", help="Run a legacy script id, e.g. scripts/update_rulesets_org.ts."
    )
    exec_parser.add_argument("script", help="Legacy script id.")
    exec_parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the script.")

    subparsers.add_parser("doctor", help="Check that gh is installed and authenticated.")
    return parser


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(list(argv) if argv is not None else None)


def build_context(args: argparse.Namespace) -> PolicyContext:
    repo_root = resolve_repo_root(os.environ)
    return PolicyContext(
        repo_root=repo_root,
        gh=GhClient(cwd=repo_root),
        reporter=Reporter(PLAIN if args.plain else COLOR),
    )


def dispatch(ctx: PolicyContext, args: argparse.Namespace) -> int:
    command = args.command
    if command == "create":
        run_create_flow(ctx, args.org, args.repo)
    elif command == "apply-org":
        run_apply_org_flow(ctx, args.org)
    elif command == "init-teams":
        run_init_teams_flow(ctx, args.org)
    elif command == "remove-teams":
        run_remove_teams_flow(ctx, args.org)
    elif command == "validate":
        run_validate_flow(ctx)
    elif command == "exec":
        run_compat_script(ctx, args.script, args.args)
    elif command == "doctor":
        run_doctor(ctx)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for the repo-policy command."""
    args = parse_args(argv)
    ctx = build_context(args)
    try:
        return dispatch(ctx, args)
    except KeyboardInterrupt:
        print("\n[info] Received Ctrl-C. Aborting repo-policy cleanly.")
        return 130
    except PolicyError as exc:
        ctx.reporter.fatal(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())


__all__ = ["build_parser", "parse_args", "build_context", "dispatch", "main"]
