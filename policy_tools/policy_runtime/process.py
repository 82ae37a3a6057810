"""Subprocess helpers for the policy runtime."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Optional

from .models import CommandResult


def _run_command_buffered(
    args: list[str],
    *,
    cwd: Optional[Path],
    input_text: Optional[str],
) -> CommandResult:
    """Run a subprocess, feed it optional stdin, and capture its output."""
    process = subprocess.run(
        args,
        input=input_text,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        cwd=str(cwd) if cwd else None,
        check=False,
    )
    return CommandResult(
        returncode=process.returncode,
        stdout=process.stdout or "",
        stderr=process.stderr or "",
    )


def run_command(
    args: Iterable[str],
    *,
    cwd: Optional[Path] = None,
    input_text: Optional[str] = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    A non-zero exit status is returned in the result, never raised.

    Args:
        args: Command and arguments to execute
        cwd: Working directory for the command (defaults to current directory)
        input_text: Text written to the command's standard input

    Returns:
        CommandResult with returncode, stdout, and stderr

    Raises:
        OSError: If the executable cannot be started
    """
    return _run_command_buffered(list(args), cwd=cwd, input_text=input_text)


def command_available(name: str) -> bool:
    """Return True when ``name`` resolves to an executable on PATH."""
    return shutil.which(name) is not None


__all__ = [
    "run_command",
    "command_available",
]
