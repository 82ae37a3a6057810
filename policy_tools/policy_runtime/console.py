"""Line-oriented progress output with optional colour styling."""

from __future__ import annotations

import re
import sys
from typing import Optional, TextIO

from rich.console import Console
from rich.text import Text

COLOR = "color"
PLAIN = "plain"
LOG_MODES: tuple[str, ...] = (COLOR, PLAIN)

_SEPARATOR_PATTERNS = (
    re.compile(r"^\s*=+>"),
    re.compile(r"^\s*-{3,}\s*$"),
)

# First matching rule wins.
_STYLE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^Summary:", re.IGNORECASE), "bold magenta"),
    (re.compile(r"^(\[error\]|error:)", re.IGNORECASE), "bold red"),
    (re.compile(r"^(\[warn\]|warn:)", re.IGNORECASE), "bright_yellow"),
    (re.compile(r"^\[skip\]", re.IGNORECASE), "#FFB020"),
    (re.compile(r"^Checking GitHub auth", re.IGNORECASE), "cyan"),
    (
        re.compile(r"^((created|updated|upserted|deleted|removed):|Done\.?$)", re.IGNORECASE),
        "bright_green",
    ),
    (re.compile(r"^(Validation (OK|complete)|\s+OK\s+)", re.IGNORECASE), "green"),
)


def is_separator(line: str) -> bool:
    """Return True for ``==>`` banners and ``---`` rules."""
    return any(pattern.search(line) for pattern in _SEPARATOR_PATTERNS)


def style_for_line(line: str) -> Optional[str]:
    """Return the rich style for ``line``, or None when it stays unstyled."""
    stripped = line.rstrip()
    if not stripped:
        return None
    if is_separator(stripped):
        return "bright_cyan"
    for pattern, style in _STYLE_RULES:
        if pattern.search(stripped):
            return style
    return None


class Reporter:
    """Writes progress lines to stdout and problems to stderr.

    In ``plain`` mode lines are written verbatim. In ``color`` mode each line
    is styled by the rule table above; rich drops the colour on its own when
    the stream is not a terminal.
    """

    def __init__(
        self,
        mode: str = COLOR,
        *,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        if mode not in LOG_MODES:
            raise ValueError(f"unknown log mode: {mode}")
        self.mode = mode
        self._stdout = stdout
        self._stderr = stderr

    @property
    def plain(self) -> bool:
        return self.mode == PLAIN

    def _stream(self, *, error: bool) -> TextIO:
        if error:
            return self._stderr if self._stderr is not None else sys.stderr
        return self._stdout if self._stdout is not None else sys.stdout

    def _write(self, text: str, *, error: bool, style: Optional[str] = None) -> None:
        stream = self._stream(error=error)
        if self.plain:
            print(text, file=stream)
            return
        console = Console(file=stream, highlight=False, soft_wrap=True)
        console.print(Text(text, style=style or style_for_line(text) or ""))

    def line(self, text: str = "") -> None:
        self._write(text, error=False)

    def info(self, text: str) -> None:
        self._write(text, error=False, style="cyan")

    def header(self, text: str) -> None:
        self._write(f"==> {text}", error=False)

    def success(self, text: str) -> None:
        self._write(text, error=False, style="bold green")

    def preview(self, text: str) -> None:
        self._write(f"[preview] {text}", error=False)

    def skip(self, text: str) -> None:
        self._write(f"[skip] {text}", error=False)

    def warn(self, text: str) -> None:
        self._write(f"[warn] {text}", error=True)

    def error(self, text: str) -> None:
        self._write(f"[error] {text}", error=True)

    def fatal(self, text: str) -> None:
        """Write an unprefixed message to stderr."""
        self._write(text, error=True, style="bold red")


__all__ = [
    "COLOR",
    "PLAIN",
    "LOG_MODES",
    "Reporter",
    "is_separator",
    "style_for_line",
]
