"""Shared message formatting for policy_tools exceptions."""

from __future__ import annotations

from typing import Optional


def format_default_message(default_message: str, detail: Optional[str]) -> str:
    """Return ``default_message`` with ``detail`` appended when present."""
    if detail:
        return f"{default_message}: {detail}"
    return default_message


__all__ = ["format_default_message"]
