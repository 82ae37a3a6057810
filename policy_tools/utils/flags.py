"""Flag parsing for the legacy script argument lists."""

from __future__ import annotations

from typing import Sequence

from ..policy_runtime.models import UsageError

MANAGE_COMMANDS = ("validate", "plan", "run")
VALUE_FLAGS = frozenset({"--config", "--max-repos"})


def parse_flag_value(args: Sequence[str], flag: str, fallback: str = "") -> str:
    """Return the value following ``flag``, or ``fallback`` when it is absent.

    Raises:
        UsageError: If the flag is present without a value
    """
    if flag not in args:
        return fallback
    index = list(args).index(flag)
    if index + 1 >= len(args) or not args[index + 1] or args[index + 1].startswith("--"):
        raise UsageError.flag_requires_value(flag)
    return args[index + 1]


def has_flag(args: Sequence[str], flag: str) -> bool:
    return flag in args


def parse_int_flag(args: Sequence[str], flag: str, fallback: int = 0) -> int:
    raw = parse_flag_value(args, flag, str(fallback))
    try:
        value = int(raw)
    except ValueError:
        raise UsageError.flag_not_integer(flag) from None
    if value < 0:
        raise UsageError.flag_not_integer(flag)
    return value


def parse_org_list(args: Sequence[str]) -> list[str]:
    """Positional org names; flags, their values and manage sub-commands are ignored."""
    orgs: list[str] = []
    skip_next = False
    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if arg in VALUE_FLAGS:
            skip_next = True
            continue
        if arg.startswith("--") or arg in MANAGE_COMMANDS:
            continue
        orgs.append(arg)
    return orgs


__all__ = [
    "MANAGE_COMMANDS",
    "parse_flag_value",
    "has_flag",
    "parse_int_flag",
    "parse_org_list",
]
