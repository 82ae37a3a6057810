"""Role token weights and the GitHub permission levels they map to."""

from __future__ import annotations

from typing import Iterable

from .models import UnknownRoleTokenError

ROLE_WEIGHTS: dict[str, int] = {
    "all-admin": 5,
    "admin": 5,
    "all-maintain": 4,
    "maintain": 4,
    "all-write": 3,
    "write": 3,
    "all-push": 3,
    "push": 3,
    "all-triage": 2,
    "triage": 2,
    "all-read": 1,
    "read": 1,
    "all-pull": 1,
    "pull": 1,
    "all-none": 0,
    "none": 0,
}

WEIGHT_PERMISSIONS: dict[int, str] = {
    5: "admin",
    4: "maintain",
    3: "push",
    2: "triage",
}
FLOOR_PERMISSION = "pull"

DISABLED_NOTIFICATION_FLAGS = frozenset({"disabled", "disable", "off", "false"})


def role_to_weight(role: str) -> int:
    """Return the weight for ``role``.

    Raises:
        UnknownRoleTokenError: If ``role`` is not a known token
    """
    try:
        return ROLE_WEIGHTS[role]
    except KeyError:
        raise UnknownRoleTokenError.for_token(role) from None


def weight_to_permission(weight: int) -> str:
    return WEIGHT_PERMISSIONS.get(weight, FLOOR_PERMISSION)


def resolve_effective_permission(roles: Iterable[str]) -> str:
    """Return the permission of the highest-weight role; ``pull`` is the floor."""
    max_weight = 0
    for role in roles:
        max_weight = max(max_weight, role_to_weight(role))
    return weight_to_permission(max_weight)


def privacy_from_visible(visible: bool) -> str:
    if visible:
        return "closed"
    return "secret"


def notification_from_flag(value: str) -> str:
    if value.strip().lower() in DISABLED_NOTIFICATION_FLAGS:
        return "notifications_disabled"
    return "notifications_enabled"


__all__ = [
    "ROLE_WEIGHTS",
    "FLOOR_PERMISSION",
    "role_to_weight",
    "weight_to_permission",
    "resolve_effective_permission",
    "privacy_from_visible",
    "notification_from_flag",
]
