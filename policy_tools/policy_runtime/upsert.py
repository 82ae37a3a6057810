"""Create-if-absent / update-if-present for remote resources keyed by name."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from .console import Reporter
from .models import PREVIEW_ID

CREATED = "created"
UPDATED = "updated"
EXISTS = "exists"
PREVIEW_CREATE = "preview-create"
PREVIEW_UPDATE = "preview-update"


@dataclass(frozen=True)
class UpsertResult:
    """Which path an upsert took and the value it produced.

    ``value`` is the matched entry, whatever ``create``/``update`` returned,
    or ``PREVIEW_ID`` when a create was only previewed.
    """

    action: str
    value: Any = None

    @property
    def mutated(self) -> bool:
        return self.action in (CREATED, UPDATED)


def find_by_name(
    entries: Iterable[Mapping[str, Any]], name: str, *, key: str = "name"
) -> Optional[Mapping[str, Any]]:
    """Return the first entry whose ``key`` equals ``name``.

    Duplicate names are not detected; the first match in listing order wins.
    """
    for entry in entries:
        if entry.get(key) == name:
            return entry
    return None


def upsert_by_name(
    reporter: Reporter,
    *,
    kind: str,
    name: str,
    existing: Optional[Mapping[str, Any]],
    create: Callable[[], Any],
    update: Optional[Callable[[Mapping[str, Any]], Any]] = None,
    preview: bool = False,
) -> UpsertResult:
    """Update ``existing`` when given, otherwise create.

    Resources without an ``update`` callable are left untouched when found.
    In preview mode the mutating callable is replaced by a log line.
    """
    if existing is not None:
        if update is None:
            reporter.line(f"{kind} exists: {name}")
            return UpsertResult(EXISTS, existing)
        if preview:
            reporter.preview(f"update {kind}: {name}")
            return UpsertResult(PREVIEW_UPDATE, existing)
        value = update(existing)
        reporter.line(f"updated: {kind} {name}")
        return UpsertResult(UPDATED, value)

    if preview:
        reporter.preview(f"create {kind}: {name}")
        return UpsertResult(PREVIEW_CREATE, PREVIEW_ID)
    value = create()
    reporter.line(f"created: {kind} {name}")
    return UpsertResult(CREATED, value)


__all__ = [
    "CREATED",
    "UPDATED",
    "EXISTS",
    "PREVIEW_CREATE",
    "PREVIEW_UPDATE",
    "UpsertResult",
    "find_by_name",
    "upsert_by_name",
]
