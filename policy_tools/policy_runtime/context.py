"""Per-invocation context handed to every policy operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config import resolve_path_from_root
from .console import Reporter
from .gh import GhClient


@dataclass
class PolicyContext:
    """Repository root, gh client and reporter for one CLI invocation."""

    repo_root: Path
    gh: GhClient
    reporter: Reporter = field(default_factory=Reporter)

    def resolve(self, value: str) -> Path:
        """Resolve a config path relative to the repository root."""
        return resolve_path_from_root(self.repo_root, value)


__all__ = ["PolicyContext"]
