"""Declarative GitHub repository policy tooling built on the gh CLI."""

__version__ = "0.1.0"
