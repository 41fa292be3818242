from __future__ import annotations


class ReconcileError(Exception):
    """Base class for errors raised to callers of the engine."""


class InputError(ReconcileError, ValueError):
    """A required input is missing or invalid; nothing was applied."""


class SearchError(ReconcileError):
    """A canonical-metadata query failed for one file."""
