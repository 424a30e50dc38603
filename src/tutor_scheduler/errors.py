"""Input errors that abort a scheduling run.

Domain infeasibility (no instructor, no free slot, ...) is never an error;
these exceptions only flag snapshots that are structurally broken.
"""
from __future__ import annotations


class SnapshotError(ValueError):
    """Base class for malformed scheduler input."""


class SlotKeyError(SnapshotError):
    """A slot key could not be parsed into date and period."""


class UnknownTierError(SnapshotError):
    """A subject level or grade tier name is not recognised."""


__all__ = ["SnapshotError", "SlotKeyError", "UnknownTierError"]
