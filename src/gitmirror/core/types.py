"""Shared types for gitmirror.

This module defines the priority classes used by watch targets, the
change queue and the registry.
"""

from __future__ import annotations

from enum import Enum


class Priority(str, Enum):
    """Priority class of a watch target.

    Batches from HIGH targets are always drained before MEDIUM ones,
    and MEDIUM before LOW, within one drain pass.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: str | Priority | None) -> Priority:
        """Parse a priority, falling back to MEDIUM for unknown values."""
        if isinstance(value, Priority):
            return value
        if not value:
            return cls.MEDIUM
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM

    @property
    def rank(self) -> int:
        """Position in drain order (0 = drained first)."""
        return PRIORITY_ORDER.index(self)


# Drain order of the priority buckets
PRIORITY_ORDER: tuple[Priority, ...] = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)
