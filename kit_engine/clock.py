"""
Clock abstractions for deterministic behavior.

Notes
-----
Page state never reads wall-clock time directly. Callers provide a Clock so
that timestamps on client-created records (saved artifacts) are reproducible
in tests. Timestamps are integer seconds since the Unix epoch, the same unit
the storage engine assigns.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    """A source of time for deterministic behavior."""

    def now(self) -> int:
        """
        Return the current time.

        Returns
        -------
        int
            Seconds since the Unix epoch.
        """
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Clock that returns the current system time."""

    def now(self) -> int:
        return int(time.time())


@dataclass(frozen=True, slots=True)
class FixedClock:
    """Clock that always returns a fixed time (useful for tests)."""

    fixed_time: int

    def now(self) -> int:
        return self.fixed_time
