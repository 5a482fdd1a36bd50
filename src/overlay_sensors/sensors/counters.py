"""Per-second rates from cumulative kernel counters."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path


def read_int(path: Path) -> int | None:
    """Read a single integer from a sysfs/procfs file, or None."""
    try:
        return int(path.read_text().strip())
    except (FileNotFoundError, PermissionError, ValueError, OSError):
        return None


class CounterRate:
    """Turn successive samples of a cumulative counter into a rate.

    The first sample only primes the counter and yields None.  A counter
    that goes backwards is treated as wrapped when ``wrap`` is known, and as
    reset otherwise.
    """

    def __init__(
        self,
        scale: float = 1.0,
        wrap: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._scale = scale
        self._wrap = wrap
        self._clock = clock
        self._prev: tuple[int, float] | None = None

    def update(self, raw: int | None) -> float | None:
        """Feed one sample; return units per second times ``scale``."""
        if raw is None:
            return None
        now = self._clock()
        prev = self._prev
        self._prev = (raw, now)
        if prev is None:
            return None

        prev_raw, prev_time = prev
        elapsed = now - prev_time
        if elapsed <= 0:
            return None

        delta = raw - prev_raw
        if delta < 0:
            if self._wrap is None:
                return None
            delta += self._wrap
        return delta * self._scale / elapsed
