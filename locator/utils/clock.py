"""Monotonic clock helpers used for throttling decisions."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


def monotonic_ms(clock: Clock = time.monotonic) -> float:
    """Return the clock reading in milliseconds."""

    return clock() * 1000.0


__all__ = ["Clock", "monotonic_ms"]
