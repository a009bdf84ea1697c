# proposal_engine/utils/timeit.py
from __future__ import annotations
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger("timeit")


class Timing:
    __slots__ = ("label", "ms")

    def __init__(self, label: str):
        self.label = label
        self.ms = 0.0


@contextmanager
def timeit(label: str, slow_ms: Optional[float] = None) -> Iterator[Timing]:
    """
    Time a block. The elapsed milliseconds land on the yielded Timing when the block exits.
    Logged at DEBUG, or at WARNING once slow_ms is exceeded.
    """
    timing = Timing(label)
    t0 = time.perf_counter()
    try:
        yield timing
    finally:
        timing.ms = (time.perf_counter() - t0) * 1000.0
        if slow_ms is not None and timing.ms > slow_ms:
            logger.warning("%s took %.1f ms (over %.0f ms)", label, timing.ms, slow_ms)
        else:
            logger.debug("%s: %.1f ms", label, timing.ms)
