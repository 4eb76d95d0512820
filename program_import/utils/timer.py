from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

log = logging.getLogger(__name__)


@contextmanager
def timed(stage: str, timings: Optional[Dict[str, float]] = None) -> Iterator[None]:
    """Measure one pipeline stage; the duration (seconds, 4 d.p.) lands in `timings[stage]`."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = round(time.perf_counter() - start, 4)
        log.debug("Stage %s took %.4fs", stage, elapsed)
        if timings is not None:
            timings[stage] = elapsed
