from __future__ import annotations

import logging
import time
from collections.abc import Callable

from lexdraft.errors import PollTimeout

logger = logging.getLogger(__name__)


def wait_for_generation(
    read_status: Callable[[], str],
    *,
    interval_sec: float = 3.0,
    max_attempts: int = 100,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Poll until the status leaves ``generating``; never writes anything.

    Raises ``PollTimeout`` after ``max_attempts`` reads that all saw ``generating``.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    status = ""
    for attempt in range(1, max_attempts + 1):
        status = read_status()
        if status != "generating":
            logger.debug("Generation settled status=%s attempts=%s", status, attempt)
            return status
        if attempt < max_attempts:
            sleep(interval_sec)
    raise PollTimeout(max_attempts, status)
