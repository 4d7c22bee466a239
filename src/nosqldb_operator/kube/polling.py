"""Bounded polling with a fixed interval and an explicit deadline."""

from __future__ import annotations

import time
from typing import Callable

from nosqldb_operator.core.errors import WaitTimeoutError
from nosqldb_operator.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL = 1.0


def poll_until(
    predicate: Callable[[], bool],
    *,
    timeout: float,
    interval: float = DEFAULT_INTERVAL,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Call ``predicate`` until it returns true or ``timeout`` seconds pass.

    The first check is immediate.  Exceptions raised by ``predicate``
    propagate unchanged; running out of time raises ``WaitTimeoutError``.
    """
    deadline = clock() + timeout
    attempts = 0
    while True:
        attempts += 1
        if predicate():
            logger.debug("poll.satisfied", condition=description, attempts=attempts)
            return
        if clock() + interval > deadline:
            raise WaitTimeoutError(
                f"Timed out after {timeout}s waiting for {description}",
                retry_after=int(interval) or 1,
            ).with_context(attempts=attempts)
        sleep(interval)


__all__ = ["poll_until", "DEFAULT_INTERVAL"]
