# cabinetry/infra/retry.py
"""Bounded retries for calls to SMTP and the geocoding API."""
import random
import time
from typing import Callable, Iterator, Optional, TypeVar

from cabinetry.core.logging_config import logger

T = TypeVar("T")


def backoff_delays(retries: int, *, base: float, factor: float, cap: float) -> Iterator[float]:
    """Delay before each retry: capped exponential growth plus up to 25% jitter."""
    for n in range(retries):
        delay = min(cap, base * factor ** n)
        yield delay + random.uniform(0, delay / 4)


def retry_on(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base: float = 0.2,
    factor: float = 2.0,
    cap: float = 2.0,
    is_retryable: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` up to ``attempts`` times. Errors rejected by ``is_retryable``
    propagate at once; the last error propagates when every attempt fails.
    """
    delays = backoff_delays(max(attempts - 1, 0), base=base, factor=factor, cap=cap)
    attempt = 1
    while True:
        try:
            return fn()
        except Exception as exc:
            if is_retryable is not None and not is_retryable(exc):
                raise
            delay = next(delays, None)
            if delay is None:
                raise
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            else:
                logger.bind(attempt=attempt, delay_s=round(delay, 2)).warning(
                    "retry_scheduled", error=repr(exc)
                )
            sleep(delay)
            attempt += 1
