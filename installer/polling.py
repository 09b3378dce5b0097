import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional, TypeVar

from installer.errors import ReadinessTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wait_for(
    check: Callable[[], T],
    *,
    attempts: int,
    interval: float,
    description: str,
    on_retry: Optional[Callable[[int, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``check`` until it returns something truthy.

    Sleeps ``interval`` seconds between attempts, never after the last one, and
    raises ReadinessTimeout once ``attempts`` calls have all come back falsy.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        result = check()
        if result:
            logger.info("%s: ready after %d attempt(s)", description, attempt)
            return result

        logger.info("%s: not ready (attempt %d/%d)", description, attempt, attempts)
        if on_retry is not None:
            on_retry(attempt, attempts)
        if attempt < attempts:
            sleep(interval)

    raise ReadinessTimeout(description, attempts, interval)


def format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes} mins {secs} secs"


@contextmanager
def timed(label: str, report: Callable[[str], None] = logger.info, clock=time.monotonic):
    start = clock()
    yield
    report(f"{label}: Completed in {format_elapsed(clock() - start)}")
