"""Bounded retries with exponential backoff."""

import logging
import time
from functools import wraps
from typing import Callable


def retry(
    max_attempts: int = 3,
    delay: float = 0.05,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
    give_up: Callable[[Exception], Exception] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """Retry decorator for synchronous functions.

    Args:
        max_attempts: total attempts, first call included
        delay: initial pause between attempts (seconds)
        backoff: multiplier applied to the pause after each failure
        exceptions: exception types that trigger another attempt
        give_up: maps the last caught exception to the one raised once
            attempts run out; the original is re-raised when omitted
        sleep: injectable for tests
    """

    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay
            name = getattr(func, "__qualname__", repr(func))
            log = logging.getLogger(getattr(func, "__module__", None) or __name__)

            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        log.error(
                            "Failed after %d attempts: %s", max_attempts, name
                        )
                        if give_up is not None:
                            raise give_up(e) from e
                        raise

                    log.warning(
                        "Attempt %d/%d failed for %s: %s. Retrying in %.2fs...",
                        attempt, max_attempts, name, e, current_delay,
                    )
                    sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator
