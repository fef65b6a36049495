# retry.py

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type

from .errors import JenkinsTransportError

logger = logging.getLogger("jenkins_ctl")

RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (JenkinsTransportError,)


class RetryPolicy:
    """
    Bounded retry of transient failures.

    With ``backoff_multiplier=1.0`` and no jitter every wait equals
    ``base_delay``, which is the fixed interval the queue and console pollers
    use. The HTTP client uses exponential backoff with jitter for idempotent
    requests.

    Args:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound of any single delay
        backoff_multiplier: Multiplier applied per attempt
        jitter: Add a random 10-90% of the delay to each wait
        retryable_exceptions: Exception types that trigger a retry
        sleep: Sleep function, replaceable in tests
        clock: Monotonic clock that ``deadline`` is measured on
    """

    def __init__(self, max_retries: int = 3,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 backoff_multiplier: float = 1.0,
                 jitter: bool = False,
                 retryable_exceptions: Tuple[Type[BaseException], ...] = None,
                 sleep: Callable[[float], None] = None,
                 clock: Callable[[], float] = None):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions or RETRYABLE_EXCEPTIONS
        self.sleep = sleep or time.sleep
        self.clock = clock or time.monotonic

    @classmethod
    def fixed(cls, max_retries: int, interval: float,
              sleep: Callable[[float], None] = None,
              clock: Callable[[], float] = None) -> "RetryPolicy":
        return cls(max_retries=max_retries, base_delay=interval, max_delay=interval,
                   sleep=sleep, clock=clock)

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.backoff_multiplier ** attempt), self.max_delay)
        if self.jitter:
            # Add jitter to prevent thundering herd
            delay += random.uniform(0.1, 0.9) * delay
        return delay

    def call(self, func: Callable[..., Any], *args, request_id: str = "N/A",
             deadline: Optional[float] = None, **kwargs) -> Any:
        """
        Call ``func`` until it succeeds or the retry budget is spent.

        Non-retryable exceptions propagate immediately. When every attempt
        fails, or ``deadline`` (on ``clock``) passes, the last retryable
        exception is re-raised. Waits never extend past ``deadline``.
        """
        last_exception: Optional[BaseException] = None

        for attempt in range(self.max_retries + 1):
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info(f"[{request_id}] Request succeeded on attempt {attempt + 1}")
                return result
            except self.retryable_exceptions as e:
                last_exception = e
                if attempt == self.max_retries:
                    break
                delay = self.delay_for(attempt)
                if deadline is not None:
                    remaining = deadline - self.clock()
                    if remaining <= 0:
                        logger.warning(f"[{request_id}] Transient error on attempt {attempt + 1}: {e}, "
                                       f"deadline reached")
                        raise
                    delay = min(delay, remaining)
                logger.warning(f"[{request_id}] Transient error on attempt {attempt + 1}: {e}, "
                               f"retrying in {delay:.2f}s...")
                self.sleep(delay)

        logger.error(f"[{request_id}] All {self.max_retries} retry attempts failed")
        raise last_exception


def with_retry(max_retries: int = 3,
               base_delay: float = 1.0,
               max_delay: float = 60.0,
               backoff_multiplier: float = 2.0,
               jitter: bool = True,
               retryable_exceptions: tuple = None):
    """
    Decorator that adds exponential backoff retry logic to a request method.

    The wrapped callable's instance may override the defaults through a
    ``retry_policy`` attribute, so a configured client uses its own limits.
    """
    default_policy = RetryPolicy(max_retries=max_retries, base_delay=base_delay,
                                 max_delay=max_delay, backoff_multiplier=backoff_multiplier,
                                 jitter=jitter, retryable_exceptions=retryable_exceptions)

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            owner = args[0] if args else None
            policy = getattr(owner, "retry_policy", None) or default_policy
            request_id = getattr(owner, "request_id", "N/A")
            return policy.call(func, *args, request_id=request_id, **kwargs)

        return wrapper
    return decorator
