# queue.py

import logging
import time
from typing import Callable, Optional

from .errors import (
    JenkinsTransportError,
    QueueCancelledError,
    QueueTimeoutError,
)
from .models import BuildHandle, QueueItem, QueueState
from .retry import RetryPolicy

logger = logging.getLogger("jenkins_ctl")


class QueueResolver:
    """
    Wait for a queued build request to be assigned a build number.

    Jenkins never assigns the number synchronously, so the queue item is
    polled at a fixed interval. A failed poll is retried up to
    ``poll_retries`` times at the same interval before the error is
    raised as a TransportError. Neither polls nor retries wait past the
    deadline.
    """

    def __init__(self, client, poll_interval: float = 0.5, poll_retries: int = 3,
                 clock: Callable[[], float] = None, sleep: Callable[[float], None] = None):
        self.client = client
        self.poll_interval = poll_interval
        self.clock = clock or time.monotonic
        self.sleep = sleep or time.sleep
        self.retry_policy = RetryPolicy.fixed(poll_retries, poll_interval, sleep=self.sleep, clock=self.clock)

    @property
    def request_id(self) -> str:
        return getattr(self.client, "request_id", "N/A")

    def resolve(self, job: str, item: QueueItem, timeout: float) -> BuildHandle:
        """
        Poll ``item`` until it becomes a build of ``job``.

        Raises:
            QueueCancelledError: The item was cancelled before it ran
            QueueTimeoutError: No build number within ``timeout`` seconds
            JenkinsTransportError: Polling kept failing
        """
        deadline = self.clock() + timeout
        last_why: Optional[str] = None

        while True:
            try:
                status = self.retry_policy.call(self.client.get_queue_status, item,
                                                request_id=self.request_id, deadline=deadline)
            except JenkinsTransportError as e:
                if self.clock() >= deadline:
                    raise self._timeout(job, item, timeout, last_why) from e
                raise JenkinsTransportError(
                    f"Polling queue item {item.id} failed: {e.message}",
                    status_code=e.status_code,
                    suggestion=e.suggestion,
                ) from e

            if status.state == QueueState.ASSIGNED:
                handle = BuildHandle(job=job, number=status.build_number)
                logger.info(f"[{self.request_id}] Queue item {item.id} started build {handle}")
                return handle

            if status.state == QueueState.CANCELLED:
                raise QueueCancelledError(
                    f"Queue item {item.id} for '{job}' was cancelled before it started",
                    details={"queue_id": item.id},
                )

            if status.why and status.why != last_why:
                logger.info(f"[{self.request_id}] Waiting in queue: {status.why}")
                last_why = status.why

            remaining = deadline - self.clock()
            if remaining <= 0:
                raise self._timeout(job, item, timeout, status.why)
            self.sleep(min(self.poll_interval, remaining))

    def _timeout(self, job: str, item: QueueItem, timeout: float, why: Optional[str]) -> QueueTimeoutError:
        return QueueTimeoutError(
            f"No build started for queue item {item.id} of '{job}' within {timeout:g}s",
            suggestion="Increase JENKINS_QUEUE_TIMEOUT or check executor availability with 'node show executors'",
            details={"queue_id": item.id, "why": why},
        )
