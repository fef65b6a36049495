# console.py

import logging
import time
from typing import Callable, Iterator, Optional

from .errors import JenkinsError, StreamInterruptedError
from .models import (
    BuildHandle,
    BuildOutcome,
    BuildResult,
    ConsoleChunk,
    ConsoleCursor,
)
from .retry import RetryPolicy

logger = logging.getLogger("jenkins_ctl")

# Status polls after the log ends while Jenkins still reports the build running
FINAL_STATUS_POLLS = 10


class ConsoleStream:
    """
    Lazy iterator over the console bytes of one build.

    The stream is finite and can be consumed once. After it is exhausted,
    ``result`` holds the build outcome and the final console offset.
    """

    def __init__(self, streamer: "ConsoleStreamer", handle: BuildHandle):
        self.handle = handle
        self.cursor = ConsoleCursor(handle=handle)
        self.result: Optional[BuildResult] = None
        self._streamer = streamer
        self._chunks = self._run()

    def __iter__(self) -> Iterator[bytes]:
        return self

    def __next__(self) -> bytes:
        return next(self._chunks)

    @property
    def offset(self) -> int:
        return self.cursor.offset

    def _fetch(self) -> ConsoleChunk:
        streamer = self._streamer
        try:
            return streamer.retry_policy.call(streamer.client.get_console_chunk, self.handle,
                                              self.cursor.offset, request_id=streamer.request_id)
        except JenkinsError as e:
            raise StreamInterruptedError(
                f"Console streaming of {self.handle} interrupted at byte {self.cursor.offset}: {e.message}",
                offset=self.cursor.offset,
                suggestion="Fetch the full log with 'job download <JOB> <BUILD> log'",
                details={"cause": e.kind.value},
            ) from e

    def _advance(self, chunk: ConsoleChunk) -> Optional[bytes]:
        self.cursor.more_data = chunk.more_data
        if not chunk.data:
            return None
        self.cursor.offset += len(chunk.data)
        return chunk.data

    def _run(self) -> Iterator[bytes]:
        streamer = self._streamer

        # Running: poll until Jenkins stops flagging more data
        while True:
            chunk = self._fetch()
            data = self._advance(chunk)
            if data:
                yield data
            if not chunk.more_data:
                break
            if not data:
                streamer.sleep(streamer.poll_interval)

        # Draining: one last fetch for bytes written after the flag flipped
        data = self._advance(self._fetch())
        if data:
            yield data

        outcome = streamer.final_outcome(self.handle)
        self.result = BuildResult(handle=self.handle, outcome=outcome, offset=self.cursor.offset)
        logger.info(f"[{streamer.request_id}] Build {self.handle} finished: {outcome.value}")


class ConsoleStreamer:
    """
    Follow the progressive console log of a build.

    Each step fetches the log from the cursor's byte offset. Bytes are
    emitted in offset order exactly once; the cursor is never rewound.
    """

    def __init__(self, client, poll_interval: float = 0.5, poll_retries: int = 3,
                 sleep: Callable[[float], None] = None):
        self.client = client
        self.poll_interval = poll_interval
        self.sleep = sleep or time.sleep
        self.retry_policy = RetryPolicy.fixed(poll_retries, poll_interval, sleep=self.sleep)

    @property
    def request_id(self) -> str:
        return getattr(self.client, "request_id", "N/A")

    def stream(self, handle: BuildHandle) -> ConsoleStream:
        return ConsoleStream(self, handle)

    def final_outcome(self, handle: BuildHandle) -> BuildOutcome:
        """
        Read the build result once the log has ended.

        Jenkins may close the log slightly before it records the result, so
        the status is re-polled a bounded number of times.
        """
        for _ in range(FINAL_STATUS_POLLS):
            try:
                status = self.retry_policy.call(self.client.get_build_status, handle,
                                                request_id=self.request_id)
            except JenkinsError as e:
                logger.warning(f"[{self.request_id}] Could not read result of {handle}: {e}")
                return BuildOutcome.UNKNOWN
            if not status.building:
                return status.outcome
            self.sleep(self.poll_interval)

        logger.warning(f"[{self.request_id}] Build {handle} still reported as running after its log ended")
        return BuildOutcome.UNKNOWN
