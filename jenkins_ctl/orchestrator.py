# orchestrator.py

import logging
import sys
from typing import BinaryIO, Callable, Optional

from .client import split_job_path
from .console import ConsoleStreamer
from .errors import (
    JenkinsRequestError,
    JenkinsTransportError,
    TriggerRejectedError,
    suggestion_for_status,
)
from .models import BuildRequest, BuildResult, ParameterSet
from .params import parse_parameters
from .queue import QueueResolver

logger = logging.getLogger("jenkins_ctl")


class BuildOrchestrator:
    """
    Trigger a build and optionally follow it to completion.

    The flow is a small state machine driven by polling: the request is
    queued, the queue item resolves to a build number, and when streaming
    the console is followed until Jenkins reports the build finished.
    """

    def __init__(self, client, resolver: QueueResolver, streamer: ConsoleStreamer,
                 queue_timeout: float = 300, sink: Optional[BinaryIO] = None):
        self.client = client
        self.resolver = resolver
        self.streamer = streamer
        self.queue_timeout = queue_timeout
        self.sink = sink

    @classmethod
    def from_config(cls, client, config, sleep: Callable[[float], None] = None,
                    sink: Optional[BinaryIO] = None) -> "BuildOrchestrator":
        resolver = QueueResolver(client, poll_interval=config.poll_interval,
                                 poll_retries=config.poll_retries, sleep=sleep)
        streamer = ConsoleStreamer(client, poll_interval=config.poll_interval,
                                   poll_retries=config.poll_retries, sleep=sleep)
        return cls(client, resolver, streamer, queue_timeout=config.queue_timeout, sink=sink)

    @property
    def request_id(self) -> str:
        return getattr(self.client, "request_id", "N/A")

    def trigger(self, job: str, parameters, stream: bool = False) -> BuildResult:
        """
        Queue a build of ``job`` and return its result.

        Args:
            job: Job path such as 'folder/job'
            parameters: A ParameterSet or the raw 'key=value,...' / '-' string
            stream: Follow the console output until the build finishes

        Returns:
            BuildResult; when not streaming, the outcome is UNKNOWN with no offset
        """
        if not isinstance(parameters, ParameterSet):
            parameters = parse_parameters(parameters or "")
        return self.run(BuildRequest(job=job, parameters=parameters, stream=stream))

    def run(self, request: BuildRequest) -> BuildResult:
        split_job_path(request.job)

        item = self._submit(request)
        handle = self.resolver.resolve(request.job, item, self.queue_timeout)
        logger.info(f"[{self.request_id}] started build {handle.number}")

        if not request.stream:
            return BuildResult(handle=handle)

        console = self.streamer.stream(handle)
        sink = self.sink or sys.stdout.buffer
        for chunk in console:
            sink.write(chunk)
            sink.flush()
        return console.result

    def _submit(self, request: BuildRequest):
        try:
            return self.client.trigger_build(request.job, request.parameters)
        except JenkinsRequestError as e:
            raise TriggerRejectedError(
                f"Jenkins rejected the build of '{request.job}': {e.message}",
                status_code=e.status_code,
                suggestion=suggestion_for_status(e.status_code, request.job),
                details=e.details,
            ) from e
        except JenkinsTransportError as e:
            if e.status_code is None:
                raise
            raise TriggerRejectedError(
                f"Jenkins failed to queue '{request.job}': {e.message}",
                status_code=e.status_code,
                suggestion=e.suggestion,
            ) from e
