"""Shared test fixtures."""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from jenkins_ctl.config import JenkinsConfig
from jenkins_ctl.models import (
    BuildList,
    BuildParameter,
    BuildStatus,
    ConsoleChunk,
    InterruptAck,
    JobEntry,
    NodesInfo,
    QueueItem,
    QueueState,
    QueueStatus,
)


def _next(sequence: List[Any]) -> Any:
    """Pop the next scripted response; the last one repeats forever."""
    item = sequence.pop(0) if len(sequence) > 1 else sequence[0]
    if isinstance(item, BaseException):
        raise item
    return item


class FakeJenkins:
    """
    In-memory stand-in for JenkinsClient.

    Usage::

        fake = FakeJenkins()
        fake.queue = [QueueStatus(state=QueueState.QUEUED), assigned(42)]
        fake.console = [(b"Started\\n", True), (b"Started\\nFinished\\n", False)]

    ``console`` holds snapshots of the full log and whether the build is
    still running; each console fetch advances one snapshot and returns the
    bytes after the requested offset, like the progressive text endpoint.
    """

    request_id = "test-request"

    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple]] = []
        self.queue_id = 17
        self.trigger_error: Optional[BaseException] = None
        self.queue: List[Any] = [assigned(1)]
        self.console: List[Tuple[bytes, bool]] = [(b"", False)]
        self.console_failures: List[Optional[BaseException]] = []
        self.console_starts: List[int] = []
        self.statuses: List[Any] = [BuildStatus(building=False, result="SUCCESS")]
        self.interrupt_status = 302
        self.job_tree = {"": []}
        self.builds = BuildList()
        self.nodes = NodesInfo()
        self.build_parameters: List[BuildParameter] = []
        self.artifacts: Dict[int, Any] = {}
        self._console_step = 0

    def trigger_build(self, job, parameters):
        self.calls.append(("trigger_build", (job, parameters)))
        if self.trigger_error:
            raise self.trigger_error
        return QueueItem(id=self.queue_id, url=f"http://jenkins/queue/item/{self.queue_id}/")

    def get_queue_status(self, item):
        self.calls.append(("get_queue_status", (item.id,)))
        return _next(self.queue)

    def get_console_chunk(self, handle, start):
        self.calls.append(("get_console_chunk", (handle, start)))
        self.console_starts.append(start)
        if self.console_failures:
            failure = self.console_failures.pop(0)
            if failure is not None:
                raise failure
        step = min(self._console_step, len(self.console) - 1)
        self._console_step += 1
        text, building = self.console[step]
        return ConsoleChunk(data=text[start:], next_offset=len(text), more_data=building)

    def get_build_status(self, handle):
        self.calls.append(("get_build_status", (handle,)))
        return _next(self.statuses)

    def interrupt_build(self, handle, severity):
        self.calls.append(("interrupt_build", (handle, severity)))
        return InterruptAck(handle=handle, severity=severity, status_code=self.interrupt_status)

    def list_job_entries(self, folder=""):
        self.calls.append(("list_job_entries", (folder,)))
        entries = self.job_tree[folder]
        if isinstance(entries, BaseException):
            raise entries
        return [JobEntry.model_validate(entry) for entry in entries]

    def list_builds(self, job):
        self.calls.append(("list_builds", (job,)))
        return self.builds

    def get_nodes(self):
        self.calls.append(("get_nodes", ()))
        return self.nodes

    def get_build_parameters(self, handle):
        self.calls.append(("get_build_parameters", (handle,)))
        return self.build_parameters

    def quiet_down(self, reason=""):
        self.calls.append(("quiet_down", (reason,)))

    def cancel_quiet_down(self):
        self.calls.append(("cancel_quiet_down", ()))

    def copy_item(self, kind, src, dest):
        self.calls.append(("copy_item", (kind, src, dest)))

    def restart(self, hard=False):
        self.calls.append(("restart", (hard,)))

    def delete_job(self, job):
        self.calls.append(("delete_job", (job,)))

    def set_node_state(self, node, state, reason=""):
        self.calls.append(("set_node_state", (node, state, reason)))

    def get_console_text(self, handle):
        self.calls.append(("get_console_text", (handle,)))
        return self.console[-1][0]

    def download_artifacts(self, handle):
        self.calls.append(("download_artifacts", (handle,)))
        data = self.artifacts[handle.number]
        if isinstance(data, BaseException):
            raise data
        return data

    def called(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]


def assigned(number: int) -> QueueStatus:
    return QueueStatus(state=QueueState.ASSIGNED, build_number=number)


def queued(why: str = "Waiting for next available executor") -> QueueStatus:
    return QueueStatus(state=QueueState.QUEUED, why=why)


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_jenkins() -> FakeJenkins:
    return FakeJenkins()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> JenkinsConfig:
    return JenkinsConfig(url="http://jenkins.example.com/", user="admin", api_token="secret",
                         max_retries=0, poll_interval=0.5, poll_retries=3, queue_timeout=5)


@pytest.fixture
def jenkins_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JENKINS_URL", "http://jenkins.example.com")
    monkeypatch.setenv("JENKINS_USER", "admin")
    monkeypatch.setenv("JENKINS_API_TOKEN", "secret")
    monkeypatch.setenv("JENKINS_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("JENKINS_QUEUE_TIMEOUT", "5")
