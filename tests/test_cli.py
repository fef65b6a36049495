"""End-to-end tests of the command line against the in-memory Jenkins."""

import io
import sys

import pytest

from conftest import assigned, queued
from jenkins_ctl.cli import main
from jenkins_ctl.errors import JenkinsTransportError
from jenkins_ctl.models import BuildHandle, InterruptSeverity, NodesInfo


@pytest.fixture
def cli(jenkins_env, fake_jenkins, clock):
    def invoke(*argv):
        return main(list(argv), client=fake_jenkins, sleep=clock.sleep)
    return invoke


def test_kill_sends_term(cli, fake_jenkins):
    assert cli("job", "kill", "-s", "TERM", "deploy/prod", "42") == 0
    assert fake_jenkins.called("interrupt_build") == [
        (BuildHandle(job="deploy/prod", number=42), InterruptSeverity.TERM)
    ]


def test_kill_defaults_to_term(cli, fake_jenkins):
    assert cli("job", "kill", "app", "3") == 0
    assert fake_jenkins.called("interrupt_build")[0][1] is InterruptSeverity.TERM


def test_unknown_signal_exits_with_error(cli, fake_jenkins, capsys):
    assert cli("job", "kill", "-s", "USR1", "deploy/prod", "42") == 1

    err = capsys.readouterr().err
    assert "error[UnknownSignal]" in err
    assert "invalid signal: USR1" in err
    assert fake_jenkins.calls == []


def test_build_and_follow(cli, fake_jenkins, capsys):
    fake_jenkins.queue = [queued(), assigned(42)]
    fake_jenkins.console = [(b"Started\n", True), (b"Started\nFinished\n", False)]

    assert cli("job", "build", "-f", "deploy/prod", "env=staging,verbose=true") == 0

    assert capsys.readouterr().out == "Started\nFinished\n"
    _, parameters = fake_jenkins.called("trigger_build")[0]
    assert parameters.values == {"env": "staging", "verbose": "true"}


def test_failed_build_still_exits_zero(cli, fake_jenkins):
    fake_jenkins.statuses = [fake_jenkins.statuses[0].model_copy(update={"result": "FAILURE"})]

    assert cli("job", "build", "-f", "app") == 0


def test_build_without_follow_prints_build(cli, fake_jenkins, capsys):
    fake_jenkins.queue = [assigned(9)]

    assert cli("job", "b", "app", "-") == 0

    assert capsys.readouterr().out == "Started app #9\n"
    assert fake_jenkins.called("get_console_chunk") == []


def test_malformed_parameters(cli, fake_jenkins, capsys):
    assert cli("job", "build", "app", "env=a,broken") == 1
    assert "error[MalformedParameters]" in capsys.readouterr().err
    assert fake_jenkins.calls == []


def test_interrupted_stream_reports_offset(cli, fake_jenkins, capsys):
    fake_jenkins.console = [(b"partial\n", True)]
    fake_jenkins.console_failures = [None] + [JenkinsTransportError("gone")] * 10

    assert cli("job", "build", "-f", "app") == 1

    captured = capsys.readouterr()
    assert captured.out == "partial\n"
    assert "console output stopped at byte 8" in captured.err
    assert "error[StreamInterrupted]" in captured.err


def test_missing_credentials(monkeypatch, fake_jenkins, capsys):
    for name in ("JENKINS_URL", "JENKINS_USER", "JENKINS_API_TOKEN", "JENKINS_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    assert main(["info"], client=fake_jenkins) == 1
    assert "error[ConfigurationError]" in capsys.readouterr().err


def test_flags_override_environment(cli, capsys):
    assert cli("--url", "https://ci.internal/", "info") == 0
    assert capsys.readouterr().out == "https://ci.internal\n"


def test_usage_error_exits_two(cli):
    with pytest.raises(SystemExit) as exc_info:
        cli("job", "kill")
    assert exc_info.value.code == 2


def test_shutdown_banner(cli, fake_jenkins):
    assert cli("shutdown", "on", "upgrade") == 0
    assert cli("shutdown", "off") == 0
    assert fake_jenkins.called("quiet_down") == [("upgrade",)]
    assert fake_jenkins.called("cancel_quiet_down") == [()]


def test_restart(cli, fake_jenkins):
    assert cli("restart", "--hard") == 0
    assert fake_jenkins.called("restart") == [(True,)]


def test_copy_job_into_folder_is_refused(cli, fake_jenkins, capsys):
    assert cli("copy", "job", "app", "folder/app-copy") == 1
    assert "error[InvalidJobPath]" in capsys.readouterr().err
    assert fake_jenkins.called("copy_item") == []


def test_copy_view(cli, fake_jenkins):
    assert cli("copy", "view", "All", "Mine") == 0
    assert fake_jenkins.called("copy_item") == [("view", "All", "Mine")]


def test_node_commands(cli, fake_jenkins, capsys):
    fake_jenkins.nodes = NodesInfo.model_validate({
        "busyExecutors": 1, "totalExecutors": 2,
        "computer": [{"displayName": "master"}],
    })

    assert cli("node", "ls") == 0
    assert cli("node", "show", "executors", "--busy") == 0
    assert cli("node", "set", "master", "offline", "disk full") == 0

    assert capsys.readouterr().out == "master\nBusy executors: 1\n"
    assert fake_jenkins.called("set_node_state") == [("master", "offline", "disk full")]


def test_job_list_tree_and_builds(cli, fake_jenkins, capsys):
    fake_jenkins.job_tree = {"": [{"name": "app", "_class": "hudson.model.FreeStyleProject"}]}
    fake_jenkins.builds = fake_jenkins.builds.model_validate({"builds": [{"number": 2}, {"number": 1}]})

    assert cli("job", "ls") == 0
    assert cli("job", "list", "app") == 0

    assert capsys.readouterr().out == "app\n2\n1\n"


def test_remove_job(cli, fake_jenkins):
    assert cli("job", "rm", "infra/old") == 0
    assert fake_jenkins.called("delete_job") == [("infra/old",)]


def test_download_log(cli, fake_jenkins, capsys):
    fake_jenkins.console = [(b"full log\n", False)]

    assert cli("job", "fetch", "app", "4", "log") == 0
    assert capsys.readouterr().out == "full log\n"


def test_download_log_rejects_range(cli, capsys):
    assert cli("job", "download", "app", "1..=3", "log") == 1
    assert "error[InvalidJobPath]" in capsys.readouterr().err


def test_download_artifacts(cli, fake_jenkins, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    fake_jenkins.artifacts = {1: b"one", 2: b"two"}

    assert cli("job", "download", "infra/app", "1..=2", "artifact") == 0
    assert (tmp_path / "app_1.zip").read_bytes() == b"one"
    assert (tmp_path / "app_2.zip").read_bytes() == b"two"


def test_rebuild(cli, fake_jenkins, capsys):
    fake_jenkins.queue = [assigned(6)]

    assert cli("job", "rebuild", "app", "5") == 0
    assert capsys.readouterr().out == "Started app #6\n"


class ClosedPipe(io.BytesIO):
    def write(self, data):
        raise BrokenPipeError(32, "Broken pipe")


def test_closed_stdout_exits_without_traceback(cli, fake_jenkins, monkeypatch):
    fake_jenkins.console = [(b"line 1\n", True), (b"line 1\nline 2\n", False)]
    monkeypatch.setattr(sys, "stdout", io.TextIOWrapper(ClosedPipe()))

    assert cli("job", "build", "-f", "app") == 1
    assert len(fake_jenkins.called("get_console_chunk")) == 1
