# cli.py

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .abort import AbortController
from .client import JenkinsClient
from .config import JenkinsConfig, setup_logging
from .errors import ConfigurationError, InvalidJobPathError, JenkinsError, StreamInterruptedError
from .jobs import collect_jobs, download_artifacts, format_job_tree, parse_build_range, rebuild
from .models import BuildHandle
from .nodes import format_executors, format_node_list
from .orchestrator import BuildOrchestrator
from .output import error_line
from .params import parse_parameters

logger = logging.getLogger("jenkins_ctl")

JOB_HELP = "Job path (format: path/to/jenkins/job)"


class Context:
    """Objects shared by the command handlers of one invocation."""

    def __init__(self, config: JenkinsConfig, client, sleep=None):
        self.config = config
        self.client = client
        self.sleep = sleep

    def orchestrator(self) -> BuildOrchestrator:
        return BuildOrchestrator.from_config(self.client, self.config, sleep=self.sleep)


def emit(lines: List[str]) -> None:
    for line in lines:
        print(line)


# --- Command handlers ---

def cmd_shutdown(ctx: Context, args) -> int:
    if args.state == "on":
        ctx.client.quiet_down(args.reason)
    else:
        ctx.client.cancel_quiet_down()
    return 0


def cmd_restart(ctx: Context, args) -> int:
    ctx.client.restart(hard=args.hard)
    return 0


def cmd_copy(ctx: Context, args) -> int:
    if args.item == "job" and "/" in args.dest:
        raise InvalidJobPathError(
            f"copy to a directory is not enabled: '{args.dest}'",
            suggestion="Give the destination job a plain name",
        )
    ctx.client.copy_item(args.item, args.src, args.dest)
    return 0


def cmd_node_show(ctx: Context, args) -> int:
    if args.view == "raw":
        print(json.dumps(ctx.client.get_json("computer/api/json"), indent=2))
    else:
        emit(format_executors(ctx.client.get_nodes(), total=args.total, busy=args.busy))
    return 0


def cmd_node_list(ctx: Context, args) -> int:
    emit(format_node_list(ctx.client.get_nodes(), status=args.status))
    return 0


def cmd_node_set(ctx: Context, args) -> int:
    ctx.client.set_node_state(args.node, args.state, args.reason)
    return 0


def cmd_job_list(ctx: Context, args) -> int:
    if args.job:
        for build in ctx.client.list_builds(args.job).builds:
            print(build.number)
    else:
        emit(format_job_tree(collect_jobs(ctx.client, max_depth=ctx.config.max_depth)))
    return 0


def cmd_job_build(ctx: Context, args) -> int:
    parameters = parse_parameters(args.params)
    sys.stdout.flush()
    try:
        result = ctx.orchestrator().trigger(args.job, parameters, stream=args.follow)
    except StreamInterruptedError as e:
        sys.stdout.flush()
        print(f"console output stopped at byte {e.offset}", file=sys.stderr)
        raise
    if not args.follow:
        print(f"Started {result.handle}")
    return 0


def cmd_job_remove(ctx: Context, args) -> int:
    ctx.client.delete_job(args.job)
    return 0


def cmd_job_download(ctx: Context, args) -> int:
    builds = parse_build_range(args.build)
    if args.item == "log":
        if len(builds) != 1:
            raise InvalidJobPathError("log download takes a single build number")
        data = ctx.client.get_console_text(BuildHandle(job=args.job, number=builds[0]))
        sys.stdout.flush()
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        download_artifacts(ctx.client, args.job, builds)
    return 0


def cmd_job_kill(ctx: Context, args) -> int:
    AbortController(ctx.client).interrupt(args.job, args.build, args.signal)
    return 0


def cmd_job_rebuild(ctx: Context, args) -> int:
    result = rebuild(ctx.client, ctx.orchestrator(), args.job, args.build)
    print(f"Started {result.handle}")
    return 0


def cmd_info(ctx: Context, args) -> int:
    print(ctx.config.base_url)
    return 0


# --- Argument parsing ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jenkins-ctl", description="Jenkins command-line controller")
    parser.add_argument("--url", default="", help="Jenkins URL (default: JENKINS_URL)")
    parser.add_argument("-u", "--user", default="", help="Jenkins user (default: JENKINS_USER)")
    parser.add_argument("-t", "--token", default="", help="Jenkins API token (default: JENKINS_API_TOKEN)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log progress (-v) or every request (-vv) to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    shutdown = commands.add_parser("shutdown", help="Set 'prepare to shutdown' banner with optional reason")
    shutdown_states = shutdown.add_subparsers(dest="state", metavar="STATE")
    shutdown_states.required = True
    shutdown_on = shutdown_states.add_parser("on", help="Set shutdown banner")
    shutdown_on.add_argument("reason", nargs="?", default="", help="Optional reason")
    shutdown_states.add_parser("off", help="Cancel shutdown")
    shutdown.set_defaults(handler=cmd_shutdown)

    restart = commands.add_parser("restart", help="Restart Jenkins instance")
    restart.add_argument("--hard", action="store_true", help="Restart without waiting for jobs to complete")
    restart.set_defaults(handler=cmd_restart)

    copy = commands.add_parser("copy", help="Copy item (job/view)")
    copy.add_argument("item", choices=["job", "view"])
    copy.add_argument("src", help="Source")
    copy.add_argument("dest", help="Destination")
    copy.set_defaults(handler=cmd_copy)

    node = commands.add_parser("node", help="Node actions")
    node_actions = node.add_subparsers(dest="action", metavar="ACTION")
    node_actions.required = True
    show = node_actions.add_parser("show", help="Show node information")
    show_views = show.add_subparsers(dest="view", metavar="VIEW")
    show_views.required = True
    show_views.add_parser("raw", help="Show all nodes information")
    executors = show_views.add_parser("executors", help="Show executors info")
    executors.add_argument("--total", action="store_true", help="Total number of executors")
    executors.add_argument("--busy", action="store_true", help="Busy executors")
    show.set_defaults(handler=cmd_node_show, total=False, busy=False)
    node_list = node_actions.add_parser("list", aliases=["ls"], help="List all nodes")
    node_list.add_argument("-s", "--status", action="store_true", help="Show node online/offline state")
    node_list.set_defaults(handler=cmd_node_list)
    node_set = node_actions.add_parser("set", help="Switch node state")
    node_set.add_argument("node", help="Node name")
    node_set.add_argument("state", choices=["disconnect", "connect", "offline", "online"])
    node_set.add_argument("reason", nargs="?", default="", help="Optional reason (disconnect/offline)")
    node_set.set_defaults(handler=cmd_node_set)

    job = commands.add_parser("job", help="Job actions")
    job_actions = job.add_subparsers(dest="action", metavar="ACTION")
    job_actions.required = True

    job_list = job_actions.add_parser("list", aliases=["ls"], help="List all jobs")
    job_list.add_argument("job", nargs="?", default="", help="List the builds for specific job")
    job_list.set_defaults(handler=cmd_job_list)

    build = job_actions.add_parser("build", aliases=["b"],
                                   help="Build a job (use '-' as param list to build with defaults)")
    build.add_argument("job", help=JOB_HELP)
    build.add_argument("params", nargs="?", default="",
                       help="List of parameters (format: param=value,...,param=value)")
    build.add_argument("-f", "--follow", action="store_true", help="Follow the console output")
    build.set_defaults(handler=cmd_job_build)

    remove = job_actions.add_parser("remove", aliases=["rm", "delete", "del"],
                                    help="Remove a job (use with caution, the action is permanent)")
    remove.add_argument("job", help=JOB_HELP)
    remove.set_defaults(handler=cmd_job_remove)

    download = job_actions.add_parser("download", aliases=["fetch"],
                                      help="Download an item from a particular build(s)")
    download.add_argument("job", help=JOB_HELP)
    download.add_argument("build", help="Build number or range (N, A..B, A..=B)")
    download.add_argument("item", choices=["artifact", "log"])
    download.set_defaults(handler=cmd_job_download)

    kill = job_actions.add_parser("kill", help="Interrupt a build execution")
    kill.add_argument("-s", "--signal", default="TERM",
                      help="Send a signal to the job process (HUP, TERM, KILL)")
    kill.add_argument("job", help=JOB_HELP)
    kill.add_argument("build", help="Build number")
    kill.set_defaults(handler=cmd_job_kill)

    rebuild_parser = job_actions.add_parser("rebuild", help="Rebuild specified job")
    rebuild_parser.add_argument("job", help=JOB_HELP)
    rebuild_parser.add_argument("build", help="Build number")
    rebuild_parser.set_defaults(handler=cmd_job_rebuild)

    info = commands.add_parser("info", help="Display system-wide information")
    info.set_defaults(handler=cmd_info)

    return parser


def _discard_stdout() -> None:
    """Point stdout at devnull so the interpreter's final flush cannot fail again."""
    try:
        fd = sys.stdout.fileno()
    except (AttributeError, ValueError):
        return
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, fd)
    os.close(devnull)


def report_error(error: JenkinsError) -> None:
    print(error_line(error.kind.value, error.message), file=sys.stderr)
    if error.suggestion:
        print(f"hint: {error.suggestion}", file=sys.stderr)


def main(argv: Optional[List[str]] = None, client=None, sleep=None) -> int:
    """
    Run one CLI invocation.

    Returns:
        Process exit code: 0 on success, 1 on any Jenkins error or a closed
        stdout, 130 on Ctrl-C
    """
    args = build_parser().parse_args(argv)

    try:
        try:
            config = JenkinsConfig.from_env().with_overrides(args.url, args.user, args.token)
        except ValueError as e:
            raise ConfigurationError(f"invalid configuration: {e}") from e
        setup_logging(config.log_level, args.verbose)
        config.require_credentials()

        if client is None:
            client = JenkinsClient(config)
        return args.handler(Context(config, client, sleep=sleep), args)
    except JenkinsError as e:
        logger.debug(f"[{getattr(client, 'request_id', 'N/A')}] {e.kind.value}: {e.details}")
        report_error(e)
        return 1
    except BrokenPipeError:
        # Reader went away (e.g. piped into head); stop writing to it
        _discard_stdout()
        return 1
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130


def run() -> None:
    sys.exit(main())
