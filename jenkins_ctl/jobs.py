# jobs.py

import logging
import os
from typing import List

from .abort import parse_build_number
from .errors import InvalidJobPathError, JenkinsRequestError
from .models import BuildHandle, BuildResult, JobTreeItem
from .output import folder
from .params import encode_parameters, from_build_parameters

logger = logging.getLogger("jenkins_ctl")


def collect_jobs(client, path: str = "", max_depth: int = 10, current_depth: int = 0) -> List[JobTreeItem]:
    """
    Recursively collect all jobs from Jenkins folders.

    Folders that cannot be read below the top level are logged and skipped.
    """
    request_id = client.request_id

    if current_depth >= max_depth:
        logger.warning(f"[{request_id}] Max depth {max_depth} reached at path '{path}'")
        return []

    try:
        entries = client.list_job_entries(path)
    except JenkinsRequestError as e:
        if not path:
            raise
        logger.error(f"[{request_id}] Failed to collect jobs from path '{path}': {e}")
        return []

    jobs = []
    for entry in entries:
        full_name = f"{path}/{entry.name}" if path else entry.name

        if entry.is_folder:
            jobs.append(JobTreeItem(name=entry.name, full_name=full_name, type="folder", depth=current_depth))
            logger.debug(f"[{request_id}] Exploring folder: {full_name} (depth {current_depth + 1})")
            jobs.extend(collect_jobs(client, full_name, max_depth, current_depth + 1))
        else:
            jobs.append(JobTreeItem(name=entry.name, full_name=full_name, type="job", depth=current_depth))

    return jobs


def format_job_tree(items: List[JobTreeItem]) -> List[str]:
    """Folders are printed highlighted, jobs by their full path."""
    return [folder(f"{item.full_name}/") if item.type == "folder" else item.full_name
            for item in items]


def parse_build_range(value: str) -> range:
    """
    Parse a build selector.

    ``"7"`` selects one build, ``"3..7"`` builds 3 to 6 and ``"3..=7"``
    builds 3 to 7.
    """
    value = str(value).strip()
    try:
        if "..=" in value:
            start, end = value.split("..=", 1)
            result = range(int(start), int(end) + 1)
        elif ".." in value:
            start, end = value.split("..", 1)
            result = range(int(start), int(end))
        else:
            return range(parse_build_number(value), parse_build_number(value) + 1)
    except ValueError:
        raise InvalidJobPathError(f"invalid build range: {value!r}",
                                  suggestion="Use N, A..B or A..=B") from None
    if result.start <= 0 or len(result) == 0:
        raise InvalidJobPathError(f"invalid build range: {value!r}",
                                  suggestion="Use N, A..B or A..=B")
    return result


def download_artifacts(client, job: str, builds: range, dest_dir: str = ".") -> List[str]:
    """
    Save the zipped artifacts of each build as '<job>_<build>.zip'.

    Builds without artifacts are logged and skipped.

    Returns:
        Paths of the files written
    """
    job_base = job.rstrip('/').split('/')[-1]
    written = []
    for number in builds:
        handle = BuildHandle(job=job, number=number)
        try:
            data = client.download_artifacts(handle)
        except JenkinsRequestError as e:
            logger.error(f"[{client.request_id}] {e.message}: artifacts not found for the build {number}")
            continue
        logger.info(f"[{client.request_id}] fetching build {number} artifacts from the {job}")
        target = os.path.join(dest_dir, f"{job_base}_{number}.zip")
        with open(target, "wb") as fh:
            fh.write(data)
        written.append(target)
    return written


def rebuild(client, orchestrator, job: str, build) -> BuildResult:
    """Trigger ``job`` again with the parameters build ``build`` ran with."""
    handle = BuildHandle(job=job, number=parse_build_number(build))
    parameters = from_build_parameters(
        (parameter.name, parameter.value) for parameter in client.get_build_parameters(handle)
    )

    logger.info(f"[{client.request_id}] rebuilding the build {handle.number} with params: "
                f"{encode_parameters(parameters) or '<none>'}")
    return orchestrator.trigger(job, parameters, stream=False)
