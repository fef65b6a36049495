# client.py

import logging
import re
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from cachetools import TTLCache

from .config import JenkinsConfig
from .errors import (
    InvalidJobPathError,
    JenkinsError,
    JenkinsRequestError,
    JenkinsTransportError,
    TriggerRejectedError,
    suggestion_for_status,
)
from .models import (
    BuildHandle,
    BuildList,
    BuildParameter,
    BuildStatus,
    ConsoleChunk,
    InterruptAck,
    InterruptSeverity,
    JobEntry,
    NodesInfo,
    ParameterMode,
    ParameterSet,
    QueueItem,
    QueueState,
    QueueStatus,
)
from .retry import RetryPolicy, with_retry

logger = logging.getLogger("jenkins_ctl")

# Retryable HTTP status codes
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

QUEUE_ITEM_PATTERN = re.compile(r"/queue/item/(\d+)")

NODE_ACTIONS = {
    "disconnect": "doDisconnect",
    "connect": "launchSlaveAgent",
    "offline": "toggleOffline",
    "online": "toggleOffline",
}


def get_request_context() -> Dict[str, str]:
    """
    Creates a context dictionary for a single CLI invocation.

    Returns:
        Dict containing a unique request ID for logging and tracing
    """
    return {"request_id": str(uuid.uuid4())}


def split_job_path(job: str) -> List[str]:
    """
    Split a job path like 'folder1/subfolder/jobname' into its segments.

    Raises:
        InvalidJobPathError: If the path is empty or has an empty segment
    """
    if not job or not job.strip():
        raise InvalidJobPathError("job path is empty",
                                  suggestion="Use the format path/to/jenkins/job")
    segments = job.split('/')
    if any(not segment.strip() for segment in segments):
        raise InvalidJobPathError(f"job path '{job}' contains an empty segment",
                                  suggestion="Use the format path/to/jenkins/job")
    return segments


def encode_job_path(job: str) -> str:
    """Turn 'a/b/c' into 'job/a/job/b/job/c' with each segment URL-encoded."""
    return '/'.join(f"job/{quote(segment, safe='')}" for segment in split_job_path(job))


def parse_queue_location(location: str) -> QueueItem:
    """Extract the queue item id from a trigger response's Location header."""
    match = QUEUE_ITEM_PATTERN.search(location or "")
    if not match:
        raise TriggerRejectedError(
            f"Jenkins accepted the build but returned no queue item (Location: {location!r})",
            suggestion="A proxy in front of Jenkins may be stripping the Location header",
        )
    return QueueItem(id=int(match.group(1)), url=location)


class JenkinsClient:
    """
    Authenticated access to the Jenkins JSON/REST API.

    Every method issues at most one logical request. Idempotent reads used
    by the single-call commands are retried with exponential backoff;
    triggers, interrupts and other POSTs are sent once. The queue and
    console pollers call the primitive reads directly and apply their own
    fixed-interval retry.
    """

    def __init__(self, config: JenkinsConfig,
                 session: Optional[requests.Session] = None,
                 context: Optional[Dict[str, str]] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.auth = (config.user, config.api_token)
        self.session.verify = config.verify_ssl
        self.context = context or get_request_context()
        self.retry_policy = RetryPolicy(
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            backoff_multiplier=config.backoff_multiplier,
            jitter=True,
        )
        # CSRF crumb cache
        self._crumb_cache = TTLCache(maxsize=1, ttl=max(config.crumb_cache_minutes * 60, 1))

    @property
    def request_id(self) -> str:
        return self.context.get('request_id', 'N/A')

    def url_for(self, path: str) -> str:
        return f"{self.config.base_url}/{path.lstrip('/')}"

    # --- Transport ---

    def _send(self, method: str, path: str, resource: str = None, **kwargs) -> requests.Response:
        url = self.url_for(path)
        kwargs.setdefault("timeout", self.config.timeout)

        logger.debug(f"[{self.request_id}] Making Jenkins API request: {method} {url}")
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.Timeout as e:
            raise JenkinsTransportError(
                f"Request timeout during {method} {path}",
                suggestion="Jenkins server is slow to respond. Consider increasing JENKINS_DEFAULT_TIMEOUT.",
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise JenkinsTransportError(
                f"Connection failed during {method} {path}",
                suggestion=f"Check Jenkins server URL ({self.config.base_url}) and network connectivity",
            ) from e
        except requests.exceptions.RequestException as e:
            raise JenkinsRequestError(f"Invalid request {method} {url}: {e}") from e

        status_code = response.status_code
        if status_code in RETRYABLE_STATUS_CODES:
            logger.debug(f"[{self.request_id}] Server error {status_code} for {method} {url}")
            raise JenkinsTransportError(
                f"Server error during {method} {path} (HTTP {status_code})",
                status_code=status_code,
                suggestion="The Jenkins server is overloaded or restarting; try again shortly.",
            )
        if status_code >= 400:
            logger.debug(f"[{self.request_id}] Jenkins API request failed: HTTP {status_code} for {method} {url}")
            raise JenkinsRequestError(
                f"HTTP {status_code} during {method} {path}",
                status_code=status_code,
                suggestion=suggestion_for_status(status_code, resource),
                details=response.text[:500] if response.text else None,
            )

        logger.debug(f"[{self.request_id}] Jenkins API request successful (Status: {status_code})")
        return response

    def request(self, method: str, path: str, resource: str = None, **kwargs) -> requests.Response:
        """Send one request, adding the CSRF crumb to state-changing methods."""
        if method.upper() in ['POST', 'PUT', 'DELETE']:
            headers = dict(kwargs.pop('headers', None) or {})
            crumb = self.get_crumb()
            if crumb:
                field, value = crumb
                headers[field] = value
                logger.debug(f"[{self.request_id}] Added CSRF crumb to {method} request")
            kwargs['headers'] = headers
            kwargs.setdefault('allow_redirects', False)
        return self._send(method, path, resource=resource, **kwargs)

    def _json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise JenkinsRequestError(
                f"Non-JSON response from {response.url}",
                status_code=response.status_code,
                suggestion="Check that the URL points at a Jenkins instance",
            ) from e

    @with_retry()
    def get_json(self, path: str, resource: str = None, **kwargs) -> Any:
        return self._json(self._send("GET", path, resource=resource, **kwargs))

    @with_retry()
    def get_bytes(self, path: str, resource: str = None, **kwargs) -> bytes:
        return self._send("GET", path, resource=resource, **kwargs).content

    # CSRF Crumb token management
    @with_retry()
    def _fetch_crumb(self) -> Dict[str, Any]:
        logger.debug(f"[{self.request_id}] Fetching new CSRF crumb token")
        return self._json(self._send("GET", "crumbIssuer/api/json"))

    def get_crumb(self) -> Optional[tuple]:
        """Get the (header, value) CSRF crumb, or None when CSRF is disabled."""
        cached = self._crumb_cache.get("crumb")
        if cached:
            logger.debug(f"[{self.request_id}] Using cached crumb token")
            return cached

        try:
            data = self._fetch_crumb()
        except JenkinsRequestError as e:
            if e.status_code == 404:
                # CSRF protection is disabled on this server
                logger.debug(f"[{self.request_id}] No crumb issuer, sending request without crumb")
            else:
                logger.warning(f"[{self.request_id}] Failed to fetch crumb token: {e}")
            return None
        except JenkinsError as e:
            logger.warning(f"[{self.request_id}] Failed to fetch crumb token: {e}")
            return None

        crumb = data.get("crumb")
        if not crumb:
            logger.warning(f"[{self.request_id}] No crumb token in response")
            return None
        field = data.get("crumbRequestField") or "Jenkins-Crumb"
        self._crumb_cache["crumb"] = (field, crumb)
        return field, crumb

    # --- Build primitives ---

    def trigger_build(self, job: str, parameters: ParameterSet) -> QueueItem:
        """
        Queue a build of ``job``.

        Plain builds post to ``build``; the defaults marker and explicit
        parameters post to ``buildWithParameters``, the latter with the
        values form-encoded.

        Returns:
            The queue item parsed from the response's Location header
        """
        job_path = encode_job_path(job)
        if parameters.mode == ParameterMode.NONE:
            endpoint = f"{job_path}/build"
            data = None
        else:
            endpoint = f"{job_path}/buildWithParameters"
            data = parameters.values if parameters.mode == ParameterMode.EXPLICIT else None

        logger.info(f"[{self.request_id}] Triggering job '{job}' ({parameters.mode.value} parameters)")
        response = self.request("POST", endpoint, resource=job,
                                params={"delay": "0sec"}, data=data)
        item = parse_queue_location(response.headers.get("Location"))
        logger.info(f"[{self.request_id}] Job '{job}' queued as item {item.id}")
        return item

    def get_queue_status(self, item: QueueItem) -> QueueStatus:
        data = self._json(self._send("GET", f"queue/item/{item.id}/api/json"))
        if data.get("cancelled"):
            return QueueStatus(state=QueueState.CANCELLED, why=data.get("why"))
        executable = data.get("executable")
        if isinstance(executable, dict) and executable.get("number") is not None:
            return QueueStatus(state=QueueState.ASSIGNED, build_number=int(executable["number"]))
        return QueueStatus(state=QueueState.QUEUED, why=data.get("why"))

    def get_build_status(self, handle: BuildHandle) -> BuildStatus:
        data = self._json(self._send(
            "GET", f"{encode_job_path(handle.job)}/{handle.number}/api/json",
            resource=handle.job, params={"tree": "building,result"},
        ))
        return BuildStatus(building=bool(data.get("building")), result=data.get("result"))

    def get_console_chunk(self, handle: BuildHandle, start: int) -> ConsoleChunk:
        """Fetch console bytes of a build starting at byte offset ``start``."""
        response = self._send(
            "GET", f"{encode_job_path(handle.job)}/{handle.number}/logText/progressiveText",
            resource=handle.job, params={"start": start},
        )
        data = response.content or b""
        has_more = response.headers.get("X-More-Data", "false").lower() == "true"
        text_size = response.headers.get("X-Text-Size")
        next_offset = int(text_size) if text_size and text_size.isdigit() else start + len(data)
        return ConsoleChunk(data=data, next_offset=next_offset, more_data=has_more)

    def interrupt_build(self, handle: BuildHandle, severity: InterruptSeverity) -> InterruptAck:
        response = self.request(
            "POST", f"{encode_job_path(handle.job)}/{handle.number}/{severity.endpoint}",
            resource=handle.job,
        )
        return InterruptAck(handle=handle, severity=severity, status_code=response.status_code)

    # --- Single-call operations ---

    def quiet_down(self, reason: str = "") -> None:
        params = {"reason": reason} if reason else None
        self.request("POST", "quietDown", params=params)

    def cancel_quiet_down(self) -> None:
        self.request("POST", "cancelQuietDown")

    def restart(self, hard: bool = False) -> None:
        self.request("POST", "restart" if hard else "safeRestart")

    def copy_item(self, kind: str, src: str, dest: str) -> None:
        """Copy a job (``kind='job'``) or a view (``kind='view'``)."""
        endpoint = "createItem" if kind == "job" else "createView"
        self.request("POST", endpoint, resource=src,
                     params={"name": dest, "mode": "copy", "from": src})

    def delete_job(self, job: str) -> None:
        self.request("POST", f"{encode_job_path(job)}/doDelete", resource=job)

    def get_nodes(self) -> NodesInfo:
        return NodesInfo.model_validate(self.get_json("computer/api/json"))

    def set_node_state(self, node: str, state: str, reason: str = "") -> None:
        action = NODE_ACTIONS[state]
        params = {"offlineMessage": reason} if reason and state in ("disconnect", "offline") else None
        self.request("POST", f"computer/{quote(node, safe='')}/{action}",
                     resource=node, params=params)

    def list_job_entries(self, folder: str = "") -> List[JobEntry]:
        prefix = f"{encode_job_path(folder)}/" if folder else ""
        data = self.get_json(f"{prefix}api/json", resource=folder or None,
                             params={"tree": "jobs[name,fullName,url]"})
        return [JobEntry.model_validate(item) for item in data.get("jobs", [])]

    def list_builds(self, job: str) -> BuildList:
        data = self.get_json(f"{encode_job_path(job)}/api/json", resource=job,
                             params={"tree": "builds[number,url],nextBuildNumber"})
        return BuildList.model_validate(data)

    def get_console_text(self, handle: BuildHandle) -> bytes:
        return self.get_bytes(f"{encode_job_path(handle.job)}/{handle.number}/consoleText",
                              resource=handle.job)

    def download_artifacts(self, handle: BuildHandle) -> bytes:
        return self.get_bytes(
            f"{encode_job_path(handle.job)}/{handle.number}/artifact/*zip*/archive.zip",
            resource=handle.job,
        )

    def get_build_parameters(self, handle: BuildHandle) -> List[BuildParameter]:
        data = self.get_json(f"{encode_job_path(handle.job)}/{handle.number}/api/json",
                             resource=handle.job,
                             params={"tree": "actions[parameters[name,value]]"})
        parameters = []
        for action in data.get("actions", []) or []:
            if not isinstance(action, dict):
                continue
            for parameter in action.get("parameters", []) or []:
                parameters.append(BuildParameter.model_validate(parameter))
        return parameters
