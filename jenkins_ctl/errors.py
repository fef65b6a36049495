# errors.py

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Error categories reported by the CLI as ``error[<kind>]``."""

    MALFORMED_PARAMETERS = "MalformedParameters"
    TRIGGER_REJECTED = "TriggerRejected"
    QUEUE_CANCELLED = "QueueCancelled"
    QUEUE_TIMEOUT = "QueueTimeout"
    STREAM_INTERRUPTED = "StreamInterrupted"
    UNKNOWN_SIGNAL = "UnknownSignal"
    TRANSPORT_ERROR = "TransportError"
    INVALID_JOB_PATH = "InvalidJobPath"
    REQUEST_REJECTED = "RequestRejected"
    CONFIGURATION_ERROR = "ConfigurationError"


# --- Standardized Error Handling ---
class JenkinsError(Exception):
    """Base exception for Jenkins CLI operations."""

    kind = ErrorKind.REQUEST_REJECTED

    def __init__(self, message: str, suggestion: str = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details


class ConfigurationError(JenkinsError):
    """Raised when the server URL or credentials are missing."""
    kind = ErrorKind.CONFIGURATION_ERROR


class MalformedParametersError(JenkinsError):
    """Raised when a parameter string does not follow ``key=value,...``."""
    kind = ErrorKind.MALFORMED_PARAMETERS


class InvalidJobPathError(JenkinsError):
    """Raised when a job path or build number is not well-formed."""
    kind = ErrorKind.INVALID_JOB_PATH


class UnknownSignalError(JenkinsError):
    """Raised when a signal token is not in the interrupt table."""
    kind = ErrorKind.UNKNOWN_SIGNAL


class JenkinsRequestError(JenkinsError):
    """Raised when Jenkins answers with a non-retryable HTTP error."""

    kind = ErrorKind.REQUEST_REJECTED

    def __init__(self, message: str, status_code: Optional[int] = None,
                 suggestion: str = None, details: Any = None):
        super().__init__(message, suggestion, details)
        self.status_code = status_code


class JenkinsTransportError(JenkinsError):
    """Raised on network failures and retryable HTTP statuses (429, 5xx)."""

    kind = ErrorKind.TRANSPORT_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None,
                 suggestion: str = None, details: Any = None):
        super().__init__(message, suggestion, details)
        self.status_code = status_code


class TriggerRejectedError(JenkinsError):
    """Raised when Jenkins refuses to queue a build."""

    kind = ErrorKind.TRIGGER_REJECTED

    def __init__(self, message: str, status_code: Optional[int] = None,
                 suggestion: str = None, details: Any = None):
        super().__init__(message, suggestion, details)
        self.status_code = status_code


class QueueCancelledError(JenkinsError):
    """Raised when a queue item is cancelled before a build starts."""
    kind = ErrorKind.QUEUE_CANCELLED


class QueueTimeoutError(JenkinsError):
    """Raised when no build number is assigned within the queue timeout."""
    kind = ErrorKind.QUEUE_TIMEOUT


class StreamInterruptedError(JenkinsError):
    """
    Raised when console streaming cannot continue.

    ``offset`` is the number of bytes already emitted, so a caller can
    resume from it.
    """

    kind = ErrorKind.STREAM_INTERRUPTED

    def __init__(self, message: str, offset: int = 0,
                 suggestion: str = None, details: Any = None):
        super().__init__(message, suggestion, details)
        self.offset = offset


def suggestion_for_status(status_code: Optional[int], resource_name: str = None) -> str:
    """
    Build a status-specific hint for an HTTP failure.

    Args:
        status_code: HTTP status returned by Jenkins
        resource_name: Job, node or view the request addressed

    Returns:
        A short suggestion string
    """
    if status_code == 404:
        if resource_name:
            return f"'{resource_name}' not found. Use 'job list' to see available jobs."
        return "Verify the resource name and ensure it exists in Jenkins"
    if status_code == 401:
        return "Check Jenkins credentials (JENKINS_USER and JENKINS_API_TOKEN)"
    if status_code == 403:
        return "Ensure your Jenkins user has the required permissions"
    if status_code == 400:
        return "Jenkins rejected the request; check job parameters"
    return "Check Jenkins server connectivity and request parameters"
