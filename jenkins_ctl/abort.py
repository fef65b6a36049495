# abort.py

import logging
from typing import Union

from .errors import InvalidJobPathError, UnknownSignalError
from .models import BuildHandle, InterruptAck, InterruptSeverity

logger = logging.getLogger("jenkins_ctl")

# Signal names and numbers accepted by 'job kill -s'
SIGNAL_TABLE = {
    "HUP": InterruptSeverity.STOP,
    "1": InterruptSeverity.STOP,
    "TERM": InterruptSeverity.TERM,
    "15": InterruptSeverity.TERM,
    "KILL": InterruptSeverity.KILL,
    "9": InterruptSeverity.KILL,
}


def parse_signal(token: Union[str, int]) -> InterruptSeverity:
    """
    Map a signal token to an interrupt severity.

    Names are case-insensitive; numbers must match exactly.

    Raises:
        UnknownSignalError: For any token outside HUP/TERM/KILL/1/15/9
    """
    try:
        return SIGNAL_TABLE[str(token).upper()]
    except KeyError:
        raise UnknownSignalError(
            f"invalid signal: {token}",
            suggestion="Use one of HUP (1), TERM (15) or KILL (9)",
        ) from None


def parse_build_number(build: Union[str, int]) -> int:
    try:
        number = int(str(build).strip())
    except ValueError:
        raise InvalidJobPathError(f"invalid build number: {build!r}") from None
    if number <= 0:
        raise InvalidJobPathError(f"invalid build number: {build!r}")
    return number


class AbortController:
    """Interrupt a single build. Sends one request and does not wait for the result."""

    def __init__(self, client):
        self.client = client

    def interrupt(self, job: str, build: Union[str, int], signal: Union[str, int] = "TERM") -> InterruptAck:
        """
        Send the interrupt matching ``signal`` to build ``build`` of ``job``.

        HUP stops the build, TERM terminates it and KILL hard-kills it.
        Interrupting a finished build is passed through to Jenkins.

        Returns:
            Acknowledgement carrying the HTTP status Jenkins answered with
        """
        severity = parse_signal(signal)
        handle = BuildHandle(job=job, number=parse_build_number(build))
        request_id = getattr(self.client, "request_id", "N/A")

        logger.info(f"[{request_id}] Sending {severity.name} to build {handle}")
        ack = self.client.interrupt_build(handle, severity)
        logger.info(f"[{request_id}] Jenkins acknowledged {severity.name} for {handle} (HTTP {ack.status_code})")
        return ack
