# config.py

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .errors import ConfigurationError

# --- Enhanced Logging Setup ---
logger = logging.getLogger("jenkins_ctl")

handler = logging.StreamHandler()

# This formatter includes a timestamp, logger name, log level, and the message.
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
handler.setFormatter(formatter)

# Prevents duplication of logs if basicConfig was called elsewhere.
if not logger.handlers:
    logger.addHandler(handler)


def setup_logging(level: str = "WARNING", verbosity: int = 0) -> None:
    """
    Set the ``jenkins_ctl`` logger level.

    Args:
        level: Level name used when no verbosity flag was given
        verbosity: Number of ``-v`` flags (1 = INFO, 2+ = DEBUG)
    """
    if verbosity >= 2:
        level = "DEBUG"
    elif verbosity == 1:
        level = "INFO"
    logger.setLevel(getattr(logging, str(level).upper(), logging.WARNING))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Configuration Constants ---
class JenkinsConfig(BaseModel):
    """
    Centralized configuration for the Jenkins CLI.

    Environment Variables:
        JENKINS_URL: Jenkins server URL
        JENKINS_USER: Jenkins username for authentication
        JENKINS_API_TOKEN: Jenkins API token (JENKINS_TOKEN is accepted too)
        JENKINS_DEFAULT_TIMEOUT: Request timeout in seconds (default: 10)
        JENKINS_VERIFY_SSL: Verify TLS certificates (default: true)
        JENKINS_MAX_RETRIES: Retry attempts for idempotent requests (default: 3)
        JENKINS_RETRY_BASE_DELAY: Base delay between retries in seconds (default: 1.0)
        JENKINS_RETRY_MAX_DELAY: Maximum delay between retries in seconds (default: 60.0)
        JENKINS_RETRY_BACKOFF_MULTIPLIER: Exponential backoff multiplier (default: 2.0)
        JENKINS_CRUMB_CACHE_MINUTES: CSRF crumb cache duration in minutes (default: 30)
        JENKINS_POLL_INTERVAL: Queue/console poll interval in seconds (default: 0.5)
        JENKINS_POLL_RETRIES: Retries of a failed poll before giving up (default: 3)
        JENKINS_QUEUE_TIMEOUT: Seconds to wait for a build number (default: 300)
        JENKINS_MAX_DEPTH: Maximum folder depth for job listing (default: 10)
        JENKINS_LOG_LEVEL: Log level when no -v flag is given (default: WARNING)
    """

    url: str = ""
    user: str = ""
    api_token: str = ""

    timeout: float = Field(default=10, gt=0)
    verify_ssl: bool = True

    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=60.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)

    crumb_cache_minutes: int = Field(default=30, ge=0)

    poll_interval: float = Field(default=0.5, gt=0, le=5)
    poll_retries: int = Field(default=3, ge=0, le=10)
    queue_timeout: float = Field(default=300, gt=0)

    max_depth: int = Field(default=10, ge=1)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "JenkinsConfig":
        """
        Create a config from ``.env`` and ``JENKINS_*`` environment variables.

        Unset or empty variables keep their defaults.
        """
        load_dotenv(env_file)

        config = cls(
            url=os.getenv("JENKINS_URL", ""),
            user=os.getenv("JENKINS_USER", ""),
            api_token=os.getenv("JENKINS_API_TOKEN") or os.getenv("JENKINS_TOKEN", ""),
            verify_ssl=_env_bool("JENKINS_VERIFY_SSL", True),
        )

        numeric = {
            "timeout": ("JENKINS_DEFAULT_TIMEOUT", float),
            "max_retries": ("JENKINS_MAX_RETRIES", int),
            "retry_base_delay": ("JENKINS_RETRY_BASE_DELAY", float),
            "retry_max_delay": ("JENKINS_RETRY_MAX_DELAY", float),
            "backoff_multiplier": ("JENKINS_RETRY_BACKOFF_MULTIPLIER", float),
            "crumb_cache_minutes": ("JENKINS_CRUMB_CACHE_MINUTES", int),
            "poll_interval": ("JENKINS_POLL_INTERVAL", float),
            "poll_retries": ("JENKINS_POLL_RETRIES", int),
            "queue_timeout": ("JENKINS_QUEUE_TIMEOUT", float),
            "max_depth": ("JENKINS_MAX_DEPTH", int),
        }
        updates = {}
        for field_name, (env_name, cast) in numeric.items():
            raw = os.getenv(env_name)
            if raw:
                updates[field_name] = cast(raw)
        if os.getenv("JENKINS_LOG_LEVEL"):
            updates["log_level"] = os.environ["JENKINS_LOG_LEVEL"]

        if updates:
            config = cls.model_validate({**config.model_dump(), **updates})
        return config

    def with_overrides(self, url: str = None, user: str = None,
                       api_token: str = None) -> "JenkinsConfig":
        """Return a copy where non-empty command-line values replace env values."""
        updates = {}
        if url:
            updates["url"] = url
        if user:
            updates["user"] = user
        if api_token:
            updates["api_token"] = api_token
        return self.model_copy(update=updates)

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless url, user and token are all set."""
        if self.url and self.user and self.api_token:
            return
        raise ConfigurationError(
            f"missing argument(s): url={bool(self.url)}, user={bool(self.user)}, "
            f"token={bool(self.api_token)}",
            suggestion="Set JENKINS_URL, JENKINS_USER and JENKINS_API_TOKEN "
                       "or pass --url, --user and --token",
        )
