"""
Runtime settings read from the environment.

Values can also come from a ``.env`` file in the working directory.
"""

import os

from dotenv import find_dotenv, load_dotenv

DEFAULT_AGENT_SERVICE_URL = "http://localhost:3000"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


class Settings:
    """Configuration for the agent service client and the tool registry."""

    def __init__(
        self,
        agent_service_url: str = DEFAULT_AGENT_SERVICE_URL,
        agent_platform: str = "openai",
        channel_type: str = "messaging",
        agent_service_timeout: float = 10.0,
        allow_replace: bool = True,
        log_level: str = "INFO",
    ):
        self.agent_service_url = agent_service_url.rstrip("/")
        self.agent_platform = agent_platform
        self.channel_type = channel_type
        self.agent_service_timeout = agent_service_timeout
        self.allow_replace = allow_replace
        self.log_level = log_level.upper()

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            load_env_file: Load a ``.env`` file first (existing variables win)
        """
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True))

        timeout = os.environ.get("AGENT_SERVICE_TIMEOUT", "10")
        try:
            agent_service_timeout = float(timeout)
        except ValueError:
            raise ValueError(f"AGENT_SERVICE_TIMEOUT must be a number, got {timeout!r}")

        return cls(
            agent_service_url=os.environ.get("AGENT_SERVICE_URL", DEFAULT_AGENT_SERVICE_URL),
            agent_platform=os.environ.get("AGENT_PLATFORM", "openai"),
            channel_type=os.environ.get("AGENT_CHANNEL_TYPE", "messaging"),
            agent_service_timeout=agent_service_timeout,
            allow_replace=_env_flag("CLIENT_TOOLS_ALLOW_REPLACE", True),
            log_level=os.environ.get("CLIENT_TOOLS_LOG_LEVEL", "INFO"),
        )
