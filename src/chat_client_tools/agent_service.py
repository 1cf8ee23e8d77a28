"""
HTTP client for the AI agent service.

The agent service runs the remote agent attached to a conversation. The client
starts and stops that agent, advertises the client tools it may invoke, and
asks it for short conversation summaries.
"""

import logging
from typing import Any, Dict, Iterable, Optional

import httpx

from .config import Settings
from .tool_registry import ToolRegistrationPayload
from .utils import split_conversation_id

logger = logging.getLogger(__name__)


class AgentServiceError(Exception):
    """Raised when a request to the agent service fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RegistrationTransportFailure(AgentServiceError):
    """Raised when client tools could not be registered with the agent service."""


class AgentService:
    """Async client for the agent service endpoints."""

    def __init__(
        self,
        base_url: str,
        platform: str = "openai",
        channel_type: str = "messaging",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            base_url: Root URL of the agent service
            platform: Model platform the agent should run on
            channel_type: Channel type used for bare conversation ids
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (closed by aclose)
        """
        self.base_url = base_url.rstrip("/")
        self.platform = platform
        self.channel_type = channel_type
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AgentService":
        return cls(
            base_url=settings.agent_service_url,
            platform=settings.agent_platform,
            channel_type=settings.channel_type,
            timeout=settings.agent_service_timeout,
        )

    async def _post(
        self, path: str, body: Dict[str, Any], error_cls=AgentServiceError
    ) -> Dict[str, Any]:
        try:
            response = await self.client.post(path, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise error_cls(
                f"Agent service returned {e.response.status_code} for {path}: {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise error_cls(f"Request to agent service {path} failed: {e}") from e

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise error_cls(f"Agent service returned invalid JSON for {path}") from e
        return data if isinstance(data, dict) else {"result": data}

    def _channel(self, conversation_id: str) -> Dict[str, str]:
        channel_type, channel_id = split_conversation_id(conversation_id, self.channel_type)
        return {"channel_id": channel_id, "channel_type": channel_type}

    async def setup_agent(
        self, conversation_id: str, platform: Optional[str] = None
    ) -> Dict[str, Any]:
        """Start the remote agent for a conversation."""
        body = {**self._channel(conversation_id), "platform": platform or self.platform}
        data = await self._post("/start-ai-agent", body)
        logger.info(f"SYSTEM: Agent started for conversation {conversation_id}")
        return data

    async def stop_agent(self, conversation_id: str) -> Dict[str, Any]:
        """Stop the remote agent of a conversation."""
        channel_id = self._channel(conversation_id)["channel_id"]
        data = await self._post("/stop-ai-agent", {"channel_id": channel_id})
        logger.info(f"SYSTEM: Agent stopped for conversation {conversation_id}")
        return data

    async def register_tools(
        self, conversation_id: str, tools: Iterable[ToolRegistrationPayload]
    ) -> Dict[str, Any]:
        """
        Advertise client tools to the agent of a conversation.

        Raises:
            RegistrationTransportFailure: If the request fails
        """
        body = {
            **self._channel(conversation_id),
            "tools": [tool.to_dict() for tool in tools],
        }
        return await self._post(
            "/register-tools", body, error_cls=RegistrationTransportFailure
        )

    async def summarize(self, text: str, platform: Optional[str] = None) -> str:
        """Ask the agent service for a short summary of ``text``."""
        data = await self._post(
            "/summarize", {"text": text, "platform": platform or self.platform}
        )
        summary = data.get("summary")
        if not isinstance(summary, str):
            raise AgentServiceError("Agent service response is missing 'summary'")
        return summary

    async def aclose(self) -> None:
        await self.client.aclose()
