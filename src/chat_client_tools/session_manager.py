import logging
from typing import Dict, NamedTuple, Optional

from fastapi import WebSocket

from .agent_service import AgentService, AgentServiceError
from .dispatcher import InvocationDispatcher
from .plugins.ui_plugin import UILogHandler, UIPlugin
from .tool_registry import ToolRegistry
from .utils import log_item

logger = logging.getLogger(__name__)

# Logger whose records are forwarded to the UIs of a conversation
PACKAGE_LOGGER = "chat_client_tools"


class SetupResult(NamedTuple):
    conversation_id: str
    agent_ready: bool
    tools_registered: int
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return self._asdict()


async def setup_conversation(
    conversation_id: str, registry: ToolRegistry, agent_service: AgentService
) -> SetupResult:
    """
    Start the remote agent of a conversation and register the client tools.

    Failures are logged and reported in the result; the conversation can
    continue without an agent or without tools.
    """
    try:
        await agent_service.setup_agent(conversation_id)
    except AgentServiceError as e:
        logger.error(f"ERROR: Failed to setup AI agent for {conversation_id}: {e}")
        return SetupResult(conversation_id, False, 0, str(e))

    payloads = registry.registration_payloads()
    if not payloads:
        return SetupResult(conversation_id, True, 0)

    try:
        await agent_service.register_tools(conversation_id, payloads)
    except AgentServiceError as e:
        logger.error(f"ERROR: Failed to register tools for {conversation_id}: {e}")
        return SetupResult(conversation_id, True, 0, str(e))

    log_item(
        logger,
        "tool_registration",
        f"SYSTEM: Registered {len(payloads)} tools for {conversation_id}",
        conversation_id=conversation_id,
        tools=[payload.name for payload in payloads],
    )
    return SetupResult(conversation_id, True, len(payloads))


class SessionLogHandler(UILogHandler):
    """Single handler that forwards structured records to the session they belong to."""

    def __init__(self, sessions: Dict[str, "ConversationSession"]):
        super().__init__(ui=None)
        self.sessions = sessions

    def ui_for(self, conversation_id: Optional[str]) -> Optional[UIPlugin]:
        session = self.sessions.get(conversation_id) if conversation_id else None
        if session is None or not session.ui_plugin.websockets:
            return None
        return session.ui_plugin


class ConversationSession:
    """Per-conversation UI signal and dispatcher."""

    def __init__(self, conversation_id: str, registry: ToolRegistry):
        self.conversation_id = conversation_id
        self.ui_plugin = UIPlugin(conversation_id)
        self.dispatcher = InvocationDispatcher(
            registry, ui=self.ui_plugin, conversation_id=conversation_id
        )

    async def add_websocket(self, websocket: WebSocket) -> None:
        await self.ui_plugin.add_websocket(websocket)
        logger.info(f"SYSTEM: UI joined conversation {self.conversation_id}")

    def remove_websocket(self, websocket: WebSocket) -> None:
        self.ui_plugin.remove_websocket(websocket)
        logger.info(f"SYSTEM: UI left conversation {self.conversation_id}")

    def get_websocket_count(self) -> int:
        return len(self.ui_plugin.websockets)

    def is_idle(self) -> bool:
        """True when no UI is attached and no alert is waiting for one."""
        return self.get_websocket_count() == 0 and self.ui_plugin.active_alert is None


class SessionManager:
    """Tracks the conversation sessions the host UIs and transport talk to.

    Sessions without a UI are kept only while they hold an undelivered alert,
    and at most ``max_pending_sessions`` of those are kept (oldest evicted).
    """

    def __init__(self, registry: ToolRegistry, max_pending_sessions: int = 256):
        self.registry = registry
        self.max_pending_sessions = max_pending_sessions
        self.sessions: Dict[str, ConversationSession] = {}
        # Attached to the package logger only while sessions exist
        self.log_handler = SessionLogHandler(self.sessions)
        self.log_handler.setLevel(logging.INFO)

    def get_or_create_session(self, conversation_id: str) -> ConversationSession:
        session = self.sessions.get(conversation_id)
        if session is None:
            session = ConversationSession(conversation_id, self.registry)
            self.sessions[conversation_id] = session
            logging.getLogger(PACKAGE_LOGGER).addHandler(self.log_handler)
            logger.info(f"SYSTEM: Created session for conversation {conversation_id}")
        return session

    def get_session(self, conversation_id: str) -> Optional[ConversationSession]:
        """Get session by conversation id."""
        return self.sessions.get(conversation_id)

    def remove_websocket(self, conversation_id: str, websocket: WebSocket) -> bool:
        """Detach a UI websocket. Returns True if the session should be cleaned up."""
        session = self.get_session(conversation_id)
        if not session:
            return False

        session.remove_websocket(websocket)
        return session.is_idle()

    def release(self, conversation_id: str) -> None:
        """Drop the session if it is idle and cap the detached sessions still holding alerts."""
        session = self.get_session(conversation_id)
        if session is not None and session.is_idle():
            self.cleanup_session(conversation_id)
        self._evict_pending()

    def _evict_pending(self) -> None:
        pending = [
            conversation_id
            for conversation_id, session in self.sessions.items()
            if session.get_websocket_count() == 0
        ]
        for conversation_id in pending[: max(0, len(pending) - self.max_pending_sessions)]:
            logger.warning(
                f"SYSTEM: Evicting undelivered alert of conversation {conversation_id}"
            )
            self.cleanup_session(conversation_id)

    def cleanup_session(self, conversation_id: str) -> None:
        if self.sessions.pop(conversation_id, None) is not None:
            logger.info(f"SYSTEM: Cleaned up session for conversation {conversation_id}")
        if not self.sessions:
            logging.getLogger(PACKAGE_LOGGER).removeHandler(self.log_handler)

    def close_all(self) -> None:
        for conversation_id in list(self.sessions):
            self.cleanup_session(conversation_id)

    def get_session_count(self) -> int:
        return len(self.sessions)
