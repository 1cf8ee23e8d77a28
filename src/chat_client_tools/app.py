import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from .agent_service import AgentService, AgentServiceError
from .config import Settings
from .plugins.greet_plugin import GreetPlugin
from .session_manager import PACKAGE_LOGGER, SessionManager, setup_conversation
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


class SummarizeRequest(BaseModel):
    text: str
    platform: Optional[str] = None


def create_default_registry(settings: Settings) -> ToolRegistry:
    """Create the registry with the built-in client tools."""
    registry = ToolRegistry(allow_replace=settings.allow_replace)
    for plugin in [GreetPlugin()]:
        registry.register_plugin(plugin)
    return registry


async def handle_websocket_message(message_data: dict, session) -> None:
    """Handle messages sent by a host UI over its websocket."""
    if message_data.get("type") == "dismiss_alert":
        session.ui_plugin.dismiss_alert(message_data.get("alert_id"))
    else:
        logger.info(f"SYSTEM: Ignoring UI message of type {message_data.get('type')!r}")


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ToolRegistry] = None,
    agent_service: Optional[AgentService] = None,
) -> FastAPI:
    """
    Build the application and its collaborators.

    Args:
        settings: Runtime settings (defaults to the environment)
        registry: Tool registry to serve (defaults to the built-in tools)
        agent_service: Agent service client (defaults to one built from settings)
    """
    settings = settings or Settings.from_env()
    if registry is None:
        registry = create_default_registry(settings)
    agent_service = agent_service or AgentService.from_settings(settings)
    session_manager = SessionManager(registry)

    logging.getLogger(PACKAGE_LOGGER).setLevel(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        session_manager.close_all()
        await agent_service.aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.agent_service = agent_service
    app.state.session_manager = session_manager

    @app.get("/api/tools")
    async def list_tools():
        """List the registration payloads of all registered tools."""
        return [payload.to_dict() for payload in registry.registration_payloads()]

    @app.post("/api/conversations/{conversation_id}/setup")
    async def setup(conversation_id: str):
        """Start the conversation's agent and register the client tools."""
        result = await setup_conversation(conversation_id, registry, agent_service)
        return result.to_dict()

    @app.post("/api/conversations/{conversation_id}/stop")
    async def stop(conversation_id: str):
        try:
            await agent_service.stop_agent(conversation_id)
        except AgentServiceError as e:
            logger.error(f"ERROR: Failed to stop AI agent for {conversation_id}: {e}")
            return {"conversation_id": conversation_id, "stopped": False, "error": str(e)}
        return {"conversation_id": conversation_id, "stopped": True, "error": None}

    @app.post("/api/conversations/{conversation_id}/events")
    async def receive_event(conversation_id: str, request: Request):
        """Dispatch a client tool invocation event delivered by the chat transport."""
        session = session_manager.get_or_create_session(conversation_id)
        body = await request.body()
        outcome = session.dispatcher.handle_event(body)
        session_manager.release(conversation_id)
        return outcome.to_dict()

    @app.post("/api/summarize")
    async def summarize(request: SummarizeRequest):
        try:
            summary = await agent_service.summarize(request.text, request.platform)
        except AgentServiceError as e:
            logger.error(f"ERROR: Summarize failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))
        return {"summary": summary}

    @app.websocket("/ws/{conversation_id}")
    async def websocket_endpoint(websocket: WebSocket, conversation_id: str):
        """Let a host UI observe the conversation's alerts."""
        await websocket.accept()
        session = session_manager.get_or_create_session(conversation_id)
        await session.add_websocket(websocket)

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message_data = json.loads(data)
                except json.JSONDecodeError as e:
                    logger.warning(f"SYSTEM: Invalid UI message: {e}")
                    continue
                if isinstance(message_data, dict):
                    await handle_websocket_message(message_data, session)
        except WebSocketDisconnect:
            logger.info("SYSTEM: Client disconnected")
        finally:
            session_manager.remove_websocket(conversation_id, websocket)
            session_manager.release(conversation_id)

    return app
