import asyncio
import json
import logging
from datetime import datetime
from typing import Callable, List, Optional, Set

from fastapi import WebSocket

from ..actions import ClientToolAlert

logger = logging.getLogger(__name__)


class UILogHandler(logging.Handler):
    """Logging handler that forwards a conversation's structured records to its UI."""

    def __init__(self, ui: "UIPlugin", conversation_id: Optional[str] = None):
        super().__init__()
        self.ui = ui
        self.conversation_id = conversation_id

    def emit(self, record: logging.LogRecord) -> None:
        # Filter out debug level logs from being sent to client
        if record.levelno <= logging.DEBUG:
            return
        structured = getattr(record, "structured", None)
        if not structured:
            return
        ui = self.ui_for(structured.get("conversation_id"))
        if ui is not None:
            ui.log_structured(structured, record.created)

    def ui_for(self, conversation_id: Optional[str]) -> Optional["UIPlugin"]:
        """Return the UI that should receive a record of ``conversation_id``."""
        if self.conversation_id is not None and conversation_id != self.conversation_id:
            return None
        return self.ui


class UIPlugin:
    """Active-alert signal of one conversation.

    The host UI observes it either in-process through ``subscribe`` or over
    the websockets registered with ``add_websocket``.
    """

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id
        self.active_alert: Optional[ClientToolAlert] = None
        self.websockets: List[WebSocket] = []
        self._subscribers: List[Callable[[Optional[ClientToolAlert]], None]] = []
        self._send_tasks: Set[asyncio.Task] = set()

    def subscribe(self, callback: Callable[[Optional[ClientToolAlert]], None]) -> None:
        """Call ``callback`` with the new active alert whenever it changes."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Optional[ClientToolAlert]], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def show_alert(self, alert: ClientToolAlert) -> None:
        """Make ``alert`` the active alert and notify observers."""
        self.active_alert = alert
        logger.info(f"UI: Showing alert '{alert.title}'")
        self._notify(alert)
        self._schedule_send({"type": "alert", **alert.to_dict()})

    def dismiss_alert(self, alert_id: Optional[str] = None) -> bool:
        """Clear the active alert.

        Args:
            alert_id: Only dismiss if it matches the active alert's id

        Returns:
            True if an alert was dismissed
        """
        alert = self.active_alert
        if alert is None or (alert_id is not None and alert.id != alert_id):
            return False
        self.active_alert = None
        self._notify(None)
        self._schedule_send({"type": "alert_dismissed", "id": alert.id})
        return True

    def _notify(self, alert: Optional[ClientToolAlert]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(alert)
            except Exception as e:
                logger.error(f"ERROR: Alert subscriber {callback!r} failed: {e}")

    async def add_websocket(self, websocket: WebSocket) -> None:
        """Attach a host UI websocket and replay the active alert to it."""
        self.websockets.append(websocket)
        if self.active_alert is not None:
            await websocket.send_text(
                json.dumps({"type": "alert", **self.active_alert.to_dict()}, ensure_ascii=False)
            )

    def remove_websocket(self, websocket: WebSocket) -> None:
        if websocket in self.websockets:
            self.websockets.remove(websocket)

    def log_structured(self, structured_data: dict, timestamp: float) -> None:
        """Send a structured log record to the connected UIs."""
        self._schedule_send(
            {
                "type": "structured_log",
                "content": self._format_structured_log(structured_data),
                "timestamp": datetime.fromtimestamp(timestamp).isoformat(),
            }
        )

    def _format_structured_log(self, data: dict) -> str:
        """Format structured log data as a single display line."""
        log_type = data.get("log_type", "")
        tool_name = data.get("tool_name", "unknown")

        formatters = {
            "tool_invocation": lambda: f"{tool_name}({data.get('arguments', '')})",
            "tool_actions": lambda: f"{tool_name} produced {data.get('actions', [])}",
            "unknown_tool": lambda: f"{tool_name} is not registered",
            "tool_error": lambda: f"{tool_name} failed: {data.get('error', '')}",
            "action_error": lambda: f"{data.get('action', '')} failed: {data.get('error', '')}",
            "malformed_event": lambda: data.get("error", ""),
            "tool_registration": lambda: f"registered {data.get('tools', [])}",
        }

        if log_type in formatters:
            return f"{log_type.upper()}: {formatters[log_type]()}"

        # Fallback to content field
        return data.get("content", str(data))

    def _schedule_send(self, message_data: dict) -> None:
        if not self.websockets:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("UI: No running event loop, skipping websocket broadcast")
            return
        task = loop.create_task(self._send_to_ui(message_data))
        self._send_tasks.add(task)
        task.add_done_callback(self._on_send_done)

    def _on_send_done(self, task: asyncio.Task) -> None:
        self._send_tasks.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        # Plain record: a structured one would be broadcast again
        logger.error(f"ERROR: UI broadcast failed: {task.exception()}")

    async def _send_to_ui(self, message_data: dict) -> None:
        """Broadcast message to all connected websockets."""
        for websocket in list(self.websockets):
            try:
                await websocket.send_text(json.dumps(message_data, ensure_ascii=False))
            except Exception as e:
                logger.info(f"SYSTEM: Dropping disconnected websocket: {e}")
                self.remove_websocket(websocket)
