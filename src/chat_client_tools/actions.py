"""
Actions produced by client tool handlers.

An action is a deferred unit of client-side work. Handlers return actions
instead of touching the UI directly, and the dispatcher performs them against
the conversation's UI plugin once the handler has returned.
"""

import asyncio
import inspect
import logging
import uuid
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ClientToolAlert:
    """One-shot notification shown to the user."""

    def __init__(self, title: str, message: str, alert_id: Optional[str] = None):
        self.id = alert_id or uuid.uuid4().hex
        self.title = title
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "message": self.message}

    def __repr__(self):
        return f"ClientToolAlert(title={self.title!r}, message={self.message!r})"


class Action:
    """Base class for deferred side effects."""

    kind = "action"

    def perform(self, ui) -> None:
        """
        Run the side effect.

        Args:
            ui: The UI plugin of the conversation the invocation came from.
                May be None when no host UI is attached.
        """
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind}


class AlertAction(Action):
    """Show an alert on the conversation's active-alert signal."""

    kind = "alert"

    def __init__(self, alert: ClientToolAlert):
        self.alert = alert

    @classmethod
    def create(cls, title: str, message: str) -> "AlertAction":
        return cls(ClientToolAlert(title=title, message=message))

    @property
    def title(self) -> str:
        return self.alert.title

    @property
    def message(self) -> str:
        return self.alert.message

    def perform(self, ui) -> None:
        if ui is None:
            logger.info(f"SYSTEM: No UI attached, alert '{self.alert.title}' not shown")
            return
        ui.show_alert(self.alert)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, **self.alert.to_dict()}


class CallbackAction(Action):
    """Run an arbitrary callable.

    Coroutine functions are scheduled on the running event loop rather than
    awaited, so performing the action never blocks dispatch.
    """

    kind = "callback"

    def __init__(self, callback: Callable[[], Any], name: Optional[str] = None):
        self.callback = callback
        self.name = name or getattr(callback, "__name__", "callback")
        self.task: Optional[asyncio.Task] = None
        self._conversation_id: Optional[str] = None

    def perform(self, ui) -> None:
        result = self.callback()
        if not inspect.iscoroutine(result):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            result.close()
            raise RuntimeError(
                f"Callback '{self.name}' returned a coroutine but no event loop is running"
            )
        self.task = loop.create_task(result)
        self._conversation_id = getattr(ui, "conversation_id", None)
        self.task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        e = task.exception()
        if e is None:
            return
        logger.error(
            f"ERROR: Action {self.kind} '{self.name}' failed: {e}",
            extra={
                "structured": {
                    "log_type": "action_error",
                    "action": self.kind,
                    "name": self.name,
                    "error": str(e),
                    "conversation_id": self._conversation_id,
                }
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "name": self.name}
