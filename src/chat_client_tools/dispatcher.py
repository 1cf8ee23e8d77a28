import logging
from typing import List, NamedTuple, Optional, Tuple

from .actions import Action
from .invocation import Invocation, MalformedInvocationEvent, decode_invocation_event
from .tool_registry import ToolRegistry
from .utils import log_item


class DispatchOutcome(NamedTuple):
    """Result of handling one transport event."""

    status: str  # "dispatched", "ignored", "error" or "dropped"
    actions: List[Action]
    invocation: Optional[Invocation] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "status": self.status,
            "actions": [action.to_dict() for action in self.actions],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class ConversationLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects conversation_id into structured logs."""

    def __init__(self, logger, conversation_id):
        self.conversation_id = conversation_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"].setdefault("conversation_id", self.conversation_id)
        return msg, kwargs


class InvocationDispatcher:
    """Turns inbound invocation events into performed actions.

    One dispatcher serves one conversation: it decodes events with the
    conversation's id, resolves handlers in the shared registry and performs
    the resulting actions on the conversation's UI plugin.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        ui=None,
        conversation_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.ui = ui
        self.conversation_id = conversation_id
        self.logger = ConversationLoggerAdapter(
            logger or logging.getLogger(__name__), conversation_id
        )

    def dispatch(self, invocation: Invocation) -> List[Action]:
        """
        Run the handler for an invocation without performing its actions.

        A handler that raises is logged and treated as producing no actions.
        """
        actions, _ = self._run_handler(invocation)
        return actions

    def _run_handler(self, invocation: Invocation) -> Tuple[List[Action], Optional[Exception]]:
        log_item(
            self.logger,
            "tool_invocation",
            tool_name=invocation.tool_name,
            arguments=invocation.arguments,
            message_id=invocation.message_id,
        )
        try:
            actions = self.registry.dispatch(invocation)
        except Exception as e:
            self.logger.error(
                f"ERROR: Tool '{invocation.tool_name}' failed: {e}",
                extra={
                    "structured": {
                        "log_type": "tool_error",
                        "tool_name": invocation.tool_name,
                        "error": str(e),
                    }
                },
            )
            return [], e

        if actions:
            log_item(
                self.logger,
                "tool_actions",
                tool_name=invocation.tool_name,
                actions=[action.kind for action in actions],
            )
        return actions, None

    def perform(self, actions: List[Action]) -> None:
        """Perform actions in order; a failing action does not stop the rest."""
        for action in actions:
            try:
                action.perform(self.ui)
            except Exception as e:
                self.logger.error(
                    f"ERROR: Action {action.kind} failed: {e}",
                    extra={
                        "structured": {
                            "log_type": "action_error",
                            "action": action.kind,
                            "error": str(e),
                        }
                    },
                )

    def handle_event(self, event) -> DispatchOutcome:
        """
        Decode, dispatch and perform one transport event.

        Malformed events are logged and dropped. Invocations of tools that are
        not registered are ignored. A handler that raises yields an "error"
        outcome with no actions.
        """
        try:
            invocation = decode_invocation_event(event, self.conversation_id)
        except MalformedInvocationEvent as e:
            self.logger.warning(
                f"SYSTEM: Dropping malformed invocation event: {e}",
                extra={"structured": {"log_type": "malformed_event", "error": str(e)}},
            )
            return DispatchOutcome("dropped", [])

        status = "dispatched" if self.registry.has_tool(invocation.tool_name) else "ignored"
        actions, error = self._run_handler(invocation)
        if error is not None:
            return DispatchOutcome("error", [], invocation, str(error))
        self.perform(actions)
        return DispatchOutcome(status, actions, invocation)
