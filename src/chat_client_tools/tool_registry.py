"""
Registry of client tools the remote agent may invoke.

Maps tool names to handlers, projects the registered tools into the payloads
advertised to the agent service, and routes invocations to their handler.
"""

import copy
import inspect
import logging
import threading
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    NamedTuple,
    Optional,
    get_type_hints,
)

from .actions import Action
from .invocation import Invocation
from .utils import log_item

logger = logging.getLogger(__name__)


class DuplicateToolName(KeyError):
    """Raised when a tool name is already taken and replacement is disabled."""


class ToolDefinition(NamedTuple):
    """Describes a callable tool."""

    name: str
    description: Optional[str] = None
    input_schema: Any = None
    annotations: Optional[Dict[str, Any]] = None


class ToolRegistrationPayload(NamedTuple):
    """Outbound description of a registered tool for the agent service."""

    name: str
    description: str
    instructions: str
    parameters: Any
    show_external_sources_indicator: bool

    def to_dict(self) -> Dict[str, Any]:
        """Render the payload in the agent service wire format."""
        return {
            "name": self.name,
            "description": self.description,
            "instructions": self.instructions,
            "parameters": copy.deepcopy(self.parameters),
            "showExternalSourcesIndicator": self.show_external_sources_indicator,
        }


class ClientTool:
    """
    Interface for client tool handlers.

    Subclasses provide a ``definition`` and implement ``handle_invocation``.
    Handlers run synchronously on dispatch, so anything slow has to be
    returned as an action or scheduled by the handler itself.
    """

    definition: ToolDefinition
    instructions: str = ""
    show_external_sources_indicator: bool = False

    def handle_invocation(self, invocation: Invocation):
        """
        Handle one invocation.

        Returns:
            None, a single Action, or an iterable of Actions
        """
        raise NotImplementedError


class RegisteredTool(NamedTuple):
    """Snapshot of a handler taken when it was registered."""

    definition: ToolDefinition
    instructions: str
    show_external_sources_indicator: bool
    handler: ClientTool

    def to_payload(self) -> ToolRegistrationPayload:
        return ToolRegistrationPayload(
            name=self.definition.name,
            description=self.definition.description or self.instructions,
            instructions=self.instructions,
            parameters=copy.deepcopy(self.definition.input_schema),
            show_external_sources_indicator=self.show_external_sources_indicator,
        )


def callable_to_tool_schema(callable_func: Callable) -> Dict[str, Any]:
    """
    Build a JSON schema for the keyword arguments of a callable.

    Args:
        callable_func: The callable to describe

    Returns:
        Object schema with one property per parameter
    """
    sig = inspect.signature(callable_func)
    type_hints = get_type_hints(callable_func)

    schema = {
        "type": "object",
        "properties": {},
        "required": [],
        "additionalProperties": False,
    }

    for param_name, param in sig.parameters.items():
        if param_name == "self" or param.kind in (
            inspect.Parameter.VAR_POSITIONAL,
            inspect.Parameter.VAR_KEYWORD,
        ):
            continue

        param_type = type_hints.get(param_name, str)

        if param_type is bool:
            json_type = "boolean"
        elif param_type is int:
            json_type = "integer"
        elif param_type is float:
            json_type = "number"
        elif param_type in (dict, Dict):
            json_type = "object"
        elif param_type in (list, List):
            json_type = "array"
        else:
            json_type = "string"  # Default fallback

        schema["properties"][param_name] = {
            "type": json_type,
            "description": f"The {param_name} parameter",
        }

        if param.default is inspect.Parameter.empty:
            schema["required"].append(param_name)

    return schema


class FunctionTool(ClientTool):
    """Client tool backed by a plain function.

    The function is called with the invocation arguments as keyword
    arguments and returns whatever a handler may return.
    """

    def __init__(
        self,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
        instructions: Optional[str] = None,
        show_external_sources_indicator: bool = False,
    ):
        tool_name = name or func.__name__
        if description is None:
            doc = inspect.getdoc(func)
            description = doc.strip() if doc else None

        self.func = func
        self.definition = ToolDefinition(
            name=tool_name,
            description=description,
            input_schema=callable_to_tool_schema(func),
        )
        self.instructions = instructions or f"Use the {tool_name} tool when appropriate."
        self.show_external_sources_indicator = show_external_sources_indicator

    def handle_invocation(self, invocation: Invocation):
        args = invocation.arguments or {}
        if not isinstance(args, dict):
            raise TypeError(
                f"Tool '{self.definition.name}' expects object arguments, "
                f"got {type(args).__name__}"
            )
        return self.func(**args)


def normalize_actions(result) -> List[Action]:
    """Turn a handler return value into a list of actions."""
    if result is None:
        return []
    if isinstance(result, Action):
        return [result]
    if isinstance(result, Iterable) and not isinstance(result, (str, bytes, dict)):
        actions = list(result)
        for action in actions:
            if not isinstance(action, Action):
                raise TypeError(f"Handler returned a non-action item: {action!r}")
        return actions
    raise TypeError(f"Handler returned an unsupported value: {result!r}")


class ToolRegistry:
    """Registry for managing client tools and their registration payloads."""

    def __init__(self, allow_replace: bool = True):
        """
        Args:
            allow_replace: When True a second registration under an existing
                name replaces the first one. When False it raises
                DuplicateToolName.
        """
        self.allow_replace = allow_replace
        self._tools: Dict[str, RegisteredTool] = {}  # name -> snapshot
        self._lock = threading.Lock()

    def register(self, tool: ClientTool, replace: Optional[bool] = None) -> None:
        """
        Register a tool under ``tool.definition.name``.

        Args:
            tool: The handler to register
            replace: Override the registry's replacement policy for this call

        Raises:
            DuplicateToolName: If the name is taken and replacement is disabled
        """
        definition = tool.definition
        # the stored schema must not alias the handler's, which may be class-level
        definition = definition._replace(input_schema=copy.deepcopy(definition.input_schema))
        entry = RegisteredTool(
            definition=definition,
            instructions=tool.instructions,
            show_external_sources_indicator=bool(tool.show_external_sources_indicator),
            handler=tool,
        )
        allow_replace = self.allow_replace if replace is None else replace

        with self._lock:
            replaced = definition.name in self._tools
            if replaced and not allow_replace:
                raise DuplicateToolName(definition.name)
            self._tools[definition.name] = entry

        if replaced:
            logger.warning(
                f"SYSTEM: Tool '{definition.name}' was already registered, replacing it",
                extra={
                    "structured": {"log_type": "tool_replaced", "tool_name": definition.name}
                },
            )
        else:
            log_item(logger, "tool_registered", tool_name=definition.name)

    def register_callable(
        self,
        callable_func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
        instructions: Optional[str] = None,
        show_external_sources_indicator: bool = False,
    ) -> FunctionTool:
        """
        Register a plain function as a client tool with a generated schema.

        Args:
            callable_func: The function to register
            name: Optional name override (defaults to the function name)
            description: Optional description (defaults to the docstring)
            instructions: Guidance for the agent on when to call the tool
            show_external_sources_indicator: UI hint forwarded to the agent

        Returns:
            The FunctionTool wrapping the function
        """
        tool = FunctionTool(
            callable_func,
            name=name,
            description=description,
            instructions=instructions,
            show_external_sources_indicator=show_external_sources_indicator,
        )
        self.register(tool)
        return tool

    def register_plugin(self, plugin) -> None:
        """Register every tool a plugin provides through hook_provide_tools."""
        if not hasattr(plugin, "hook_provide_tools"):
            return
        for tool in plugin.hook_provide_tools():
            self.register(tool)

    def unregister(self, name: str) -> bool:
        """Remove a tool. Returns True if it was registered."""
        with self._lock:
            return self._tools.pop(name, None) is not None

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        with self._lock:
            return self._tools.get(name)

    def get_tool_names(self) -> List[str]:
        """Get list of registered tool names."""
        with self._lock:
            return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        with self._lock:
            return name in self._tools

    def registration_payloads(self) -> List[ToolRegistrationPayload]:
        """Project every registered tool into its registration payload."""
        with self._lock:
            entries = list(self._tools.values())
        return [entry.to_payload() for entry in entries]

    def dispatch(self, invocation: Invocation) -> List[Action]:
        """
        Run the handler registered for ``invocation.tool_name``.

        Invocations for unknown tools are ignored: the result is empty and an
        ``unknown_tool`` record is logged.

        Returns:
            The actions produced by the handler
        """
        entry = self.get_tool(invocation.tool_name)
        if entry is None:
            log_item(
                logger,
                "unknown_tool",
                f"SYSTEM: Ignoring invocation of unknown tool '{invocation.tool_name}'",
                tool_name=invocation.tool_name,
                message_id=invocation.message_id,
                conversation_id=invocation.conversation_id,
            )
            return []

        return normalize_actions(entry.handler.handle_invocation(invocation))

    def clear(self) -> None:
        """Clear all registered tools."""
        with self._lock:
            self._tools.clear()

    def __contains__(self, name: str) -> bool:
        return self.has_tool(name)

    def __len__(self) -> int:
        """Get number of registered tools."""
        with self._lock:
            return len(self._tools)
