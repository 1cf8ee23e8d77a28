"""
Decoding of client tool invocation events delivered by the chat transport.

The transport forwards custom events of type ``custom_client_tool_invocation``.
This module turns such an event into an :class:`Invocation`. Which conversation
delivered the event is not part of the payload; the caller passes it in.
"""

import json
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

INVOCATION_EVENT_TYPE = "custom_client_tool_invocation"


class MalformedInvocationEvent(ValueError):
    """Raised when an inbound event does not have the invocation shape."""


class ToolDescriptor(NamedTuple):
    """The ``tool`` object carried by an invocation event."""

    name: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    parameters: Any = None


class Invocation(NamedTuple):
    """A request from the remote agent to run one client tool."""

    tool_name: str
    arguments: Any = None
    message_id: Optional[str] = None
    conversation_id: Optional[str] = None
    tool: Optional[ToolDescriptor] = None


def is_invocation_event(event: Any) -> bool:
    """Check whether a decoded transport event carries the invocation type."""
    return isinstance(event, Mapping) and event.get("type") == INVOCATION_EVENT_TYPE


def _load_event(event: Union[Mapping, str, bytes, bytearray]) -> Mapping:
    if isinstance(event, (str, bytes, bytearray)):
        try:
            event = json.loads(event)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedInvocationEvent(f"Event is not valid JSON: {e}") from e
    if not isinstance(event, Mapping):
        raise MalformedInvocationEvent(
            f"Event must be an object, got {type(event).__name__}"
        )
    return event


def _optional_str(data: Mapping, key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise MalformedInvocationEvent(f"'{where}{key}' must be a string")
    return value


def decode_tool_descriptor(data: Any) -> ToolDescriptor:
    """
    Decode the ``tool`` object of an invocation event.

    Raises:
        MalformedInvocationEvent: If ``tool`` is not an object or has no name
    """
    if not isinstance(data, Mapping):
        raise MalformedInvocationEvent("Event is missing the 'tool' object")

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedInvocationEvent("Event is missing 'tool.name'")

    return ToolDescriptor(
        name=name,
        description=_optional_str(data, "description", "tool."),
        instructions=_optional_str(data, "instructions", "tool."),
        parameters=data.get("parameters"),
    )


def decode_invocation_event(
    event: Union[Mapping, str, bytes, bytearray],
    conversation_id: Optional[str] = None,
) -> Invocation:
    """
    Decode a transport event into an Invocation.

    Args:
        event: The event as a mapping, or its JSON text
        conversation_id: The conversation that delivered the event

    Returns:
        The decoded invocation. ``args`` is passed through untouched.

    Raises:
        MalformedInvocationEvent: If the event cannot be decoded
    """
    data = _load_event(event)

    event_type = data.get("type")
    if event_type is not None and event_type != INVOCATION_EVENT_TYPE:
        raise MalformedInvocationEvent(f"Unexpected event type '{event_type}'")

    tool = decode_tool_descriptor(data.get("tool"))

    return Invocation(
        tool_name=tool.name,
        arguments=data.get("args"),
        message_id=_optional_str(data, "message_id", ""),
        conversation_id=conversation_id,
        tool=tool,
    )


def encode_invocation_event(invocation: Invocation) -> Dict[str, Any]:
    """Render an invocation back into the transport event shape."""
    tool = invocation.tool or ToolDescriptor(name=invocation.tool_name)
    tool_data = {"name": tool.name}
    for key in ("description", "instructions", "parameters"):
        value = getattr(tool, key)
        if value is not None:
            tool_data[key] = value

    event = {"type": INVOCATION_EVENT_TYPE, "tool": tool_data}
    if invocation.message_id is not None:
        event["message_id"] = invocation.message_id
    if invocation.arguments is not None:
        event["args"] = invocation.arguments
    return event
