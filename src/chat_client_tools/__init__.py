"""
Chat client tools - run client-side actions requested by a remote AI agent.

This package provides a registry of client tools, the codec for tool
invocation events delivered by the chat transport, and the dispatcher that
turns invocations into alerts and other client-side actions.
"""

__version__ = "0.1.0"

from .actions import Action, AlertAction, CallbackAction, ClientToolAlert
from .dispatcher import DispatchOutcome, InvocationDispatcher
from .invocation import (
    Invocation,
    MalformedInvocationEvent,
    ToolDescriptor,
    decode_invocation_event,
)
from .tool_registry import (
    ClientTool,
    DuplicateToolName,
    ToolDefinition,
    ToolRegistrationPayload,
    ToolRegistry,
)

__all__ = [
    "Action",
    "AlertAction",
    "CallbackAction",
    "ClientTool",
    "ClientToolAlert",
    "DispatchOutcome",
    "DuplicateToolName",
    "Invocation",
    "InvocationDispatcher",
    "MalformedInvocationEvent",
    "ToolDefinition",
    "ToolDescriptor",
    "ToolRegistrationPayload",
    "ToolRegistry",
    "decode_invocation_event",
]
