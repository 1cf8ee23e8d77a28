import pytest

from chat_client_tools.actions import AlertAction
from chat_client_tools.plugins.greet_plugin import GreetClientTool
from chat_client_tools.tool_registry import ClientTool, ToolDefinition, ToolRegistry


class EchoTool(ClientTool):
    """Test tool that echoes its arguments into an alert."""

    def __init__(self, name="echo", description="Echo the arguments", schema=None):
        self.definition = ToolDefinition(
            name=name,
            description=description,
            input_schema=schema
            if schema is not None
            else {"type": "object", "properties": {"text": {"type": "string"}}},
        )
        self.instructions = f"Use {name} to echo text back to the user."
        self.show_external_sources_indicator = True
        self.invocations = []

    def handle_invocation(self, invocation):
        self.invocations.append(invocation)
        text = (invocation.arguments or {}).get("text", "")
        return [AlertAction.create(title=self.definition.name, message=text)]


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def greet_registry():
    registry = ToolRegistry()
    registry.register(GreetClientTool())
    return registry


@pytest.fixture
def invocation_event():
    return {
        "type": "custom_client_tool_invocation",
        "message_id": "m1",
        "tool": {
            "name": "greetUser",
            "description": "Display a native greeting to the user",
            "instructions": "Use the greetUser tool when the user asks to be greeted.",
            "parameters": {"type": "object", "properties": {}},
        },
        "args": {},
    }
