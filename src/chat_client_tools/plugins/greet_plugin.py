from ..actions import AlertAction
from ..tool_registry import ClientTool, ToolDefinition


class GreetClientTool(ClientTool):
    """Shows a greeting alert when the agent asks to greet the user."""

    definition = ToolDefinition(
        name="greetUser",
        description="Display a native greeting to the user",
        input_schema={
            "type": "object",
            "properties": {},
            "required": [],
            "additionalProperties": False,
        },
        annotations={"title": "Greet user"},
    )

    instructions = (
        "Use the greetUser tool when the user asks to be greeted. "
        "The tool shows a greeting alert in the client app."
    )

    show_external_sources_indicator = False

    def handle_invocation(self, invocation):
        # Arguments are ignored; the schema is advisory for the agent only.
        return AlertAction.create(
            title="Greetings!",
            message="👋 Hello there! The assistant asked me to greet you.",
        )


class GreetPlugin:
    """Plugin providing the greeting tool."""

    def hook_provide_tools(self):
        """Return tools this plugin provides for auto-registration."""
        return [GreetClientTool()]
