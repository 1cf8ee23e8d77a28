"""Tests for ToolRegistry registration, payload projection and dispatch."""

import json
import logging
import threading

import pytest

from chat_client_tools.actions import AlertAction, CallbackAction
from chat_client_tools.invocation import Invocation
from chat_client_tools.plugins.greet_plugin import GreetClientTool, GreetPlugin
from chat_client_tools.tool_registry import (
    ClientTool,
    DuplicateToolName,
    ToolDefinition,
    ToolRegistry,
    callable_to_tool_schema,
    normalize_actions,
)

from .conftest import EchoTool


class TestRegister:
    def test_registered_tool_appears_in_payloads(self, registry):
        registry.register(EchoTool(name="N"))

        payloads = registry.registration_payloads()

        assert [p.name for p in payloads] == ["N"]
        assert registry.has_tool("N")
        assert "N" in registry
        assert len(registry) == 1

    def test_same_name_replaces_previous_tool(self, registry):
        first = EchoTool(name="N", description="first")
        second = EchoTool(name="N", description="second")

        registry.register(first)
        registry.register(second)

        payloads = registry.registration_payloads()
        assert len(payloads) == 1
        assert payloads[0].description == "second"
        assert registry.get_tool("N").handler is second

    def test_replacement_is_logged(self, registry, caplog):
        caplog.set_level(logging.INFO, logger="chat_client_tools")
        registry.register(EchoTool(name="N"))
        registry.register(EchoTool(name="N"))

        replaced = [
            r for r in caplog.records
            if getattr(r, "structured", {}).get("log_type") == "tool_replaced"
        ]
        assert len(replaced) == 1
        assert replaced[0].levelno == logging.WARNING

    def test_duplicate_rejected_when_replacement_disabled(self):
        registry = ToolRegistry(allow_replace=False)
        first = EchoTool(name="N", description="first")
        registry.register(first)

        with pytest.raises(DuplicateToolName):
            registry.register(EchoTool(name="N", description="second"))

        assert registry.get_tool("N").handler is first

    def test_replace_argument_overrides_policy(self):
        registry = ToolRegistry(allow_replace=False)
        registry.register(EchoTool(name="N", description="first"))
        registry.register(EchoTool(name="N", description="second"), replace=True)

        assert registry.registration_payloads()[0].description == "second"

    def test_snapshot_is_not_affected_by_later_handler_changes(self, registry):
        tool = EchoTool(name="N")
        registry.register(tool)

        tool.instructions = "changed"
        tool.definition = ToolDefinition(name="other")

        payload = registry.registration_payloads()[0]
        assert payload.name == "N"
        assert payload.instructions == "Use N to echo text back to the user."

    def test_payload_parameters_are_copies(self, registry):
        registry.register(GreetClientTool())

        payload = registry.registration_payloads()[0]
        payload.parameters["properties"]["injected"] = {"type": "string"}
        payload.parameters["required"].append("injected")

        fresh = registry.registration_payloads()[0]
        assert fresh.parameters["properties"] == {}
        assert fresh.parameters["required"] == []
        assert GreetClientTool.definition.input_schema["properties"] == {}
        assert GreetClientTool().definition.input_schema["required"] == []

    def test_later_schema_changes_do_not_reach_the_registry(self, registry):
        tool = EchoTool(name="N")
        registry.register(tool)

        tool.definition.input_schema["properties"]["extra"] = {"type": "integer"}

        assert "extra" not in registry.registration_payloads()[0].parameters["properties"]

    def test_unregister_and_clear(self, registry):
        registry.register(EchoTool(name="a"))
        registry.register(EchoTool(name="b"))

        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert registry.get_tool_names() == ["b"]

        registry.clear()
        assert len(registry) == 0
        assert registry.registration_payloads() == []

    def test_register_plugin(self, registry):
        registry.register_plugin(GreetPlugin())
        registry.register_plugin(object())  # no hook_provide_tools

        assert registry.get_tool_names() == ["greetUser"]

    def test_concurrent_registration(self, registry):
        def register_batch(prefix):
            for i in range(50):
                registry.register(EchoTool(name=f"{prefix}-{i}"))

        threads = [threading.Thread(target=register_batch, args=(p,)) for p in "abcd"]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 200


class TestRegistrationPayloads:
    def test_payload_fields(self, greet_registry):
        payload = greet_registry.registration_payloads()[0]

        assert payload.name == "greetUser"
        assert payload.description == "Display a native greeting to the user"
        assert payload.instructions.startswith("Use the greetUser tool")
        assert payload.show_external_sources_indicator is False

    def test_description_falls_back_to_instructions(self, registry):
        registry.register(EchoTool(name="N", description=None))

        payload = registry.registration_payloads()[0]
        assert payload.description == payload.instructions

    def test_wire_format(self, registry):
        registry.register(EchoTool(name="N"))

        data = registry.registration_payloads()[0].to_dict()

        assert set(data) == {
            "name",
            "description",
            "instructions",
            "parameters",
            "showExternalSourcesIndicator",
        }
        assert data["showExternalSourcesIndicator"] is True

    def test_payloads_are_idempotent(self, registry):
        registry.register(EchoTool(name="a"))
        registry.register(GreetClientTool())

        assert registry.registration_payloads() == registry.registration_payloads()

    def test_schema_round_trip(self, registry):
        schema = {
            "type": "object",
            "properties": {"text": {"type": "string", "description": "ünïcode"}},
            "required": ["text"],
            "additionalProperties": False,
        }
        registry.register(EchoTool(name="N", schema=schema))

        payload = registry.registration_payloads()[0]

        assert json.dumps(payload.parameters) == json.dumps(schema)
        assert json.dumps(payload.to_dict()["parameters"]) == json.dumps(schema)

    def test_insertion_order(self, registry):
        for name in ["c", "a", "b"]:
            registry.register(EchoTool(name=name))

        assert [p.name for p in registry.registration_payloads()] == ["c", "a", "b"]


class TestDispatch:
    def test_unknown_tool_is_ignored(self, registry, caplog):
        caplog.set_level(logging.INFO, logger="chat_client_tools")
        tool = EchoTool(name="echo")
        registry.register(tool)

        actions = registry.dispatch(Invocation(tool_name="missing", conversation_id="c1"))

        assert actions == []
        assert tool.invocations == []
        unknown = [
            r.structured for r in caplog.records
            if getattr(r, "structured", {}).get("log_type") == "unknown_tool"
        ]
        assert unknown == [
            {
                "log_type": "unknown_tool",
                "tool_name": "missing",
                "message_id": None,
                "conversation_id": "c1",
            }
        ]

    def test_greet_tool_returns_one_alert(self, greet_registry):
        actions = greet_registry.dispatch(Invocation(tool_name="greetUser", arguments={}))

        assert len(actions) == 1
        assert isinstance(actions[0], AlertAction)
        assert actions[0].title == "Greetings!"

    def test_greet_tool_accepts_extra_arguments(self, greet_registry):
        actions = greet_registry.dispatch(
            Invocation(tool_name="greetUser", arguments={"unexpected": 1})
        )

        assert [a.title for a in actions] == ["Greetings!"]

    def test_handler_receives_invocation(self, registry):
        tool = EchoTool(name="echo")
        registry.register(tool)
        invocation = Invocation(
            tool_name="echo", arguments={"text": "hi"}, message_id="m1", conversation_id="c1"
        )

        actions = registry.dispatch(invocation)

        assert tool.invocations == [invocation]
        assert actions[0].message == "hi"


class TestNormalizeActions:
    def test_none(self):
        assert normalize_actions(None) == []

    def test_single_action(self):
        action = AlertAction.create("t", "m")
        assert normalize_actions(action) == [action]

    def test_generator(self):
        actions = [CallbackAction(lambda: None), AlertAction.create("t", "m")]
        assert normalize_actions(a for a in actions) == actions

    def test_rejects_non_actions(self):
        with pytest.raises(TypeError):
            normalize_actions(["not an action"])
        with pytest.raises(TypeError):
            normalize_actions("text")


class TestCallableTools:
    def test_callable_to_tool_schema(self):
        def set_reminder(text: str, minutes: int, urgent: bool = False):
            """Set a reminder."""

        schema = callable_to_tool_schema(set_reminder)

        assert schema["properties"]["text"]["type"] == "string"
        assert schema["properties"]["minutes"]["type"] == "integer"
        assert schema["properties"]["urgent"]["type"] == "boolean"
        assert schema["required"] == ["text", "minutes"]
        assert schema["additionalProperties"] is False

    def test_register_callable(self, registry):
        calls = []

        def remind(text: str):
            """Show a reminder alert."""
            calls.append(text)
            return AlertAction.create("Reminder", text)

        tool = registry.register_callable(remind, instructions="Use remind for reminders.")

        payload = registry.registration_payloads()[0]
        assert payload.name == "remind"
        assert payload.description == "Show a reminder alert."
        assert payload.parameters == tool.definition.input_schema

        actions = registry.dispatch(Invocation(tool_name="remind", arguments={"text": "tea"}))
        assert calls == ["tea"]
        assert actions[0].message == "tea"

    def test_function_tool_rejects_non_object_arguments(self, registry):
        registry.register_callable(lambda: None, name="noop")

        with pytest.raises(TypeError):
            registry.dispatch(Invocation(tool_name="noop", arguments=b"raw"))


def test_client_tool_requires_handle_invocation():
    class Incomplete(ClientTool):
        definition = ToolDefinition(name="incomplete")

    with pytest.raises(NotImplementedError):
        Incomplete().handle_invocation(Invocation(tool_name="incomplete"))
