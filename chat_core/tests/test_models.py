import dataclasses
import math

import pytest

from chat_core.domain.arguments import dump_arguments, ensure_json_object, parse_arguments
from chat_core.domain.models import ChatOptions, ToolCallRequest, ToolCallResult, Turn
from chat_core.tools.definitions import EMPTY_OBJECT_SCHEMA, ToolDescriptor


def test_tool_turn_text_mirrors_result():
    ok = Turn.tool(ToolCallResult.success("c1", '{"rows": []}'))
    assert ok.text == '{"rows": []}'
    assert not ok.tool_result.is_error

    failed = Turn.tool(ToolCallResult.failure("c2", "boom"))
    assert failed.text == "Error: boom"
    assert failed.tool_result.is_error


def test_tool_call_result_requires_exactly_one_field():
    with pytest.raises(ValueError):
        ToolCallResult(call_id="c1")
    with pytest.raises(ValueError):
        ToolCallResult(call_id="c1", payload="x", error_text="y")


def test_turn_role_constraints():
    call = ToolCallRequest(call_id="c1", name="read_records", arguments={"entity": "Todo"})
    with pytest.raises(ValueError):
        Turn(role="user", text="hi", tool_calls=(call,))
    with pytest.raises(ValueError):
        Turn(role="tool", text="x")
    with pytest.raises(ValueError):
        Turn(role="assistant", tool_result=ToolCallResult.success("c1", "x"))
    with pytest.raises(ValueError):
        Turn(role="moderator", text="x")
    with pytest.raises(ValueError):
        Turn.assistant(tool_calls=[call, ToolCallRequest(call_id="c1", name="other")])


def test_tool_call_request_validates_arguments():
    with pytest.raises(ValueError):
        ToolCallRequest(call_id="", name="x")
    with pytest.raises(TypeError):
        ToolCallRequest(call_id="c1", name="x", arguments={"when": object()})
    call = ToolCallRequest(call_id="c1", name="x", arguments={"ids": (1, 2)})
    assert call.arguments == {"ids": [1, 2]}


def test_chat_options_coerces_tools_to_tuple():
    tool = ToolDescriptor(name="describe_entities")
    options = ChatOptions(tools=[tool])
    assert options.tools == (tool,)
    assert ChatOptions(tools=None).tools == ()


def test_chat_options_fields():
    assert [f.name for f in dataclasses.fields(ChatOptions)] == ["tools", "max_output_tokens"]


def test_descriptor_schema_defaults_to_empty_object():
    assert ToolDescriptor(name="t").parameters_schema() == EMPTY_OBJECT_SCHEMA
    schema = {"type": "object", "properties": {"entity": {"type": "string"}}}
    assert ToolDescriptor(name="t", input_schema=schema).parameters_schema() == schema


def test_parse_arguments_shapes():
    assert parse_arguments(None) == {}
    assert parse_arguments("  ") == {}
    assert parse_arguments('{"entity": "Todo", "top": 5}') == {"entity": "Todo", "top": 5}
    assert parse_arguments("{not json") == {"_raw": "{not json"}
    assert parse_arguments("[1, \"a\"]") == {"arg0": 1, "arg1": "a"}
    assert parse_arguments('"hello"') == {"value": "hello"}
    assert parse_arguments(7) == {"value": 7}
    assert parse_arguments({"nested": {"a": [True, None]}}) == {"nested": {"a": [True, None]}}


def test_ensure_json_object_rejects_bad_values():
    with pytest.raises(ValueError):
        ensure_json_object({"x": math.nan})
    with pytest.raises(TypeError):
        ensure_json_object({1: "x"})
    with pytest.raises(TypeError):
        ensure_json_object(["x"])


def test_dump_arguments_keeps_unicode():
    assert dump_arguments({"title": "买牛奶"}) == '{"title": "买牛奶"}'
