import pytest

from chat_core.agents.response_normalizer import (
    ChatResponseExtractor,
    CompletionPayloadExtractor,
    ResponseNormalizer,
    describe_response,
)
from chat_core.domain.exceptions import InvalidInputError
from chat_core.domain.models import ChatResponse, ChatUsage, ToolCallRequest, Turn


def test_none_response_is_invalid_input():
    with pytest.raises(InvalidInputError):
        ResponseNormalizer().normalize(None)


def test_chat_response_prefers_single_message():
    response = ChatResponse(
        message=Turn.assistant(text="direct"),
        messages=(Turn.assistant(text="from list"),),
        usage=ChatUsage(prompt_tokens=3, completion_tokens=2, total_tokens=5),
    )
    result = ResponseNormalizer(ChatResponseExtractor()).normalize(response)
    assert result.turn.text == "direct"
    assert not result.used_fallback
    assert result.usage.total_tokens == 5


def test_chat_response_uses_last_assistant_in_list():
    call = ToolCallRequest(call_id="c1", name="describe_entities")
    response = ChatResponse(
        messages=(
            Turn.user("hi"),
            Turn.assistant(text="first"),
            Turn.assistant(tool_calls=[call]),
            Turn.user("trailing user"),
        )
    )
    result = ResponseNormalizer().normalize(response)
    assert result.turn.tool_calls == (call,)
    assert not result.used_fallback


def test_chat_response_with_non_assistant_message_falls_through():
    response = ChatResponse(message=Turn.user("echo"), messages=(Turn.assistant(text="listed"),))
    result = ResponseNormalizer().normalize(response)
    assert result.turn.text == "listed"


def test_unknown_shape_uses_text_fallback():
    result = ResponseNormalizer().normalize(ChatResponse(text="only text"))
    assert result.used_fallback
    assert result.turn.role == "assistant"
    assert result.turn.text == "only text"
    assert result.turn.tool_calls == ()

    plain = ResponseNormalizer().normalize("raw string")
    assert plain.used_fallback
    assert plain.turn.text == "raw string"

    opaque = ResponseNormalizer().normalize(object())
    assert opaque.used_fallback
    assert opaque.turn.text == ""


def test_completion_payload_with_tool_calls():
    payload = {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "read_records", "arguments": '{"entity": "Todo"}'},
                        },
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "describe_entities", "arguments": ""},
                        },
                    ],
                }
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 4, "total_tokens": 14},
    }
    result = ResponseNormalizer(CompletionPayloadExtractor()).normalize(payload)
    assert not result.used_fallback
    calls = result.turn.tool_calls
    assert [c.name for c in calls] == ["read_records", "describe_entities"]
    assert calls[0].arguments == {"entity": "Todo"}
    assert calls[1].arguments == {}
    assert calls[0].call_id == "call_1"
    assert calls[1].call_id == "call_1-1"
    assert result.turn.text is None
    assert result.usage.total_tokens == 14


def test_completion_payload_content_parts_and_legacy_function_call():
    payload = {
        "message": {
            "role": "assistant",
            "content": [{"type": "text", "text": "Looking "}, {"type": "text", "text": "it up"}],
            "function_call": {"name": "read_records", "arguments": "{broken"},
        }
    }
    result = ResponseNormalizer(CompletionPayloadExtractor()).normalize(payload)
    assert result.turn.text == "Looking it up"
    (call,) = result.turn.tool_calls
    assert call.name == "read_records"
    assert call.arguments == {"_raw": "{broken"}
    assert call.call_id.startswith("call_")


def test_completion_payload_message_list():
    payload = {
        "messages": [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "tool", "content": "x"},
        ]
    }
    result = ResponseNormalizer(CompletionPayloadExtractor()).normalize(payload)
    assert result.turn.text == "hello"
    assert not result.used_fallback


def test_completion_payload_fallbacks():
    normalizer = ResponseNormalizer(CompletionPayloadExtractor())

    legacy = normalizer.normalize({"choices": [{"text": "legacy completion"}]})
    assert legacy.used_fallback
    assert legacy.turn.text == "legacy completion"

    output = normalizer.normalize({"output_text": "new api"})
    assert output.used_fallback
    assert output.turn.text == "new api"


def test_malformed_arguments_degrade_to_fallback():
    payload = {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "tool_calls": [{"id": "c1", "function": {"name": "t", "arguments": "NaN"}}],
                }
            }
        ],
        "text": "partial",
    }
    result = ResponseNormalizer(CompletionPayloadExtractor()).normalize(payload)
    assert result.used_fallback
    assert result.turn.text == "partial"


def test_describe_response_lists_keys():
    assert describe_response({"b": 1, "a": 2}) == {"response_type": "dict", "response_keys": ["a", "b"]}
    assert describe_response("x") == {"response_type": "str"}


def test_non_finite_usage_counts_do_not_break_normalization():
    payload = {
        "choices": [{"message": {"role": "assistant", "content": "hi"}}],
        "usage": {"prompt_tokens": float("inf"), "completion_tokens": "many", "total_tokens": 9},
    }
    result = ResponseNormalizer(CompletionPayloadExtractor()).normalize(payload)
    assert result.turn.text == "hi"
    assert not result.used_fallback
    assert (result.usage.prompt_tokens, result.usage.completion_tokens, result.usage.total_tokens) == (0, 0, 9)


def test_completion_payload_skips_non_assistant_single_message():
    normalizer = ResponseNormalizer(CompletionPayloadExtractor())

    listed = normalizer.normalize(
        {
            "message": {"role": "user", "content": "echoed prompt"},
            "messages": [{"role": "assistant", "content": "from list"}],
        }
    )
    assert listed.turn.text == "from list"
    assert not listed.used_fallback

    choice = normalizer.normalize({"choices": [{"message": {"role": "tool", "content": "x"}}], "text": "plain"})
    assert choice.used_fallback
    assert choice.turn.text == "plain"

    no_role = normalizer.normalize({"message": {"content": "implicit assistant"}})
    assert no_role.turn.text == "implicit assistant"
    assert not no_role.used_fallback
