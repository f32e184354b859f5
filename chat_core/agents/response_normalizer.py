"""后端响应归一化。

不同后端（甚至同一后端的不同版本）返回的响应形状各不相同，
这里把任意响应值转换为唯一的一条 assistant Turn，供 Agent 循环使用。

每种响应形状对应一个 AssistantTurnExtractor 适配器，由后端在构造时给出，
归一化流程固定为：
1. 响应直接暴露单条结构化消息时，使用该消息；
2. 否则响应暴露消息列表时，取最后一条 assistant 消息；
3. 否则降级：尽力提取纯文本，合成一条 assistant 消息，并标记 used_fallback。

降级只是一个可观测信号，不是错误；只有 None 响应会抛出 InvalidInputError。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol
from uuid import uuid4

from chat_core.domain.arguments import parse_arguments
from chat_core.domain.exceptions import InvalidInputError
from chat_core.domain.models import ChatResponse, ChatUsage, ToolCallRequest, Turn
from chat_core.infrastructure.logging.logger import logger


class AssistantTurnExtractor(Protocol):
    """单一响应形状的适配器协议。

    extract_assistant_turn 识别不了该形状时返回 None，由归一化器负责降级。
    """

    def extract_assistant_turn(self, response: Any) -> Optional[Turn]:
        ...

    def extract_usage(self, response: Any) -> Optional[ChatUsage]:
        ...


@dataclass
class NormalizationResult:
    turn: Turn
    used_fallback: bool = False
    usage: Optional[ChatUsage] = None


class ChatResponseExtractor:
    """进程内 ChatResponse 的适配器。"""

    def extract_assistant_turn(self, response: Any) -> Optional[Turn]:
        if not isinstance(response, ChatResponse):
            return None
        if response.message is not None and response.message.role == "assistant":
            return response.message
        last_assistant: Optional[Turn] = None
        for item in response.messages or ():
            if isinstance(item, Turn) and item.role == "assistant":
                last_assistant = item
        return last_assistant

    def extract_usage(self, response: Any) -> Optional[ChatUsage]:
        if isinstance(response, ChatResponse):
            return response.usage
        return None


class CompletionPayloadExtractor:
    """OpenAI 风格 chat/completions JSON 的适配器（Azure OpenAI 同构）。

    单条消息来自 choices[0].message，或顶层 message 字段；
    消息列表来自 messages 字段。
    """

    def extract_assistant_turn(self, response: Any) -> Optional[Turn]:
        if not isinstance(response, Mapping):
            return None
        message = self._single_message(response)
        if message is not None:
            return self._build_turn(message)
        messages = response.get("messages")
        if isinstance(messages, list):
            last_assistant: Optional[Mapping[str, Any]] = None
            for item in messages:
                if isinstance(item, Mapping) and item.get("role") == "assistant":
                    last_assistant = item
            if last_assistant is not None:
                return self._build_turn(last_assistant)
        return None

    def extract_usage(self, response: Any) -> Optional[ChatUsage]:
        if not isinstance(response, Mapping):
            return None
        usage_raw = response.get("usage")
        if not isinstance(usage_raw, Mapping):
            return None
        return ChatUsage(
            prompt_tokens=_token_count(usage_raw.get("prompt_tokens")),
            completion_tokens=_token_count(usage_raw.get("completion_tokens")),
            total_tokens=_token_count(usage_raw.get("total_tokens")),
        )

    @staticmethod
    def _single_message(response: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        # 与 ChatResponseExtractor 一致：role 不是 assistant 的单条消息不予采用
        choices = response.get("choices")
        if isinstance(choices, list) and choices:
            first = choices[0]
            if isinstance(first, Mapping) and _is_assistant_message(first.get("message")):
                return first["message"]
        message = response.get("message")
        if _is_assistant_message(message):
            return message
        return None

    def _build_turn(self, payload: Mapping[str, Any]) -> Turn:
        """将单条后端 message 转换为 assistant Turn，兼容 tool_calls/function_call。"""

        tool_calls: List[ToolCallRequest] = []
        call_ids: List[str] = []
        for call in payload.get("tool_calls") or []:
            if not isinstance(call, Mapping):
                continue
            func = call.get("function")
            if not isinstance(func, Mapping):
                func = {}
            raw_args = func.get("arguments") if "arguments" in func else call.get("arguments")
            call_id = _unique_call_id(call.get("id") or call.get("call_id"), call_ids)
            tool_calls.append(
                ToolCallRequest(
                    call_id=call_id,
                    name=func.get("name") or call.get("name") or "",
                    arguments=parse_arguments(raw_args),
                )
            )

        # 旧版 function_call 字段
        function_call = payload.get("function_call")
        if isinstance(function_call, Mapping):
            tool_calls.append(
                ToolCallRequest(
                    call_id=_unique_call_id(function_call.get("id"), call_ids),
                    name=function_call.get("name") or "",
                    arguments=parse_arguments(function_call.get("arguments")),
                )
            )

        text = _content_text(payload.get("content"))
        return Turn.assistant(text=text or None, tool_calls=tool_calls)


class ResponseNormalizer:
    """按固定顺序把后端响应归一化为 assistant Turn，永不因形状未知而抛错。"""

    def __init__(self, extractor: Optional[AssistantTurnExtractor] = None):
        self._extractor = extractor or ChatResponseExtractor()

    def normalize(self, response: Any) -> NormalizationResult:
        if response is None:
            raise InvalidInputError(code="EMPTY_RESPONSE", message="backend response must not be None")

        try:
            turn = self._extractor.extract_assistant_turn(response)
        except (KeyError, IndexError, TypeError, ValueError, OverflowError) as exc:
            logger.warning(
                "Assistant message extraction failed",
                extra={"extra": {"response_type": type(response).__name__, "error": str(exc)}},
            )
            turn = None

        try:
            usage = self._extractor.extract_usage(response)
        except (TypeError, ValueError, OverflowError):
            usage = None

        if turn is not None:
            return NormalizationResult(turn=turn, used_fallback=False, usage=usage)
        return NormalizationResult(
            turn=Turn.assistant(text=fallback_text(response)),
            used_fallback=True,
            usage=usage,
        )


def fallback_text(response: Any) -> str:
    """尽力从未知形状的响应里提取纯文本。"""

    if isinstance(response, str):
        return response
    if isinstance(response, ChatResponse):
        return response.text or ""
    if isinstance(response, Mapping):
        for key in ("text", "output_text", "content"):
            text = _content_text(response.get(key))
            if text:
                return text
        choices = response.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], Mapping):
            return _content_text(choices[0].get("text"))
    return ""


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(_part_text(part) for part in content)
    return ""


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, Mapping) and isinstance(part.get("text"), str):
        return part["text"]
    return ""


def _unique_call_id(raw: Any, seen: List[str]) -> str:
    base = str(raw) if raw else f"call_{uuid4().hex}"
    call_id = base
    suffix = 1
    while call_id in seen:
        call_id = f"{base}-{suffix}"
        suffix += 1
    seen.append(call_id)
    return call_id


def describe_response(response: Any) -> Dict[str, Any]:
    """用于降级日志的响应摘要：类型名与（映射时的）顶层字段名。"""

    summary: Dict[str, Any] = {"response_type": type(response).__name__}
    if isinstance(response, Mapping):
        summary["response_keys"] = sorted(str(key) for key in response.keys())
    return summary


def _is_assistant_message(message: Any) -> bool:
    # 缺少 role 字段时按 assistant 处理（部分兼容接口省略该字段）
    return isinstance(message, Mapping) and message.get("role", "assistant") == "assistant"


def _token_count(value: Any) -> int:
    """token 计数逐字段容错：缺失、非数字或非有限值都记为 0。"""

    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0
