"""统一的对话数据模型。

本模块定义了 Agent 循环、对话后端与工具目录之间共享的标准数据结构：

- Turn: 对话历史中的一条消息（system/user/assistant/tool）。
- ToolCallRequest / ToolCallResult: 助手发起的工具调用及其结果。
- ChatOptions: 每次调用后端时附带的选项（工具描述、输出上限等）。
- ChatResponse: 进程内后端可以直接返回的规范响应形状。

所有后端适配器都只依赖这些模型，并负责在各自的 API JSON 和这些模型之间做转换。
Turn 是不可变对象，历史一旦追加便不会被修改。
"""

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional, Sequence, Tuple

from chat_core.domain.arguments import JsonValue, ensure_json_object
from chat_core.tools.definitions import ToolDescriptor


# 消息角色（与 OpenAI / Azure OpenAI 的 role 字段对应）
Role = Literal["system", "user", "assistant", "tool"]

ROLES: Tuple[str, ...] = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class ToolCallRequest:
    """助手发起的一次工具调用请求。

    - call_id: 在同一条助手消息内唯一，用于关联后续的工具结果。
    - name: 工具名称。
    - arguments: 已规整为 JSON 值的参数。
    """

    call_id: str
    name: str
    arguments: Dict[str, JsonValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.call_id:
            raise ValueError("call_id must not be empty")
        object.__setattr__(self, "arguments", ensure_json_object(self.arguments))


@dataclass(frozen=True)
class ToolCallResult:
    """一次工具调用的结果，payload 与 error_text 二选一。

    payload 是工具返回的已序列化文本，原样保存；
    error_text 是格式化后的错误描述（"Error: <message>"）。
    """

    call_id: str
    payload: Optional[str] = None
    error_text: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.error_text is None):
            raise ValueError("exactly one of payload or error_text must be set")

    @property
    def is_error(self) -> bool:
        return self.error_text is not None

    @property
    def content(self) -> str:
        return self.payload if self.payload is not None else (self.error_text or "")

    @classmethod
    def success(cls, call_id: str, payload: str) -> "ToolCallResult":
        return cls(call_id=call_id, payload=payload)

    @classmethod
    def failure(cls, call_id: str, message: str) -> "ToolCallResult":
        return cls(call_id=call_id, error_text=f"Error: {message}")


@dataclass(frozen=True)
class Turn:
    """对话历史中的一条消息。

    - tool_calls 只出现在 assistant 消息上；
    - tool_result 只出现在 tool 消息上，且 tool 消息必须携带它；
    - tool 消息的 text 等于工具结果文本，方便直接展示。
    """

    role: Role
    text: Optional[str] = None
    tool_calls: Tuple[ToolCallRequest, ...] = ()
    tool_result: Optional[ToolCallResult] = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"unknown role: {self.role!r}")
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if self.tool_calls and self.role != "assistant":
            raise ValueError("only assistant turns may carry tool calls")
        if self.role == "tool":
            if self.tool_result is None:
                raise ValueError("tool turns must carry a tool result")
            if self.text is None:
                object.__setattr__(self, "text", self.tool_result.content)
        elif self.tool_result is not None:
            raise ValueError("only tool turns may carry a tool result")
        call_ids = [call.call_id for call in self.tool_calls]
        if len(call_ids) != len(set(call_ids)):
            raise ValueError("tool call ids must be unique within a turn")

    @classmethod
    def system(cls, text: str) -> "Turn":
        return cls(role="system", text=text)

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role="user", text=text)

    @classmethod
    def assistant(cls, text: Optional[str] = None, tool_calls: Sequence[ToolCallRequest] = ()) -> "Turn":
        return cls(role="assistant", text=text, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, result: ToolCallResult) -> "Turn":
        return cls(role="tool", text=result.content, tool_result=result)

    @property
    def call_ids(self) -> Tuple[str, ...]:
        return tuple(call.call_id for call in self.tool_calls)


@dataclass(frozen=True)
class ChatOptions:
    """调用后端时附带的选项。tools 为空时后端不得发送工具定义。"""

    tools: Tuple[ToolDescriptor, ...] = ()
    max_output_tokens: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tools", tuple(self.tools or ()))


@dataclass
class ChatUsage:
    """后端返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResponse:
    """进程内后端的规范响应。

    message 与 messages 都是可选的，归一化时按 message -> messages -> text 的顺序取值。
    """

    message: Optional[Turn] = None
    messages: Tuple[Turn, ...] = ()
    text: Optional[str] = None
    usage: Optional[ChatUsage] = None
