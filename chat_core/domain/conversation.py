"""会话与消息历史模型。

ChatHistory 是整个 Agent 循环共享的状态：只允许追加，除 reset 外不会删除或修改任何消息。
Conversation 在历史之外还持有一次性获取的工具描述缓存。
"""

from typing import Iterator, List, Optional, Sequence, Tuple

from chat_core.domain.exceptions import HistoryInvariantError
from chat_core.domain.models import Turn
from chat_core.tools.definitions import ToolDescriptor


class ChatHistory:
    """有序、只追加的消息序列。

    追加时校验以下约束：
    - system 消息只能是第一条；
    - tool 消息的 call_id 必须来自最近的 assistant 消息，且每个 call_id 只能有一条结果；
    - 不带工具调用的 assistant 消息之后只能跟 user 消息。
    """

    def __init__(self, turns: Sequence[Turn] = ()):
        self._turns: List[Turn] = []
        for turn in turns:
            self.append(turn)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    @property
    def system_turn(self) -> Optional[Turn]:
        if self._turns and self._turns[0].role == "system":
            return self._turns[0]
        return None

    def append(self, turn: Turn) -> None:
        self._check_append(turn)
        self._turns.append(turn)

    def reset(self) -> None:
        """清空历史，仅保留开头的 system 消息（如果有）。"""

        system = self.system_turn
        self._turns.clear()
        if system is not None:
            self._turns.append(system)

    def _check_append(self, turn: Turn) -> None:
        last = self.last
        if turn.role == "system" and self._turns:
            raise HistoryInvariantError(
                code="SYSTEM_NOT_FIRST",
                message="a system turn may only be the first turn",
            )
        if last is not None and last.role == "assistant" and not last.tool_calls and turn.role != "user":
            raise HistoryInvariantError(
                code="EXCHANGE_ALREADY_TERMINATED",
                message=f"a final assistant turn may only be followed by a user turn, got {turn.role}",
            )
        if turn.role == "tool":
            self._check_tool_turn(turn)

    def _check_tool_turn(self, turn: Turn) -> None:
        call_id = turn.tool_result.call_id if turn.tool_result else ""
        answered = set()
        for previous in reversed(self._turns):
            if previous.role == "tool":
                if previous.tool_result is not None:
                    answered.add(previous.tool_result.call_id)
                continue
            if previous.role == "assistant" and call_id in previous.call_ids:
                if call_id in answered:
                    raise HistoryInvariantError(
                        code="DUPLICATE_TOOL_RESULT",
                        message=f"tool call {call_id!r} already has a result",
                    )
                return
            break
        raise HistoryInvariantError(
            code="ORPHAN_TOOL_RESULT",
            message=f"tool result {call_id!r} does not match the preceding assistant turn",
        )


class Conversation:
    """单个会话：消息历史 + 工具描述缓存。

    工具描述缓存一旦填充（即使因失败为空）就在整个会话内复用，不会再次获取。
    """

    def __init__(self) -> None:
        self.history = ChatHistory()
        self._tools: Optional[Tuple[ToolDescriptor, ...]] = None

    @property
    def tools_loaded(self) -> bool:
        return self._tools is not None

    @property
    def tools(self) -> Tuple[ToolDescriptor, ...]:
        return self._tools or ()

    def cache_tools(self, tools: Sequence[ToolDescriptor]) -> None:
        if self._tools is not None:
            return
        self._tools = tuple(tools)
