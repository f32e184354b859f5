"""Agent 循环核心模块。

ChatAgent 持有一个会话（消息历史 + 工具描述缓存），负责：
- initialize: 写入 system 提示词，并一次性获取工具描述（失败不致命）。
- chat: 一次完整的用户交互，最多 max_tool_rounds 轮“调用后端 -> 执行工具”；
  尚未 initialize 时先自动执行一次 initialize。
- reset: 清空历史，仅保留 system 消息。

错误处理分层：
- 单个工具调用失败只影响该工具，结果以 "Error: ..." 写入 tool 消息，循环继续；
- 后端调用失败会中止整轮交互，在 chat 顶层统一捕获，写入一条致歉 assistant 消息并返回；
- 只有空输入会以 InvalidInputError 抛给调用方；取消（CancelledError）原样向上传播，
  此时历史停留在最后一次完整追加之后的状态。

同一个 ChatAgent 同一时刻只能有一个 chat 在执行，调用方需自行串行化（见 api.service）。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4
import logging

from opentelemetry.trace import Span

from chat_core.agents.response_normalizer import ResponseNormalizer, describe_response
from chat_core.domain.arguments import ensure_json_object
from chat_core.domain.conversation import Conversation
from chat_core.domain.exceptions import BusinessError, InvalidInputError, ToolExecutionError
from chat_core.domain.models import ChatOptions, ToolCallRequest, ToolCallResult, Turn
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.telemetry import Telemetry, get_telemetry
from chat_core.prompts import load_system_prompt
from chat_core.providers.base import ChatBackend
from chat_core.tools.base import ToolCatalog


TOO_MANY_TOOL_CALLS_MESSAGE = "I encountered too many tool calls. Please try rephrasing your request."
ERROR_MESSAGE_TEMPLATE = "Sorry, I encountered an error: {error}"


@dataclass
class AgentConfig:
    system_prompt: str = field(default_factory=load_system_prompt)
    max_tool_rounds: int = 5  # 单次交互内后端调用的最大轮数
    max_output_tokens: Optional[int] = 2048
    too_many_tool_calls_message: str = TOO_MANY_TOOL_CALLS_MESSAGE
    error_message_template: str = ERROR_MESSAGE_TEMPLATE

    def __post_init__(self) -> None:
        if self.max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be >= 1")

    @classmethod
    def from_settings(cls, cfg) -> "AgentConfig":
        return cls(
            system_prompt=cfg.system_prompt or load_system_prompt(),
            max_tool_rounds=cfg.max_tool_rounds,
            max_output_tokens=cfg.max_output_tokens,
        )


class ChatAgent:
    def __init__(
        self,
        backend: ChatBackend,
        tool_catalog: Optional[ToolCatalog] = None,
        *,
        telemetry: Optional[Telemetry] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        config: Optional[AgentConfig] = None,
    ):
        self._backend = backend
        self._tool_catalog = tool_catalog
        self._telemetry = telemetry or get_telemetry()
        self._normalizer = normalizer or ResponseNormalizer(getattr(backend, "response_extractor", None))
        self._config = config or AgentConfig()
        self._conversation = Conversation()
        self._initialized = False

    @property
    def messages(self) -> Tuple[Turn, ...]:
        """当前会话历史的只读视图。"""

        return self._conversation.history.turns

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def tool_catalog(self) -> Optional[ToolCatalog]:
        return self._tool_catalog

    async def initialize(self) -> None:
        """写入 system 消息并获取工具描述；可重复调用，任何失败都不会抛出。"""

        log_ctx = {"trace_id": f"tr-{uuid4().hex}", "backend": getattr(self._backend, "name", "unknown")}
        history = self._conversation.history
        with self._telemetry.span("chat.initialize") as span:
            self._initialized = True
            if len(history) == 0:
                history.append(Turn.system(self._config.system_prompt))
                self._log(logging.INFO, "Seeded system prompt", log_ctx)

            if self._conversation.tools_loaded:
                return
            if self._tool_catalog is None:
                self._conversation.cache_tools([])
                self._log(logging.INFO, "No tool catalog configured", log_ctx)
                return
            try:
                tools = await self._tool_catalog.list_tools()
            except Exception as exc:
                self._conversation.cache_tools([])
                Telemetry.mark_error(span, str(exc))
                self._log(
                    logging.WARNING,
                    "Failed to load tools, continuing without tools",
                    log_ctx,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return
            self._conversation.cache_tools(tools)
            span.set_attribute("mcp.tool.count", len(tools))
            self._log(logging.INFO, "Loaded tools", log_ctx, tool_count=len(tools))

    async def chat(self, user_message: str) -> str:
        """执行一次完整交互，返回本次最终的 assistant 文本。"""

        if not isinstance(user_message, str):
            raise InvalidInputError(code="INVALID_MESSAGE", message="user message must be a string")
        if not user_message.strip():
            raise InvalidInputError(code="EMPTY_MESSAGE", message="user message must not be empty")
        # 未初始化就开始对话时先补做 initialize，保证 system 消息始终位于第一条
        if not self._initialized:
            await self.initialize()

        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "backend": getattr(self._backend, "name", "unknown"),
        }
        history = self._conversation.history
        with self._telemetry.span("chat.exchange", attributes={"chat.trace_id": log_ctx["trace_id"]}) as span:
            history.append(Turn.user(user_message))
            self._log(logging.INFO, "Received user message", log_ctx, message_length=len(user_message))
            try:
                return await self._run_rounds(span, log_ctx)
            except Exception as exc:
                detail = exc.message if isinstance(exc, BusinessError) else str(exc)
                Telemetry.mark_error(span, detail)
                self._log(
                    logging.ERROR,
                    "Chat exchange failed",
                    log_ctx,
                    error=detail,
                    error_type=type(exc).__name__,
                )
                text = self._config.error_message_template.format(error=detail)
                history.append(Turn.assistant(text=text))
                return text

    def reset(self) -> None:
        """清空历史，只保留 system 消息；工具描述缓存不受影响。"""

        self._conversation.history.reset()
        logger.info("Conversation reset", extra={"extra": {"remaining_turns": len(self._conversation.history)}})

    async def _run_rounds(self, span: Span, log_ctx: Dict[str, Any]) -> str:
        history = self._conversation.history
        max_rounds = self._config.max_tool_rounds
        options = ChatOptions(
            tools=self._conversation.tools,
            max_output_tokens=self._config.max_output_tokens,
        )

        for round_num in range(1, max_rounds + 1):
            span.add_event("chat.request", {"round": round_num, "turn_count": len(history)})
            self._log(logging.INFO, "Backend round", log_ctx, round=round_num, max_rounds=max_rounds)

            response = await self._backend.get_response(history.turns, options)
            result = self._normalizer.normalize(response)
            if result.used_fallback:
                span.add_event("chat.fallback", {"round": round_num})
                self._log(
                    logging.WARNING,
                    "Response shape not recognised, used text fallback",
                    log_ctx,
                    round=round_num,
                    **describe_response(response),
                )
            if result.usage is not None:
                self._log(
                    logging.INFO,
                    "Token usage",
                    log_ctx,
                    prompt_tokens=result.usage.prompt_tokens,
                    completion_tokens=result.usage.completion_tokens,
                    total_tokens=result.usage.total_tokens,
                )

            assistant_turn = result.turn
            history.append(assistant_turn)
            if not assistant_turn.tool_calls:
                self._log(logging.INFO, "Exchange completed", log_ctx, rounds=round_num)
                return assistant_turn.text or ""

            self._log(
                logging.INFO,
                "Executing tool calls",
                log_ctx,
                call_count=len(assistant_turn.tool_calls),
            )
            # 按模型给出的顺序逐个执行，部分工具有顺序相关的副作用
            for call in assistant_turn.tool_calls:
                tool_result = await self._execute_tool(call, log_ctx)
                history.append(Turn.tool(tool_result))

        self._log(logging.WARNING, "Reached max tool rounds", log_ctx, max_rounds=max_rounds)
        text = self._config.too_many_tool_calls_message
        history.append(Turn.assistant(text=text))
        return text

    async def _execute_tool(self, call: ToolCallRequest, log_ctx: Dict[str, Any]) -> ToolCallResult:
        attributes = {"tool.name": call.name, "tool.call_id": call.call_id}
        with self._telemetry.span("chat.tool.execute", attributes=attributes) as span:
            self._log(
                logging.INFO,
                "Tool call received",
                log_ctx,
                tool_name=call.name,
                tool_call_id=call.call_id,
            )
            try:
                if self._tool_catalog is None:
                    raise ToolExecutionError(code="NO_TOOL_CATALOG", message="no tool catalog configured")
                arguments = ensure_json_object(call.arguments)
                payload = await self._tool_catalog.execute(call.name, arguments)
                if not isinstance(payload, str):
                    raise ToolExecutionError(code="INVALID_TOOL_RESULT", message="tool returned a non-text payload")
            except Exception as exc:
                message = exc.message if isinstance(exc, BusinessError) else (str(exc) or type(exc).__name__)
                Telemetry.mark_error(span, message)
                self._log(
                    logging.ERROR,
                    "Tool execution failed",
                    log_ctx,
                    tool_call_id=call.call_id,
                    tool_name=call.name,
                    error=message,
                )
                return ToolCallResult.failure(call.call_id, message)
            self._log(
                logging.INFO,
                "Tool execution finished",
                log_ctx,
                tool_call_id=call.call_id,
                result_preview=payload[:200] if payload else "",
            )
            return ToolCallResult.success(call.call_id, payload)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
