"""基于 MCP（SSE 传输）的工具目录。

连接在第一次使用时惰性建立，并在整个进程生命周期内复用：
- list_tools 成功后缓存工具描述，之后不再访问远端；失败时不缓存，下次调用会重试。
- execute 把 MCP 的 CallToolResult 原样序列化为 JSON 文本返回，
  isError 为 true 的结果同样作为正常 payload 返回，交给模型自行解读。
"""

import asyncio
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

from mcp import ClientSession
from mcp.client.sse import sse_client
from opentelemetry.trace import SpanKind

from chat_core.domain.arguments import JsonValue
from chat_core.domain.exceptions import ToolCatalogError, ToolExecutionError
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.telemetry import Telemetry, get_telemetry
from chat_core.tools.definitions import ToolDescriptor


class McpToolCatalog:
    def __init__(
        self,
        endpoint: str,
        telemetry: Optional[Telemetry] = None,
        timeout: float = 30.0,
        call_timeout: float = 60.0,
    ):
        self._endpoint = endpoint
        self._telemetry = telemetry or get_telemetry()
        self._timeout = timeout
        self._call_timeout = call_timeout
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None
        self._tools: Optional[List[ToolDescriptor]] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, cfg, telemetry: Optional[Telemetry] = None) -> "McpToolCatalog":
        return cls(
            endpoint=cfg.mcp_endpoint,
            telemetry=telemetry,
            timeout=cfg.http_timeout,
            call_timeout=cfg.tool_call_timeout,
        )

    async def _ensure_session(self) -> ClientSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            stack = AsyncExitStack()
            try:
                read_stream, write_stream = await stack.enter_async_context(
                    sse_client(self._endpoint, timeout=self._timeout)
                )
                session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
                await asyncio.wait_for(session.initialize(), timeout=self._timeout)
            except BaseException:
                await stack.aclose()
                raise
            self._stack = stack
            self._session = session
            logger.info("MCP session established", extra={"extra": {"endpoint": self._endpoint}})
            return session

    async def list_tools(self) -> List[ToolDescriptor]:
        if self._tools is not None:
            return list(self._tools)
        with self._telemetry.span("mcp.tools.fetch", kind=SpanKind.CLIENT) as span:
            try:
                session = await self._ensure_session()
                result = await session.list_tools()
            except Exception as exc:
                Telemetry.mark_error(span, str(exc))
                raise ToolCatalogError(
                    code="TOOL_LIST_FAILED",
                    message=f"Failed to list MCP tools: {exc}",
                    http_status=502,
                    endpoint=self._endpoint,
                ) from exc
            tools = [
                ToolDescriptor(
                    name=tool.name,
                    description=tool.description or "",
                    input_schema=dict(tool.inputSchema or {}),
                )
                for tool in result.tools
            ]
            span.set_attribute("mcp.tool.count", len(tools))
        self._tools = tools
        logger.info("MCP tools loaded", extra={"extra": {"endpoint": self._endpoint, "count": len(tools)}})
        return list(tools)

    async def execute(self, name: str, arguments: Dict[str, JsonValue]) -> str:
        attributes: Dict[str, Any] = {"mcp.tool.name": name}
        with self._telemetry.span("mcp.tool.call", kind=SpanKind.CLIENT, attributes=attributes) as span:
            try:
                session = await self._ensure_session()
                result = await asyncio.wait_for(
                    session.call_tool(name, dict(arguments)),
                    timeout=self._call_timeout,
                )
            except asyncio.TimeoutError as exc:
                Telemetry.mark_error(span, "timeout")
                raise ToolExecutionError(
                    code="TOOL_TIMEOUT",
                    message=f"Tool {name} timed out after {self._call_timeout}s",
                    cause=exc,
                ) from exc
            except Exception as exc:
                Telemetry.mark_error(span, str(exc))
                raise ToolExecutionError(
                    code="TOOL_CALL_FAILED",
                    message=str(exc) or type(exc).__name__,
                    cause=exc,
                ) from exc
            span.set_attribute("mcp.tool.is_error", bool(getattr(result, "isError", False)))
            return result.model_dump_json(by_alias=True, exclude_none=True)

    async def aclose(self) -> None:
        """关闭 MCP 会话与底层 SSE 连接。"""

        stack, self._stack = self._stack, None
        self._session = None
        if stack is not None:
            await stack.aclose()
