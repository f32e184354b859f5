"""对外 API 服务模块。

提供简化的函数接口供上层应用（Web 端点、控制台示例等）调用。
进程内只维护一个默认 ChatAgent，所有交互通过 asyncio.Lock 串行执行。
"""

import asyncio
from typing import Any, Dict, List, Optional

from chat_core.agents.chat_agent import AgentConfig, ChatAgent
from chat_core.config.settings import settings
from chat_core.domain.exceptions import InvalidInputError
from chat_core.domain.models import Turn
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.telemetry import get_telemetry
from chat_core.providers import create_backend
from chat_core.tools.mcp_catalog import McpToolCatalog


_agent: Optional[ChatAgent] = None
_lock: Optional[asyncio.Lock] = None


def get_default_agent() -> ChatAgent:
    """获取默认的 ChatAgent 实例（单例），按 settings 装配后端与 MCP 工具目录。"""
    global _agent
    if _agent is None:
        telemetry = get_telemetry()
        _agent = ChatAgent(
            backend=create_backend(),
            tool_catalog=McpToolCatalog.from_settings(settings, telemetry=telemetry),
            telemetry=telemetry,
            config=AgentConfig.from_settings(settings),
        )
    return _agent


def set_default_agent(agent: Optional[ChatAgent]) -> None:
    """替换默认 Agent（例如测试或自定义装配），同时重置交互锁。"""
    global _agent, _lock
    _agent = agent
    _lock = None


def _get_lock() -> asyncio.Lock:
    global _lock
    if _lock is None:
        _lock = asyncio.Lock()
    return _lock


async def run_chat(message: str) -> Dict[str, Any]:
    """运行一次对话交互。

    Args:
        message: 用户输入内容

    Returns:
        {"response": <assistant 文本>}

    Raises:
        InvalidInputError: 输入为空或只包含空白
    """
    if not isinstance(message, str) or not message.strip():
        raise InvalidInputError(code="EMPTY_MESSAGE", message="Message cannot be empty")

    agent = get_default_agent()
    async with _get_lock():
        # 首次对话时 chat 会自动 initialize
        text = await agent.chat(message)
    return {"response": text}


async def reset_chat() -> None:
    """清空默认 Agent 的对话历史（保留 system 消息）。

    与 run_chat 共用同一把锁，进行中的交互结束后才会执行。
    """
    agent = get_default_agent()
    async with _get_lock():
        agent.reset()


def get_messages() -> List[Dict[str, Any]]:
    """获取默认 Agent 的全部消息，转换为可 JSON 序列化的字典。"""
    return [turn_to_dict(turn) for turn in get_default_agent().messages]


def turn_to_dict(turn: Turn) -> Dict[str, Any]:
    data: Dict[str, Any] = {"role": turn.role, "text": turn.text}
    if turn.tool_calls:
        data["tool_calls"] = [
            {"call_id": call.call_id, "name": call.name, "arguments": dict(call.arguments)}
            for call in turn.tool_calls
        ]
    if turn.tool_result is not None:
        data["tool_result"] = {
            "call_id": turn.tool_result.call_id,
            "is_error": turn.tool_result.is_error,
            "content": turn.tool_result.content,
        }
    return data


async def shutdown() -> None:
    """关闭默认 Agent 的工具目录连接。"""
    agent = _agent
    if agent is None:
        return
    catalog = agent.tool_catalog
    aclose = getattr(catalog, "aclose", None)
    if aclose is not None:
        await aclose()
        logger.info("Tool catalog closed")
