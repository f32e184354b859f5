"""Chat Core 顶层包。

该包提供基于 MCP 工具的对话 Agent 核心实现，
包括配置加载、领域模型、对话后端适配、工具目录、
响应归一化、Agent 循环与可观测性等能力。
"""

from chat_core.agents.chat_agent import AgentConfig, ChatAgent

__all__ = ["AgentConfig", "ChatAgent"]
