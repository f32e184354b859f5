"""工具目录抽象接口。

ChatAgent 只依赖此协议来获取工具描述并执行工具调用：

- McpToolCatalog: 通过 SSE 连接远端 MCP 服务。
- LocalToolCatalog: 进程内注册的 Python 函数，便于测试与离线演示。
"""

from typing import Dict, List, Protocol

from chat_core.domain.arguments import JsonValue
from chat_core.tools.definitions import ToolDescriptor


class ToolCatalog(Protocol):
    """工具目录协议。

    - list_tools: 返回全部工具描述，失败时抛 ToolCatalogError。
    - execute: 执行一次工具调用，返回序列化后的结果文本，失败时抛 ToolExecutionError。
    """

    async def list_tools(self) -> List[ToolDescriptor]:
        ...

    async def execute(self, name: str, arguments: Dict[str, JsonValue]) -> str:
        ...
