"""进程内工具目录。

把普通 Python 函数（同步或 async）注册为工具，供 ChatAgent 直接调用。
与 MCP 不同，这里不做结果缓存：同一参数的两次调用会各执行一次。
"""

import inspect
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from chat_core.domain.arguments import JsonValue
from chat_core.domain.exceptions import ToolExecutionError
from chat_core.tools.definitions import ToolDescriptor


ToolFunc = Callable[[Dict[str, JsonValue]], Union[Any, Awaitable[Any]]]


class LocalToolCatalog:
    def __init__(self) -> None:
        self._tools: Dict[str, Tuple[ToolDescriptor, ToolFunc]] = {}

    def register(
        self,
        name: str,
        func: ToolFunc,
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> ToolDescriptor:
        """注册一个工具；同名工具会被覆盖。"""

        descriptor = ToolDescriptor(name=name, description=description, input_schema=dict(input_schema or {}))
        self._tools[name] = (descriptor, func)
        return descriptor

    async def list_tools(self) -> List[ToolDescriptor]:
        return [descriptor for descriptor, _ in self._tools.values()]

    async def execute(self, name: str, arguments: Dict[str, JsonValue]) -> str:
        entry = self._tools.get(name)
        if entry is None:
            raise ToolExecutionError(code="TOOL_NOT_FOUND", message=f"Tool not registered: {name}", http_status=404)
        _, func = entry
        try:
            result = func(arguments)
            if inspect.isawaitable(result):
                result = await result
        except ToolExecutionError:
            raise
        except Exception as exc:
            raise ToolExecutionError(code="TOOL_FAILED", message=str(exc) or type(exc).__name__, cause=exc)
        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False, default=str)
