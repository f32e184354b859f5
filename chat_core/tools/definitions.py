"""工具描述数据结构。

ToolDescriptor 描述工具目录对外公布的一个工具，既用于：
- 将可用工具列表暴露给 LLM（序列化为 function tool）。
- 在会话内缓存一次后重复使用。
"""

from dataclasses import dataclass, field
from typing import Any, Dict

EMPTY_OBJECT_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}}


@dataclass(frozen=True)
class ToolDescriptor:
    """一个可供 LLM 调用的工具定义。"""

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=dict)

    def parameters_schema(self) -> Dict[str, Any]:
        """返回可直接放入 function tool 的参数 schema，缺省为空对象。"""

        if not self.input_schema:
            return dict(EMPTY_OBJECT_SCHEMA)
        return dict(self.input_schema)
