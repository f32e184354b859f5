"""对话后端集成层。

该包下的模块负责：
- 定义 ChatBackend 抽象接口 (base)。
- 维护后端默认配置与连接串解析 (registry)。
- 提供具体实现 (openai_client、azure_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.providers.azure_client import AzureOpenAIChatBackend
from chat_core.providers.base import ChatBackend
from chat_core.providers.openai_client import OpenAIChatBackend


def create_backend(name: Optional[str] = None, cfg=settings) -> ChatBackend:
    """根据名称创建后端实例，默认取配置中的 chat_backend。

    配置了连接串时始终使用 Azure OpenAI。
    """

    backend_name = (name or cfg.chat_backend).lower()
    if backend_name == "azure" or (name is None and cfg.chat_connection_string):
        return AzureOpenAIChatBackend.from_settings(cfg)
    if backend_name == "openai":
        return OpenAIChatBackend.from_settings(cfg)
    raise KeyError(f"Unknown chat backend: {name!r}")

