"""对话后端抽象接口。

上层 ChatAgent 不直接依赖具体厂商的 HTTP 接口，而是依赖此协议：

- 每种后端实现一个 ChatBackend（如 OpenAIChatBackend、AzureOpenAIChatBackend）。
- 负责：将消息历史与 ChatOptions 转成具体 API 请求，并原样返回响应。
- 同时给出与自身响应形状匹配的 response_extractor，供 ResponseNormalizer 使用。

这样可以在不改 Agent 代码的前提下接入更多后端。
"""

from typing import Any, Protocol, Sequence

from chat_core.agents.response_normalizer import AssistantTurnExtractor
from chat_core.domain.models import ChatOptions, Turn


class ChatBackend(Protocol):
    """对话后端协议。

    实现者需要提供：
    - name: 后端名称，用于日志/追踪。
    - response_extractor: 解析自身响应形状的适配器。
    - get_response(history, options): 执行一次非流式调用，返回后端原始响应。
    """

    name: str
    response_extractor: AssistantTurnExtractor

    async def get_response(self, history: Sequence[Turn], options: ChatOptions) -> Any:
        ...
