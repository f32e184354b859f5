"""OpenAI 兼容 chat/completions 后端适配器。

本模块负责：

1. 接收消息历史与 ChatOptions。
2. 将其转换为 chat/completions 的 HTTP 请求格式（含 function tools）。
3. 调用 HTTP 接口并把网络/API 异常映射为 BackendError 子类。
4. 原样返回响应 JSON，解析交给 CompletionPayloadExtractor。

AzureOpenAIChatBackend 复用这里的全部转换逻辑，只覆盖地址与鉴权方式。
"""

from typing import Any, Dict, List, Optional, Sequence

import httpx

from chat_core.agents.response_normalizer import CompletionPayloadExtractor
from chat_core.domain.arguments import dump_arguments
from chat_core.domain.exceptions import ApiError, ConfigurationError, NetworkError, RateLimitError
from chat_core.domain.models import ChatOptions, Turn
from chat_core.providers.registry import OPENAI_CONFIG
from chat_core.tools.definitions import ToolDescriptor


class OpenAIChatBackend:
    """OpenAI 兼容接口的 ChatBackend 实现。"""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = OPENAI_CONFIG.default_model,
        base_url: str = OPENAI_CONFIG.base_url,
        timeout: float = OPENAI_CONFIG.timeout,
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.response_extractor = CompletionPayloadExtractor()

    @classmethod
    def from_settings(cls, cfg) -> "OpenAIChatBackend":
        return cls(
            api_key=cfg.openai_api_key,
            model=cfg.openai_model,
            base_url=cfg.openai_base_url,
            timeout=cfg.http_timeout,
        )

    async def get_response(self, history: Sequence[Turn], options: ChatOptions) -> Dict[str, Any]:
        """执行一次非流式对话调用，返回后端原始 JSON。"""

        self._check_config()
        payload = self._build_payload(history, options)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, trust_env=False) as client:
                resp = await client.post(self._endpoint_url(), json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            raise NetworkError(code="TIMEOUT", message=f"{self.name} request timed out: {e}")
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒绝等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit", http_status=429)
        if resp.status_code in (401, 403):
            raise ApiError(code="AUTH_ERROR", message=resp.text, http_status=resp.status_code)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(code="INVALID_JSON", message=f"{self.name} returned non-JSON body: {e}", http_status=502)

    def _check_config(self) -> None:
        # 配置缺失同样走 BackendError，由 Agent 循环统一兜底
        if not self._api_key:
            raise ConfigurationError(code="MISSING_API_KEY", message=f"{self.name} api key not set")

    def _endpoint_url(self) -> str:
        return f"{self._base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, history: Sequence[Turn], options: ChatOptions) -> Dict[str, Any]:
        """将消息历史与选项转成 chat/completions 请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": self._model,
            "messages": [self._message_to_payload(turn) for turn in history],
        }
        if options.max_output_tokens is not None:
            payload[self._max_tokens_field()] = options.max_output_tokens
        # 工具列表为空时不发送 tools 字段，部分部署会拒绝空数组
        if options.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in options.tools]
            payload["tool_choice"] = "auto"
        return payload

    def _max_tokens_field(self) -> str:
        return "max_tokens"

    @staticmethod
    def _serialize_tool(tool: ToolDescriptor) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema(),
            },
        }

    @staticmethod
    def _message_to_payload(turn: Turn) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": turn.role}
        if turn.role == "tool" and turn.tool_result is not None:
            payload["tool_call_id"] = turn.tool_result.call_id
            payload["content"] = turn.tool_result.content
            return payload
        if turn.tool_calls:
            serialized_calls: List[Dict[str, Any]] = []
            for call in turn.tool_calls:
                serialized_calls.append(
                    {
                        "id": call.call_id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": dump_arguments(call.arguments),
                        },
                    }
                )
            payload["tool_calls"] = serialized_calls
            payload["content"] = turn.text
        else:
            payload["content"] = turn.text or ""
        return payload
