"""Azure OpenAI 后端适配器。

请求/响应 JSON 与 OpenAI chat/completions 同构，因此直接继承 OpenAIChatBackend，
只覆盖：部署地址 + api-version 查询参数、api-key 请求头、max_completion_tokens 字段。

配置（含连接串）在每次 get_response 时才校验，缺失或无效时抛出 ConfigurationError，
由 Agent 循环统一转换为致歉回复，构造阶段不会失败。
"""

from typing import Dict, Optional

from chat_core.domain.exceptions import ConfigurationError
from chat_core.providers.openai_client import OpenAIChatBackend
from chat_core.providers.registry import AZURE_OPENAI_CONFIG, AzureOpenAIConnection


class AzureOpenAIChatBackend(OpenAIChatBackend):
    name = "azure"

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        deployment: Optional[str] = None,
        api_version: str = AZURE_OPENAI_CONFIG.api_version,
        timeout: float = AZURE_OPENAI_CONFIG.timeout,
        connection_string: Optional[str] = None,
    ):
        super().__init__(api_key=api_key, model=deployment or "", base_url=endpoint or "", timeout=timeout)
        self._deployment = deployment
        self._api_version = api_version
        self._connection_string = connection_string

    @classmethod
    def from_settings(cls, cfg) -> "AzureOpenAIChatBackend":
        # 连接串优先于单独的 endpoint/key/deployment 字段
        if cfg.chat_connection_string:
            return cls(timeout=cfg.http_timeout, connection_string=cfg.chat_connection_string)
        return cls(
            endpoint=cfg.azure_openai_endpoint,
            api_key=cfg.azure_openai_api_key,
            deployment=cfg.azure_openai_deployment,
            api_version=cfg.azure_openai_api_version,
            timeout=cfg.http_timeout,
        )

    def _check_config(self) -> None:
        if self._connection_string:
            connection = AzureOpenAIConnection.from_connection_string(self._connection_string)
            self._connection_string = None
            self._base_url = connection.endpoint
            self._api_key = connection.api_key
            self._deployment = connection.deployment
            self._model = connection.deployment
            self._api_version = connection.api_version
        if not self._base_url or not self._deployment:
            raise ConfigurationError(
                code="MISSING_AZURE_CONFIG",
                message="Azure OpenAI endpoint and deployment are required",
            )
        super()._check_config()

    def _endpoint_url(self) -> str:
        return (
            f"{self._base_url}/openai/deployments/{self._deployment}/chat/completions"
            f"?api-version={self._api_version}"
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "api-key": self._api_key or "",
            "Content-Type": "application/json",
        }

    def _max_tokens_field(self) -> str:
        return "max_completion_tokens"
