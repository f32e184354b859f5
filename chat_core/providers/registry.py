"""后端默认配置与连接串解析。

本模块集中维护各后端的默认地址、API 版本与超时，
并负责解析 Azure OpenAI 连接串：

    Endpoint=https://xxx.openai.azure.com/;Key=...;Deployment=gpt-4o;ApiVersion=2024-10-21

键名不区分大小写，Endpoint/Key/Deployment 必填，ApiVersion 可选。
"""

from dataclasses import dataclass
from typing import Dict

from chat_core.domain.exceptions import ConfigurationError


@dataclass
class ProviderConfig:
    """某个后端的默认配置。"""

    name: str
    base_url: str
    default_model: str
    api_version: str = ""
    timeout: float = 100.0


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    default_model="gpt-4o-mini",
)

AZURE_OPENAI_CONFIG = ProviderConfig(
    name="azure",
    base_url="",
    default_model="",
    api_version="2024-10-21",
)


@dataclass(frozen=True)
class AzureOpenAIConnection:
    endpoint: str
    api_key: str
    deployment: str
    api_version: str = AZURE_OPENAI_CONFIG.api_version

    @classmethod
    def from_connection_string(cls, raw: str) -> "AzureOpenAIConnection":
        parts = _parse_pairs(raw)
        missing = [key for key in ("endpoint", "key", "deployment") if not parts.get(key)]
        if missing:
            raise ConfigurationError(
                code="INVALID_CONNECTION_STRING",
                message=f"connection string is missing: {', '.join(missing)}",
            )
        return cls(
            endpoint=parts["endpoint"].rstrip("/"),
            api_key=parts["key"],
            deployment=parts["deployment"],
            api_version=parts.get("apiversion") or AZURE_OPENAI_CONFIG.api_version,
        )


def _parse_pairs(raw: str) -> Dict[str, str]:
    parts: Dict[str, str] = {}
    for segment in (raw or "").split(";"):
        segment = segment.strip()
        if not segment:
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            raise ConfigurationError(
                code="INVALID_CONNECTION_STRING",
                message=f"malformed connection string segment: {key!r}",
            )
        parts[key.strip().lower()] = value.strip()
    return parts
