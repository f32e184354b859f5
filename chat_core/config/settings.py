"""配置管理模块。

支持从初始化参数、环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 对话后端 ----
    chat_backend: Literal["azure", "openai"] = Field(
        default="azure",
        description="对话后端类型：azure（Azure OpenAI）或 openai（OpenAI 兼容接口）",
    )
    chat_connection_string: Optional[str] = Field(
        default=None,
        description="Azure OpenAI 连接串，形如 Endpoint=...;Key=...;Deployment=...;ApiVersion=...",
    )

    # Azure OpenAI
    azure_openai_endpoint: Optional[str] = Field(default=None, description="Azure OpenAI 资源地址")
    azure_openai_api_key: Optional[str] = Field(default=None, description="Azure OpenAI API 密钥")
    azure_openai_deployment: Optional[str] = Field(default=None, description="部署名称")
    azure_openai_api_version: str = Field(default="2024-10-21", description="API 版本")

    # OpenAI 兼容接口
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI 兼容接口基础URL")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI 兼容接口 API 密钥")
    openai_model: str = Field(default="gpt-4o-mini", description="模型名称")

    # ---- 工具目录 ----
    mcp_endpoint: str = Field(default="http://localhost:5000/mcp", description="MCP 服务的 SSE 地址")
    tool_call_timeout: float = Field(default=60.0, gt=0, description="单次工具调用超时时间（秒）")

    # ---- Agent 循环 ----
    http_timeout: float = Field(default=100.0, ge=1.0, description="HTTP 超时时间（秒）")
    max_tool_rounds: int = Field(
        default=5,
        ge=1,
        le=20,
        description="单次对话内后端调用的最大轮数（硬上限 20）",
    )
    max_output_tokens: int = Field(default=2048, ge=1, description="单次回答的最大输出 token 数")
    system_prompt: str = Field(default="", description="自定义系统提示词，留空使用内置提示词")

    # ---- 日志 ----
    log_dir: Optional[str] = Field(default=None, description="日志目录，留空时输出到 stderr")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("azure_openai_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
