import pytest

from chat_core.config.settings import Settings
from chat_core.domain.exceptions import ConfigurationError
from chat_core.providers import create_backend
from chat_core.providers.azure_client import AzureOpenAIChatBackend
from chat_core.providers.openai_client import OpenAIChatBackend
from chat_core.providers.registry import AZURE_OPENAI_CONFIG, AzureOpenAIConnection


def test_connection_string_parsing_is_case_insensitive():
    conn = AzureOpenAIConnection.from_connection_string(
        "endpoint=https://todo.openai.azure.com/; KEY=secret-key ;Deployment=gpt-4o;apiversion=2025-01-01-preview;"
    )
    assert conn.endpoint == "https://todo.openai.azure.com"
    assert conn.api_key == "secret-key"
    assert conn.deployment == "gpt-4o"
    assert conn.api_version == "2025-01-01-preview"


def test_connection_string_defaults_api_version():
    conn = AzureOpenAIConnection.from_connection_string("Endpoint=https://x;Key=k;Deployment=d")
    assert conn.api_version == AZURE_OPENAI_CONFIG.api_version


@pytest.mark.parametrize(
    "raw",
    ["", "Endpoint=https://x;Key=k", "Endpoint=https://x;Key=k;Deployment=", "Endpoint=https://x;garbage"],
)
def test_invalid_connection_strings(raw):
    with pytest.raises(ConfigurationError) as exc:
        AzureOpenAIConnection.from_connection_string(raw)
    assert exc.value.code == "INVALID_CONNECTION_STRING"


def test_create_backend_prefers_connection_string():
    cfg = Settings(
        chat_backend="openai",
        chat_connection_string="Endpoint=https://todo.openai.azure.com;Key=secret-key;Deployment=gpt-4o",
    )
    backend = create_backend(cfg=cfg)
    assert isinstance(backend, AzureOpenAIChatBackend)
    assert backend.name == "azure"


def test_create_backend_by_name():
    cfg = Settings(chat_backend="openai", openai_api_key="sk-test-123456", chat_connection_string=None)
    assert isinstance(create_backend(cfg=cfg), OpenAIChatBackend)
    assert not isinstance(create_backend(cfg=cfg), AzureOpenAIChatBackend)
    with pytest.raises(KeyError):
        create_backend("gemini", cfg=cfg)


def test_settings_bounds_tool_rounds():
    with pytest.raises(ValueError):
        Settings(max_tool_rounds=0)
    with pytest.raises(ValueError):
        Settings(max_tool_rounds=21)
    assert Settings().max_tool_rounds == 5


def test_create_backend_defers_azure_config_check():
    cfg = Settings(
        chat_backend="azure",
        azure_openai_endpoint=None,
        azure_openai_deployment=None,
        chat_connection_string="Endpoint=https://x;Key=k",
    )
    backend = create_backend(cfg=cfg)
    assert isinstance(backend, AzureOpenAIChatBackend)
