import json
import logging

from chat_core.config.settings import Settings
from chat_core.infrastructure.logging.logger import JsonFormatter
from chat_core.prompts import load_system_prompt


def test_yaml_config_source(tmp_path, monkeypatch):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("mcp_endpoint: http://mcp.internal:8080/sse\nmax_tool_rounds: 3\n", encoding="utf-8")
    monkeypatch.setenv("CHAT_CONFIG_FILE", str(cfg_file))
    monkeypatch.delenv("MCP_ENDPOINT", raising=False)
    monkeypatch.setenv("MAX_TOOL_ROUNDS", "7")

    cfg = Settings()
    assert cfg.mcp_endpoint == "http://mcp.internal:8080/sse"
    # 环境变量优先于 config.yaml
    assert cfg.max_tool_rounds == 7


def test_log_level_is_normalised():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_json_formatter_merges_extra_and_redacts():
    record = logging.LogRecord("chat_core", logging.INFO, __file__, 1, "x" * 100, None, None)
    record.extra = {"trace_id": "tr-1", "round": 2}

    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "x" * 100
    assert payload["trace_id"] == "tr-1"
    assert payload["round"] == 2
    assert payload["ts"].endswith("Z")

    redacted = json.loads(JsonFormatter(redact=True).format(record))
    assert redacted["msg"] == "x" * 64


def test_bundled_system_prompt():
    prompt = load_system_prompt()
    assert prompt.startswith("You are an assistant that manages todo items using MCP tools.")
    assert "describe_entities" in prompt
