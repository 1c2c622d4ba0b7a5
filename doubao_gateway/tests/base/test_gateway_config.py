from __future__ import annotations

import json
import os

from doubao_gateway.config import DEFAULTS, get_gateway_config, reset_config_cache
from doubao_gateway.config.env import coerce_like, env_var_name, is_placeholder


def test_defaults_are_returned_without_sources():
    cfg = get_gateway_config("doubao")
    assert cfg == DEFAULTS["doubao"]
    assert cfg["max_retries"] == 3
    assert cfg["retry_delay_seconds"] == 5.0


def test_merge_order_file_env_overrides(tmp_path, monkeypatch):
    yaml_file = tmp_path / "gateway.yaml"
    yaml_file.write_text("doubao:\n  max_retries: 1\n  assistant_id: '111'\n  retry_delay_seconds: 2\n", encoding="utf-8")
    monkeypatch.setenv("GATEWAY_CONFIG_FILE", str(yaml_file))
    monkeypatch.setenv("DOUBAO_ASSISTANT_ID", "222")
    reset_config_cache()

    cfg = get_gateway_config("doubao", overrides={"retry_delay_seconds": 0.5, "base_url": None})
    assert cfg["max_retries"] == 1
    assert cfg["assistant_id"] == "222"
    assert cfg["retry_delay_seconds"] == 0.5
    assert cfg["base_url"] == DEFAULTS["doubao"]["base_url"]


def test_json_config_file_and_env_coercion(tmp_path, monkeypatch):
    json_file = tmp_path / "gateway.json"
    json_file.write_text(json.dumps({"doubao": {"upload_max_workers": 8}}), encoding="utf-8")
    monkeypatch.setenv("GATEWAY_CONFIG_FILE", str(json_file))
    monkeypatch.setenv("DOUBAO_MAX_RETRIES", "5")
    monkeypatch.setenv("DOUBAO_VERSION_CODE", "changeme")
    reset_config_cache()

    cfg = get_gateway_config()
    assert cfg["upload_max_workers"] == 8
    assert cfg["max_retries"] == 5
    assert cfg["version_code"] == DEFAULTS["doubao"]["version_code"]


def test_dotenv_file_is_loaded_once(tmp_path, monkeypatch):
    dotenv = tmp_path / ".env"
    dotenv.write_text("# comment\nDOUBAO_PC_VERSION='9.9.9'\n", encoding="utf-8")
    monkeypatch.setenv("DOTENV_FILE", str(dotenv))
    monkeypatch.delenv("DOUBAO_PC_VERSION", raising=False)
    reset_config_cache()
    try:
        assert get_gateway_config()["pc_version"] == "9.9.9"
    finally:
        os.environ.pop("DOUBAO_PC_VERSION", None)


def test_env_helpers():
    assert env_var_name("doubao", "max_retries") == "DOUBAO_MAX_RETRIES"
    assert coerce_like(3, "4") == 4
    assert coerce_like(1.5, "2") == 2.0
    assert coerce_like(True, "off") is False
    assert coerce_like(3, "many") == "many"
    assert is_placeholder("your-key-placeholder")
    assert not is_placeholder("497858")
