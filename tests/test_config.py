from __future__ import annotations

from pathlib import Path

import pytest
import yaml

pytest.importorskip("pydantic")

from common.config import ConfigError, build_relay_config, load_config


def test_env_overrides_yaml_and_addresses_are_split(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "relay": {
                    "addresses": ["0x1"],
                    "webhook_url": "${HOOK_URL}",
                    "poll_ms": 1000,
                }
            }
        )
    )
    monkeypatch.setenv("HOOK_URL", "http://n8n.local/webhook/abc")
    raw = load_config(config_path)

    config = build_relay_config(raw, environ={"ADDRESSES": "0xa, 0xb,,", "HEARTBEAT_MS": "1500"})

    assert config.addresses == ["0xa", "0xb"]
    assert config.webhook_url == "http://n8n.local/webhook/abc"
    assert config.poll_ms == 1000
    assert config.heartbeat_ms == 1500
    assert config.heartbeat_interval == 1.5
    assert config.reconnect_ms == 5000


def test_defaults_from_environment_only() -> None:
    config = build_relay_config(
        None, environ={"ADDRESSES": "0xa", "N8N_WEBHOOK": "http://hook"}
    )

    assert config.ws_url == "wss://api.hyperliquid.xyz/ws"
    assert config.info_url == "https://api.hyperliquid.xyz/info"
    assert config.status_port == 8080


def test_missing_webhook_is_fatal() -> None:
    with pytest.raises(ConfigError, match="webhook_url"):
        build_relay_config(None, environ={"ADDRESSES": "0xa"})


def test_missing_addresses_is_fatal() -> None:
    with pytest.raises(ConfigError, match="addresses"):
        build_relay_config(None, environ={"WEBHOOK_URL": "http://hook"})


def test_invalid_interval_is_rejected() -> None:
    with pytest.raises(ConfigError, match="reconnect_ms"):
        build_relay_config(
            None,
            environ={"ADDRESSES": "0xa", "WEBHOOK_URL": "http://hook", "RECONNECT_MS": "-1"},
        )


def test_yaml_root_must_be_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- a\n- b\n")

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_example_config_without_webhook_env_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    example = Path(__file__).resolve().parents[1] / "config.example.yaml"
    monkeypatch.delenv("N8N_WEBHOOK", raising=False)
    raw = load_config(example)

    with pytest.raises(ConfigError, match="webhook_url"):
        build_relay_config(raw, environ={"ADDRESSES": "0xa"})


def test_webhook_must_be_http_url() -> None:
    with pytest.raises(ConfigError, match="webhook_url"):
        build_relay_config(None, environ={"ADDRESSES": "0xa", "N8N_WEBHOOK": "not a url"})
