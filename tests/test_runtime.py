from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

pytest.importorskip("pydantic")
pytest.importorskip("fastapi")

from app.runtime import RelayRuntime, parse_args


def test_missing_configuration_exits_with_status_1(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    for name in ("ADDRESSES", "N8N_WEBHOOK", "WEBHOOK_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "relay.log"))
    monkeypatch.chdir(tmp_path)
    runtime = RelayRuntime(tmp_path / "missing.yaml")

    with pytest.raises(SystemExit) as excinfo:
        asyncio.run(runtime.run())

    assert excinfo.value.code == 1


def test_load_reads_relay_section_from_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    for name in ("ADDRESSES", "N8N_WEBHOOK", "WEBHOOK_URL", "POLL_MS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "relay.log"))
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "relay:\n"
        "  addresses: [\"0xaaa\"]\n"
        "  webhook_url: http://n8n.local/webhook/x\n"
        "  poll_ms: 2000\n"
    )

    config = RelayRuntime(config_path).load()

    assert config.addresses == ["0xaaa"]
    assert config.poll_interval == 2.0


def test_parse_args_defaults() -> None:
    args = parse_args([])

    assert args.config == "config.yaml"
    assert args.no_status is False
    assert parse_args(["--no-status", "--config", "x.yaml"]).no_status is True
