from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from admin.web import StatusPanel
from common.config import RelayConfig
from common.models import FillEvent
from relay.context import ConnectionState, RelayContext


def _context() -> RelayContext:
    config = RelayConfig(
        addresses=["0xaaa", "0xbbb"],
        webhook_url="http://sink.invalid/hook",
        heartbeat_ms=15_000,
        poll_ms=45_000,
    )
    return RelayContext(config=config)


def test_health_reports_counters_and_intervals() -> None:
    context = _context()
    context.cache.should_emit(FillEvent.model_validate({"address": "0xaaa", "oid": 1}))
    context.watermarks.seed("0xaaa", 100)
    context.stats.delivered = 4
    context.set_connection_state(ConnectionState.CONNECTING)
    panel = StatusPanel(context)

    with TestClient(panel.app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["cache_size"] == 1
    assert payload["watermarks"] == 1
    assert payload["address_count"] == 2
    assert payload["intervals"]["heartbeat_ms"] == 15_000
    assert payload["intervals"]["poll_ms"] == 45_000
    assert payload["counters"]["delivered"] == 4
    assert payload["stream"] == {"state": "connecting", "connected": False}


def test_root_path_serves_status_too() -> None:
    panel = StatusPanel(_context())

    with TestClient(panel.app) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert response.json()["address_count"] == 2


def test_unknown_paths_return_fixed_404() -> None:
    panel = StatusPanel(_context())

    with TestClient(panel.app) as client:
        response = client.get("/metrics")

    assert response.status_code == 404
    assert response.json() == {"error": "not found"}
