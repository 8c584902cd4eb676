"""FastAPI status endpoint reporting relay health and counters."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from relay.context import RelayContext

logger = logging.getLogger(__name__)

NOT_FOUND_BODY = {"error": "not found"}


def build_status(context: RelayContext) -> Dict[str, Any]:
    """Snapshot of the relay's operational state."""

    config = context.config
    return {
        "status": "ok",
        "stream": {
            "state": context.connection_state.value,
            "connected": context.connected,
        },
        "cache_size": len(context.cache),
        "watermarks": len(context.watermarks),
        "addresses": list(config.addresses),
        "address_count": len(config.addresses),
        "backlog": context.channel.backlog,
        "intervals": {
            "heartbeat_ms": config.heartbeat_ms,
            "reconnect_ms": config.reconnect_ms,
            "keepalive_ms": config.keepalive_ms,
            "poll_ms": config.poll_ms,
            "lookback_ms": config.lookback_ms,
            "sweep_ms": config.sweep_ms,
        },
        "counters": context.stats.as_dict(),
    }


@dataclass
class StatusPanel:
    """Own the status FastAPI app for one relay context."""

    context: RelayContext

    def __post_init__(self) -> None:
        self.app = FastAPI(
            title="Hyperliquid Relay Status", docs_url=None, redoc_url=None, openapi_url=None
        )
        self.app.add_api_route("/", self.health, methods=["GET"])
        self.app.add_api_route("/health", self.health, methods=["GET"])
        self.app.add_exception_handler(StarletteHTTPException, self._http_error)

    async def health(self) -> JSONResponse:
        return JSONResponse(build_status(self.context))

    async def _http_error(self, request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(NOT_FOUND_BODY, status_code=status.HTTP_404_NOT_FOUND)
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


def create_status_app(context: RelayContext) -> FastAPI:
    """Convenience helper to build the FastAPI app."""

    return StatusPanel(context).app


class EmbeddedStatusServer(uvicorn.Server):
    """Uvicorn server that leaves signal handling to the relay runtime."""

    @contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def build_status_server(context: RelayContext) -> EmbeddedStatusServer:
    config = context.config
    server_config = uvicorn.Config(
        create_status_app(context),
        host=config.status_host,
        port=config.status_port,
        log_level="warning",
        lifespan="off",
    )
    logger.info("Status endpoint on %s:%s", config.status_host, config.status_port)
    return EmbeddedStatusServer(server_config)
