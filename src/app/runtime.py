"""Async runtime harness tying the stream, poller, dedup and delivery together."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from contextlib import suppress
from pathlib import Path
from typing import Any, Iterable, Mapping, MutableMapping

import yaml
from dotenv import load_dotenv

from admin.web import build_status_server
from common import ConfigError, RelayConfig, build_relay_config, load_config, setup_logging
from common.logging import level_from_name
from delivery import DeliveryDispatcher, WebhookSink
from ingest import HyperliquidAccountStream, HyperliquidFillPoller
from relay import CacheSweeper, RelayContext

logger = logging.getLogger(__name__)


def _as_mapping(value: object) -> MutableMapping[str, Any]:
    if isinstance(value, MutableMapping):
        return value
    return {}


def _log_settings(config: Mapping[str, Any]) -> tuple[int, Path | None]:
    logging_cfg = _as_mapping(config.get("logging"))
    level = level_from_name(os.environ.get("LOG_LEVEL") or logging_cfg.get("level"))
    file_value = os.environ.get("LOG_FILE") or logging_cfg.get("file")
    log_file = Path(file_value) if isinstance(file_value, (str, Path)) else None
    return level, log_file


def _read_raw_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return load_config(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc


async def _serve_status(server: Any) -> None:
    try:
        await server.serve()
    except SystemExit:
        # uvicorn exits when it cannot bind; the relay keeps running without it.
        logger.error("Status endpoint failed to start; continuing without it")


class RelayRuntime:
    """Coordinate the ingest paths, the dedup cache, and webhook delivery."""

    def __init__(self, config_path: Path, serve_status: bool = True) -> None:
        self.config_path = config_path
        self.serve_status = serve_status
        self._stop_event = asyncio.Event()

    def load(self) -> RelayConfig:
        """Read ``.env``, the optional YAML file and the environment.

        Logging is configured before validation so a bad configuration is
        reported through the normal handlers before the process exits.
        """

        load_dotenv()
        raw = _read_raw_config(self.config_path)
        level, log_file = _log_settings(raw)
        setup_logging(level, log_file)
        return build_relay_config(raw)

    async def run(self) -> None:
        try:
            config = self.load()
        except ConfigError as exc:
            logger.critical("%s", exc)
            raise SystemExit(1) from exc

        logger.info(
            "Starting relay for %d accounts (stream %s)",
            len(config.addresses),
            config.ws_url,
            extra={"config": str(self.config_path)},
        )

        context = RelayContext(config=config)
        sink = WebhookSink(config.webhook_url, timeout=config.http_timeout)
        dispatcher = DeliveryDispatcher(context.channel, sink, context.stats)
        sweeper = CacheSweeper(context.cache, config.sweep_interval)
        stream = HyperliquidAccountStream(context)
        poller = HyperliquidFillPoller(context)

        dispatcher.start()
        sweeper.start()
        await stream.start()
        await poller.start()

        status_server = build_status_server(context) if self.serve_status else None
        status_task = (
            asyncio.create_task(_serve_status(status_server), name="status-endpoint")
            if status_server
            else None
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, self._stop_event.set)

        try:
            await self._stop_event.wait()
        finally:
            if status_server and status_task:
                status_server.should_exit = True
                with suppress(asyncio.CancelledError):
                    await status_task

            await poller.stop()
            await stream.stop()
            await sweeper.stop()
            await dispatcher.stop()
            await sink.close()
            await context.channel.close()
            logger.info("Relay stopped", extra={"counters": context.stats.as_dict()})

    def stop(self) -> None:
        self._stop_event.set()


async def run_relay(config_path: str, serve_status: bool = True) -> None:
    runtime = RelayRuntime(Path(config_path), serve_status=serve_status)
    await runtime.run()


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Relay Hyperliquid account events to a webhook"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Optional YAML configuration file; environment variables override it",
    )
    parser.add_argument(
        "--no-status",
        action="store_true",
        help="Do not start the HTTP status endpoint",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    asyncio.run(run_relay(args.config, serve_status=not args.no_status))


if __name__ == "__main__":  # pragma: no cover - CLI execution path
    main()
