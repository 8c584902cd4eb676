"""Logging helpers for the account relay."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_LOG_PATH = Path("logs/relay.log")


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """Translate ``"debug"``/``"INFO"`` style names into logging levels."""

    if not name:
        return default
    level = getattr(logging, str(name).strip().upper(), None)
    return level if isinstance(level, int) else default


def setup_logging(log_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure console and rotating file handlers.

    Args:
        log_level: Numeric logging level (e.g., ``logging.INFO``).
        log_file: Optional path to a log file. Defaults to ``logs/relay.log``.
    """

    logger = logging.getLogger()
    if logger.handlers:
        # Avoid adding duplicate handlers when called multiple times.
        return

    logger.setLevel(log_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_path = Path(log_file) if log_file else DEFAULT_LOG_PATH
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(file_path, maxBytes=2_000_000, backupCount=5)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Status endpoint access logs are noisy at INFO.
    logging.getLogger("uvicorn.access").setLevel(max(log_level, logging.WARNING))

    logger.debug("Logging configured", extra={"log_file": str(file_path)})


__all__ = ["DEFAULT_LOG_PATH", "level_from_name", "setup_logging"]
