"""Logging configuration for scripts and embedding applications."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from chunkscribe.config import LoggingSettings, Settings

_ROOT_LOGGER = "chunkscribe"

# httpx logs every request at INFO; one line per segment attempt is noise.
_CHATTY_LIBRARIES = ("httpx", "httpcore")


def _log_file_path(cfg: LoggingSettings, log_dir: str) -> Path | None:
    if not cfg.file:
        return None
    path = Path(str(cfg.file))
    return path if path.is_absolute() else Path(log_dir) / path


def _build_handlers(cfg: LoggingSettings, log_dir: str, formatter: logging.Formatter) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if cfg.console:
        handlers.append(logging.StreamHandler())

    file_path = _log_file_path(cfg, log_dir)
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                file_path,
                maxBytes=int(cfg.max_bytes),
                backupCount=int(cfg.backup_count),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings) -> None:
    """Attach console/file handlers to the `chunkscribe` logger.

    Calling it again is a no-op, so scripts and tests can call it freely.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    if getattr(logger, "_chunkscribe_configured", False):
        return

    cfg = settings.logging
    level = logging.getLevelName(str(cfg.level or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    formatter = logging.Formatter(fmt=str(cfg.format), datefmt=str(cfg.datefmt))
    logger.handlers = _build_handlers(cfg, settings.log_dir, formatter)
    logger.setLevel(level)
    logger.propagate = False

    if level > logging.DEBUG:
        for name in _CHATTY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)

    setattr(logger, "_chunkscribe_configured", True)
