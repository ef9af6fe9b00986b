"""Logging setup for the shownotes CLI.

The annotated listing owns stdout, so console diagnostics always go to
stderr in a compact format while the rotating log file keeps timestamps.
Language-server wire traffic stays at INFO unless protocol tracing is
requested.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["PROTOCOL_LOGGER", "get_log_path", "setup_logging"]

LOG_FILE_NAME = "annotations.log"
PROTOCOL_LOGGER = "shownotes.services.lsp_client"
_DEFAULT_LOG_DIR = Path.home() / ".shownotes" / "logs"
_FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
_CONSOLE_FORMAT = "shownotes: %(levelname)s: %(message)s"
_CONSOLE_DEBUG_FORMAT = "shownotes: %(levelname)s [%(name)s] %(message)s"
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    trace_protocol: bool = False,
    force: bool = False,
) -> Path:
    """Install the file and stderr handlers on the ``shownotes`` logger tree.

    Returns the log file path. Repeated calls are no-ops unless *force* is set.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    target_dir = Path(log_dir or os.environ.get("SHOWNOTES_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handlers: list[logging.Handler] = [file_handler]
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter(_CONSOLE_DEBUG_FORMAT if level <= logging.DEBUG else _CONSOLE_FORMAT)
        )
        handlers.append(console_handler)
    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    logging.getLogger("asyncio").setLevel(max(level, logging.WARNING))
    protocol_level = level if trace_protocol else max(level, logging.INFO)
    logging.getLogger(PROTOCOL_LOGGER).setLevel(protocol_level)

    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the log file configured by :func:`setup_logging`, if any."""

    return _LOG_PATH
