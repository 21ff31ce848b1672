from __future__ import annotations

import json
import logging
import sys
import traceback
from dataclasses import dataclass
from datetime import UTC, datetime

LOGGER_NAME = "wfbridge"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


@dataclass(frozen=True)
class LoggingConfig:
    level: int = logging.INFO
    file: str | None = None


class DetailedTextFormatter(logging.Formatter):
    """Multi-line formatter that expands structured ``extra`` context."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        component = record.name.removeprefix(f"{LOGGER_NAME}.")
        lines = [f"{timestamp} | {record.levelname:7s} | {component:24s} | {record.getMessage()}"]

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            if isinstance(value, (dict, list, tuple)):
                rendered = json.dumps(value, indent=2, default=str)
            elif isinstance(value, str) and len(value) > 200:
                rendered = f"{value[:200]}..."
            else:
                rendered = str(value)
            lines.append(f"  {key}: {rendered}")

        if record.exc_info:
            lines.append("  traceback:")
            lines.append("    " + "    ".join(traceback.format_exception(*record.exc_info)))

        return "\n".join(lines)


def get_logger(name: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name or LOGGER_NAME)
    if not any(isinstance(h, logging.NullHandler) for h in logger.handlers):
        logger.addHandler(logging.NullHandler())
    return logger


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Install the process-wide handlers for the ``wfbridge`` logger tree.

    Call once from the process entry point, before the bridge starts. Library
    code only ever calls :func:`get_logger`.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(config.level)
    logger.propagate = False

    # The MCP channel is HTTP, so stderr stays free for operator output.
    main_handler: logging.Handler
    if config.file:
        main_handler = logging.FileHandler(config.file, mode="w", encoding="utf-8")
        main_handler.setFormatter(DetailedTextFormatter())
    else:
        main_handler = logging.StreamHandler(sys.stderr)
        main_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    main_handler.setLevel(config.level)
    logger.addHandler(main_handler)
