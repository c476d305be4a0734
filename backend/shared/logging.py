"""structlog setup for game clients.

structlog events are handed to stdlib logging, so one set of handlers
renders both our events and library records. Level, format and log
directory are passed in explicitly (see bingo.settings.BingoSettings).
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LogFormat = Literal["console", "json"]

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def _plain_values(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Render enums as their value and sets (called numbers, ids) as sorted lists."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (set, frozenset)):
            event_dict[key] = sorted(value)
    return event_dict


def configure_structlog() -> None:
    """Route structlog through stdlib logging. Safe to call repeatedly."""
    # format_exc_info runs in the handler formatters so tracebacks render once.
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _plain_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _formatter(log_format: LogFormat, *, colors: bool) -> structlog.stdlib.ProcessorFormatter:
    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def remove_handlers() -> None:
    """Close and detach the root handlers installed by setup_logging."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            handler.close()
            root_logger.removeHandler(handler)


def log_file_path(log_dir: Path | str, participant_id: str, now: datetime | None = None) -> Path:
    """One file per client start; several local clients can share a log_dir."""
    stamp = (now or datetime.now(tz=UTC)).strftime(LOG_FILE_TIMESTAMP_FORMAT)
    return Path(log_dir) / f"{stamp}_{participant_id}.log"


def setup_logging(
    *,
    level: str | int = logging.INFO,
    log_format: LogFormat = "console",
    log_dir: Path | str | None = None,
    participant_id: str = "client",
) -> Path | None:
    """Configure logging for one client and return the log file path, if any.

    Handlers installed by an earlier call are replaced; handlers added by
    others (pytest's capture handler, for one) are left alone.
    """
    configure_structlog()

    remove_handlers()
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # per-task asyncio debug output buries game events at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(_formatter(log_format, colors=sys.stdout.isatty()))
    root_logger.addHandler(stdout_handler)

    if log_dir is None:
        return None
    file_path = log_file_path(log_dir, participant_id)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(file_path)
    file_handler.setFormatter(_formatter(log_format, colors=False))
    root_logger.addHandler(file_handler)
    return file_path
