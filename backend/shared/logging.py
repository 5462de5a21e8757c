"""Structured logging for the duel server.

Every module logs through ``structlog.get_logger()``; events are routed
through stdlib logging so the same records reach stdout, the optional log
file and pytest's caplog. Matches bind ``match_id`` and players bind
``player_id`` on their loggers.

Environment variables:
- LOG_FORMAT: "json" for one JSON object per line, "console" or unset for
  human-readable output.
- LOG_LEVEL: "DEBUG", "INFO" (default), "WARNING", "ERROR" or "CRITICAL".
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

# loggers that are chatty at DEBUG and carry nothing about matches
_QUIET_LOGGERS = ("asyncio",)


class LoggingSettings(BaseSettings):
    log_format: Literal["json", "console", ""] = Field(default="", validation_alias="LOG_FORMAT")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )

    @field_validator("log_format", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def json_mode(self) -> bool:
        return self.log_format == "json"

    @property
    def level(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level]


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_plain(v) for v in value]
    return value


def _serialize_enums(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Replace Enum instances with their values, including inside player snapshots."""
    for key, value in event_dict.items():
        event_dict[key] = _plain(value)
    return event_dict


def _is_test() -> bool:
    return "pytest" in sys.modules


def _build_formatter(*, json_mode: bool, colors: bool = False) -> logging.Formatter:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def configure_structlog() -> None:
    """Install the processor chain; handlers are attached separately."""
    # format_exc_info runs in the formatter so a file handler does not
    # render the traceback a second time
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_enums,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _open_log_file(log_dir: Path | str) -> Path:
    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Send logs to stdout and, outside tests, to a timestamped file in log_dir.

    An explicit level overrides LOG_LEVEL. Returns the log file path, or
    None when no file is written.
    """
    settings = LoggingSettings()
    configure_structlog()

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.level if level is None else level)
    root_logger.handlers.clear()
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    handlers: list[tuple[logging.Handler, bool]] = [(logging.StreamHandler(sys.stdout), sys.stdout.isatty())]
    file_path = None
    if log_dir is not None and not _is_test():
        file_path = _open_log_file(log_dir)
        handlers.append((logging.FileHandler(file_path), False))

    for handler, colors in handlers:
        handler.setFormatter(_build_formatter(json_mode=settings.json_mode, colors=colors))
        root_logger.addHandler(handler)

    return file_path
