from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from personal_youtube.config import AppSettings

LOG_FILE_NAME = "personal-youtube.log"
ROOT_LOGGER_NAME = "personal_youtube"
REDACTED = "[redacted]"
SENSITIVE_EVENT_KEYS = frozenset(
    {"access_token", "authorization_code", "client_secret", "code", "sesskey", "state"}
)
# Third-party loggers that are noisy at INFO for a per-request discovery client.
QUIET_LIBRARY_LOGGERS: tuple[str, ...] = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
)


def configure_application_logging(settings: AppSettings) -> Path:
    """Route the `personal_youtube` logger tree to stdout and a JSON file under `log_dir`.

    Stdlib records pass through structlog's `ProcessorFormatter`, so request context bound
    with `structlog.contextvars` shows up in both outputs.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(logging.DEBUG)
    app_logger.propagate = False
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setLevel(_resolve_log_level(settings.log_level))
    console_handler.setFormatter(
        _build_formatter(
            structlog.dev.ConsoleRenderer(colors=_stream_supports_color(sys.stdout)),
        )
    )

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        _build_formatter(
            structlog.processors.JSONRenderer(sort_keys=True),
            extra_processors=[_add_record_location, structlog.processors.format_exc_info],
        )
    )

    app_logger.addHandler(console_handler)
    app_logger.addHandler(file_handler)

    for library_logger in QUIET_LIBRARY_LOGGERS:
        logging.getLogger(library_logger).setLevel(logging.WARNING)

    app_logger.info(
        "logging configured console_level=%s path=%s",
        logging.getLevelName(console_handler.level),
        log_file,
    )
    return log_file


def _resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelNamesMapping().get(raw_level.strip().upper())
    return resolved if resolved is not None else logging.INFO


def _build_formatter(
    renderer: Processor,
    *,
    extra_processors: list[Processor] | None = None,
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            _redact_sensitive_values,
        ],
        processors=[
            *(extra_processors or []),
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _redact_sensitive_values(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    for key in SENSITIVE_EVENT_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def _add_record_location(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except (OSError, ValueError, RuntimeError):
        return False
