from __future__ import annotations

import json
import logging
from pathlib import Path

from structlog.contextvars import bind_contextvars, reset_contextvars

from personal_youtube.config import AppSettings
from personal_youtube.logging_config import (
    _stream_supports_color,
    configure_application_logging,
)


def test_configure_application_logging_writes_json_file(tmp_path: Path) -> None:
    settings = AppSettings(
        data_dir=tmp_path,
        db_path=tmp_path / "state.db",
        client_id="client-id",
        client_secret="client-secret",
        log_dir=tmp_path / "logs",
        log_level="INFO",
    )

    log_file = configure_application_logging(settings)
    context_tokens = bind_contextvars(http_request_id="req-1", repository_id="7")
    try:
        logging.getLogger("personal_youtube.test").info("runtime-log-test page=%s", 2)
    finally:
        reset_contextvars(**context_tokens)

    app_logger = logging.getLogger("personal_youtube")
    assert app_logger.propagate is False
    assert len(app_logger.handlers) == 2
    assert {handler.level for handler in app_logger.handlers} == {logging.INFO, logging.DEBUG}
    for handler in app_logger.handlers:
        handler.flush()

    events = [
        json.loads(line)
        for line in log_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    runtime_event = next(event for event in events if event["event"] == "runtime-log-test page=2")
    assert runtime_event["logger"] == "personal_youtube.test"
    assert runtime_event["level"] == "info"
    assert runtime_event["http_request_id"] == "req-1"
    assert runtime_event["repository_id"] == "7"
    assert runtime_event["func_name"] == "test_configure_application_logging_writes_json_file"
    assert runtime_event["lineno"]
    assert "client-secret" not in log_file.read_text(encoding="utf-8")


def test_bound_credentials_are_redacted(tmp_path: Path) -> None:
    settings = AppSettings(data_dir=tmp_path, log_dir=tmp_path / "logs", log_level="INFO")
    log_file = configure_application_logging(settings)

    context_tokens = bind_contextvars(access_token="ya29.secret", sesskey="KEY-1", page="2")
    try:
        logging.getLogger("personal_youtube.oauth").info("callback-handled")
    finally:
        reset_contextvars(**context_tokens)
    for handler in logging.getLogger("personal_youtube").handlers:
        handler.flush()

    contents = log_file.read_text(encoding="utf-8")
    event = next(
        json.loads(line)
        for line in contents.splitlines()
        if line.strip() and json.loads(line)["event"] == "callback-handled"
    )
    assert event["access_token"] == "[redacted]"
    assert event["sesskey"] == "[redacted]"
    assert event["page"] == "2"
    assert "ya29.secret" not in contents
    assert logging.getLogger("googleapiclient.discovery_cache").level == logging.WARNING


def test_reconfiguring_replaces_handlers(tmp_path: Path) -> None:
    settings = AppSettings(data_dir=tmp_path, log_dir=tmp_path / "logs", log_level="debug")

    configure_application_logging(settings)
    configure_application_logging(settings)

    assert len(logging.getLogger("personal_youtube").handlers) == 2


def test_stream_supports_color_detects_tty() -> None:
    class _TTY:
        def isatty(self) -> bool:
            return True

    class _Broken:
        def isatty(self) -> bool:
            raise RuntimeError("boom")

    assert _stream_supports_color(_TTY()) is True
    assert _stream_supports_color(_Broken()) is False
    assert _stream_supports_color(object()) is False
