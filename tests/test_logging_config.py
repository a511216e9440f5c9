from __future__ import annotations

import json
import logging

from docchat.logging_config import AUDIT_LOGGER_NAME, MinimalJSONFormatter, configure_logging
from docchat.telemetry import log_event


def _record(msg, **extra) -> logging.LogRecord:
    record = logging.LogRecord("docchat.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_dict_messages_are_merged_into_the_json_line() -> None:
    line = MinimalJSONFormatter().format(_record({"step": "retriever.search", "document_id": "doc-1"}))

    payload = json.loads(line)
    assert payload["step"] == "retriever.search"
    assert payload["document_id"] == "doc-1"
    assert payload["level"] == "INFO"
    assert payload["module"] == "docchat.test"
    assert payload["ts"].endswith("Z")


def test_plain_messages_and_extras() -> None:
    payload = json.loads(MinimalJSONFormatter().format(_record("hello", request_id="r1")))

    assert payload["message"] == "hello"
    assert payload["request_id"] == "r1"


def test_log_event_attaches_exception_text(caplog) -> None:
    caplog.set_level(logging.INFO, logger="docchat.telemetry")
    try:
        raise ValueError("bad payload")
    except ValueError as exc:
        log_event(None, "embeddings.compute", level="error", document_id="doc-1", exc=exc, count=2)

    event = caplog.records[-1].msg
    assert event["step"] == "embeddings.compute"
    assert event["document_id"] == "doc-1"
    assert event["count"] == 2
    assert "ValueError: bad payload" in event["exc"]
    assert caplog.records[-1].levelno == logging.ERROR


def test_audit_logger_writes_json_file(tmp_path) -> None:
    configure_logging(level="INFO", log_dir=tmp_path)

    logging.getLogger(AUDIT_LOGGER_NAME).info({"event": "query", "document_id": "doc-1"})
    for handler in logging.getLogger(AUDIT_LOGGER_NAME).handlers:
        handler.flush()

    lines = (tmp_path / "audit.log").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["event"] == "query"
