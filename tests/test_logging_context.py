from __future__ import annotations

import json
import logging
from collections.abc import Generator

import pytest

from sas_crm.context import get_correlation_id, reset_correlation_id, set_correlation_id
from sas_crm.logging import CorrelationIdFilter, JsonLogFormatter, configure_logging


def _record(msg: str = "crm.entity.created", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="sas_crm.crm",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_json_with_known_fields_only() -> None:
    record = _record(user_id="u1", entity_type="Deal", entity_id="d1", password="hunter2")
    record.correlation_id = "req-1"

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "sas_crm.crm"
    assert payload["msg"] == "crm.entity.created"
    assert payload["correlation_id"] == "req-1"
    assert payload["fields"] == {"user_id": "u1", "entity_type": "Deal", "entity_id": "d1"}
    assert "ts" in payload


def test_formatter_truncates_long_errors() -> None:
    payload = json.loads(JsonLogFormatter().format(_record("db.item.conflict", error="x" * 2000)))

    assert len(payload["fields"]["error"]) == 500


def test_filter_attaches_current_correlation_id() -> None:
    token = set_correlation_id("req-42")
    try:
        record = _record()
        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "req-42"
    finally:
        reset_correlation_id(token)

    assert get_correlation_id() is None


def test_filter_keeps_explicit_correlation_id() -> None:
    token = set_correlation_id("req-ambient")
    try:
        record = _record()
        record.correlation_id = "req-explicit"
        CorrelationIdFilter().filter(record)
    finally:
        reset_correlation_id(token)

    assert record.correlation_id == "req-explicit"


@pytest.fixture()
def root_logger() -> Generator[logging.Logger, None, None]:
    root = logging.getLogger()
    handlers, filters, level = root.handlers[:], root.filters[:], root.level
    factory = logging.getLogRecordFactory()
    try:
        yield root
    finally:
        root.handlers[:] = handlers
        root.filters[:] = filters
        root.setLevel(level)
        logging.setLogRecordFactory(factory)
        if hasattr(root, "_sas_crm_configured"):
            del root._sas_crm_configured  # type: ignore[attr-defined]


def test_configure_logging_installs_json_stdout_handler(
    root_logger: logging.Logger,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    configure_logging()
    configure_logging()

    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, JsonLogFormatter)

    token = set_correlation_id("req-7")
    try:
        logging.getLogger("sas_crm.crm").debug("crm.entity.updated", extra={"entity_type": "Tag", "entity_id": "t1"})
    finally:
        reset_correlation_id(token)

    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["level"] == "DEBUG"
    assert payload["correlation_id"] == "req-7"
    assert payload["fields"] == {"entity_type": "Tag", "entity_id": "t1"}


def test_configured_record_factory_attaches_correlation_id(root_logger: logging.Logger) -> None:
    configure_logging()

    token = set_correlation_id("req-factory")
    try:
        record = logging.getLogRecordFactory()("sas_crm.db", logging.INFO, __file__, 1, "db.item.conflict", (), None)
    finally:
        reset_correlation_id(token)

    assert record.correlation_id == "req-factory"
