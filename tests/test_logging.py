"""Tests for the logging setup."""

import json
import logging

from compose_deploy.utils.logging import (
    ConsoleFormatter,
    JSONFormatter,
    LogContext,
    get_logger,
    setup_logging,
)


def make_record(message, **fields):
    record = logging.LogRecord("compose_deploy.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in fields.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_structured_fields():
    record = make_record("Service is healthy", stack="goforms", service="api", operation="health")

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Service is healthy"
    assert data["level"] == "INFO"
    assert data["stack"] == "goforms"
    assert data["service"] == "api"
    assert data["operation"] == "health"
    assert data["timestamp"].endswith("Z")
    assert "duration" not in data


def test_console_formatter_prefixes_service():
    line = ConsoleFormatter(use_color=False).format(make_record("Service is healthy", service="api"))
    assert line.endswith("INFO     [api] Service is healthy")


def test_log_context_sets_and_restores_fields(caplog):
    caplog.set_level(logging.INFO)
    logger = get_logger("compose_deploy.test")

    with LogContext(logger, stack="goforms", operation="deploy"):
        logger.info("inside")
    logger.info("outside")

    inside, outside = caplog.records
    assert inside.stack == "goforms"
    assert inside.operation == "deploy"
    assert not hasattr(outside, "stack")


def test_setup_logging_writes_json_lines(tmp_path):
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        setup_logging("warning", str(tmp_path / "logs"))
        get_logger("compose_deploy.test").debug("debug goes to the file only")
        added = [h for h in root.handlers if h not in handlers]
        for handler in added:
            handler.flush()
    finally:
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    files = list((tmp_path / "logs").glob("compose-deploy-*.jsonl"))
    assert len(files) == 1
    entry = json.loads(files[0].read_text().splitlines()[-1])
    assert entry["message"] == "debug goes to the file only"
    assert entry["level"] == "DEBUG"
