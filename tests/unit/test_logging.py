import json
import logging
import sys

from delayhook.logging import (
    CallbackLogContext,
    JSONFormatter,
    callback_context,
    setup_logging,
)


def make_record(message: str = "executing", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="delayhook.core.scheduler",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_without_context():
    data = json.loads(JSONFormatter().format(make_record()))

    assert data["message"] == "executing"
    assert data["level"] == "INFO"
    assert data["logger_name"] == "delayhook.core.scheduler"
    assert data["callback"] is None


def test_json_formatter_includes_callback_context_and_extras():
    with CallbackLogContext("42", "https://example.com/hook") as context:
        context.next_attempt()
        context.next_attempt()
        data = json.loads(JSONFormatter().format(make_record(status=503)))

    assert data["callback"] == {
        "callback_id": "42",
        "remote_url": "https://example.com/hook",
        "attempt": 2,
    }
    assert data["extra_fields"] == {"status": 503}
    assert callback_context.get() is None


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = make_record()
        record.exc_info = sys.exc_info()

    data = json.loads(JSONFormatter().format(record))
    assert data["exception"]["type"] == "RuntimeError"
    assert data["exception"]["message"] == "boom"
    assert data["exception"]["traceback"]


def test_setup_logging_structured_with_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / "logs" / "delayhook.log"
    try:
        setup_logging("DEBUG", "structured", str(log_file))

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert all(isinstance(h.formatter, JSONFormatter) for h in root.handlers)
        assert log_file.parent.exists()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
