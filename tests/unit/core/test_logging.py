"""Unit tests for the contextual logger and the JSON formatter."""

import json
import logging

from billsync.core.logging import ContextualLogger, JSONFormatter, LoggerConfigurator


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="billsync.test",
        level=logging.INFO,
        pathname="/srv/billsync/platform/billing/webhook_handler.py",
        lineno=10,
        msg="Subscription %s",
        args=("active",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_with_context_accumulates_dimensions():
    """Dimensions from each level of context are merged."""
    base = ContextualLogger(logging.getLogger("billsync.test"), dimensions={"component": "x"})

    log = base.with_context(event_id="evt_1").with_context(subscription_id="sub_1")

    _, kwargs = log.process("msg", {})
    assert kwargs["extra"]["custom_dimensions"] == {
        "component": "x",
        "event_id": "evt_1",
        "subscription_id": "sub_1",
    }
    assert base.dimensions == {"component": "x"}


def test_configured_logger_keeps_message_and_dimensions():
    """Configured loggers pass messages through and tag them with their dimensions."""
    log = LoggerConfigurator.configure_logger(
        "billsync.test.configured", dimensions={"component": "webhook_ingress"}
    )

    msg, kwargs = log.with_context(event_id="evt_1").process("Event queued", {})

    assert msg == "Event queued"
    assert kwargs["extra"]["custom_dimensions"] == {
        "component": "webhook_ingress",
        "event_id": "evt_1",
    }


def test_json_formatter():
    """Records are rendered as one JSON object with the dotted module path."""
    formatter = JSONFormatter()

    entry = json.loads(formatter.format(_record(custom_dimensions={"event_id": "evt_1"})))

    assert entry["message"] == "Subscription active"
    assert entry["level"] == "INFO"
    assert entry["module"] == "billsync.platform.billing.webhook_handler"
    assert entry["custom_dimensions"] == {"event_id": "evt_1"}


def test_json_formatter_stringifies_unserializable_extras():
    """Extra attributes that are not JSON are converted to strings."""
    entry = json.loads(JSONFormatter().format(_record(payload=object())))

    assert entry["payload"].startswith("<object object")
