"""
Tests for structured logging and metric helpers.
"""

import json
import logging

from reserve_delivery.core.observability import (
    StructuredFormatter,
    create_span,
    record_counter,
    record_histogram,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="reserve_delivery.core.outbox.dispatcher",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Delivered %s record(s)",
        args=(3,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    def test_json_fields(self):
        output = json.loads(StructuredFormatter("reserve-webhooks-worker").format(make_record()))

        assert output["level"] == "INFO"
        assert output["service"] == "reserve-webhooks-worker"
        assert output["logger"] == "reserve_delivery.core.outbox.dispatcher"
        assert output["message"] == "Delivered 3 record(s)"
        assert output["timestamp"].endswith("Z")

    def test_extra_fields_are_included(self):
        """Cycle correlation fields passed through extra= show up."""
        record = make_record(request_id="a1b2c3d4", worker="webhooks", since=object())
        output = json.loads(StructuredFormatter().format(record))

        assert output["request_id"] == "a1b2c3d4"
        assert output["worker"] == "webhooks"
        assert isinstance(output["since"], str)


class TestMetricsWithoutProvider:
    """Helpers are safe to call before init_metrics."""

    def test_record_calls_are_noops(self):
        record_counter("outbox_delivered_total", 1, {"worker": "notifications"})
        record_histogram("outbox_delivery_duration_seconds", 0.2)
        record_counter("unknown_metric")

    def test_span_context_manager(self):
        with create_span("outbox.cycle", {"outbox.worker": "webhooks"}) as span:
            span.set_attribute("outbox.claimed", 0)
