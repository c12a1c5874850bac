"""
OpenTelemetry Tracing

Each dispatcher cycle runs in an ``outbox.cycle`` span and every record
attempt in a nested ``outbox.deliver`` span. Without init_tracing() the
API's no-op tracer is used, so spans cost nothing in tests.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode

from ... import __version__

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "reserve_delivery"

_tracer: Optional[trace.Tracer] = None


def init_tracing(
    service_name: str,
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Install a TracerProvider for this process.

    Spans go to the OTLP collector at ``otlp_endpoint`` (gRPC, insecure)
    and/or stdout when ``console_export`` is set. With neither, spans are
    recorded for log correlation but not exported.
    """
    global _tracer

    provider = TracerProvider(resource=Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: __version__,
    }))

    exporters = []
    if otlp_endpoint:
        exporters.append(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
    if console_export:
        exporters.append(ConsoleSpanExporter())
    for exporter in exporters:
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(INSTRUMENTATION_NAME, __version__)

    logger.info(
        f"Tracing enabled for {service_name} "
        f"(otlp={otlp_endpoint or 'off'}, console={console_export})"
    )
    return _tracer


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(INSTRUMENTATION_NAME, __version__)
    return _tracer


def get_current_span() -> Span:
    return trace.get_current_span()


def get_trace_id() -> Optional[str]:
    """Hex trace id of the active span, or None outside a recorded span."""
    context = get_current_span().get_span_context()
    if not context.is_valid:
        return None
    return format(context.trace_id, "032x")


@contextmanager
def create_span(name: str, attributes: Optional[Mapping[str, Any]] = None) -> Iterator[Span]:
    """
    Run the block inside a new span.

    An exception escaping the block marks the span as failed before it
    propagates.

    Usage:
        with create_span("outbox.deliver", {"outbox.id": record.id}) as span:
            span.set_attribute("outbox.outcome", "delivered")
    """
    with get_tracer().start_as_current_span(
        name,
        attributes=dict(attributes or {}),
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, f"{type(e).__name__}: {e}"))
            raise
