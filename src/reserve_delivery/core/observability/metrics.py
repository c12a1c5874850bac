"""
OpenTelemetry Metrics

Delivery counters and durations for the outbox workers. The instruments are
created by init_metrics(); before that every record_* call is a no-op.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

logger = logging.getLogger(__name__)

# (name, kind, unit, description)
OUTBOX_INSTRUMENTS: Tuple[Tuple[str, str, str, str], ...] = (
    ("outbox_delivered_total", "counter", "1", "Outbox records delivered successfully"),
    ("outbox_retried_total", "counter", "1", "Failed attempts rescheduled with backoff"),
    ("outbox_dead_lettered_total", "counter", "1", "Outbox records moved to FAILED"),
    ("outbox_cycles_skipped_total", "counter", "1", "Cycles skipped while disabled or misconfigured"),
    ("outbox_delivery_duration_seconds", "histogram", "s", "Time spent on one delivery attempt"),
)

_meter: Optional[metrics.Meter] = None
_counters: Dict[str, metrics.Counter] = {}
_histograms: Dict[str, metrics.Histogram] = {}


def _readers(
    otlp_endpoint: Optional[str], console_export: bool, export_interval_ms: int
) -> List[MetricReader]:
    exporters = []
    if otlp_endpoint:
        exporters.append(OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True))
    if console_export:
        exporters.append(ConsoleMetricExporter())
    return [
        PeriodicExportingMetricReader(exporter, export_interval_millis=export_interval_ms)
        for exporter in exporters
    ]


def init_metrics(
    service_name: str,
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
    export_interval_ms: int = 60000,
) -> metrics.Meter:
    """Install a MeterProvider and create the outbox instruments."""
    global _meter

    provider = MeterProvider(
        resource=Resource.create({SERVICE_NAME: service_name}),
        metric_readers=_readers(otlp_endpoint, console_export, export_interval_ms),
    )
    metrics.set_meter_provider(provider)
    _meter = metrics.get_meter(service_name)

    for name, kind, unit, description in OUTBOX_INSTRUMENTS:
        if kind == "counter":
            _counters[name] = _meter.create_counter(name, unit=unit, description=description)
        else:
            _histograms[name] = _meter.create_histogram(name, unit=unit, description=description)

    logger.info(
        f"Metrics enabled for {service_name} "
        f"({len(OUTBOX_INSTRUMENTS)} instruments, otlp={otlp_endpoint or 'off'})"
    )
    return _meter


def record_counter(name: str, value: int = 1, attributes: Optional[Mapping[str, Any]] = None):
    counter = _counters.get(name)
    if counter is not None:
        counter.add(value, dict(attributes or {}))


def record_histogram(name: str, value: float, attributes: Optional[Mapping[str, Any]] = None):
    histogram = _histograms.get(name)
    if histogram is not None:
        histogram.record(value, dict(attributes or {}))
