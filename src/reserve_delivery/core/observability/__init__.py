"""
Observability Module

Provides tracing, metrics collection, and structured logging for the
delivery workers and the admin API.
"""

from .tracing import (
    init_tracing,
    get_tracer,
    get_current_span,
    get_trace_id,
    create_span,
)
from .metrics import (
    init_metrics,
    record_counter,
    record_histogram,
)
from .logging import configure_logging, StructuredFormatter

__all__ = [
    # Tracing
    "init_tracing",
    "get_tracer",
    "get_current_span",
    "get_trace_id",
    "create_span",
    # Metrics
    "init_metrics",
    "record_counter",
    "record_histogram",
    # Logging
    "configure_logging",
    "StructuredFormatter",
]
