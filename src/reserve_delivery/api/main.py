"""
Admin API entry point.

Usage:
    uvicorn reserve_delivery.api.main:app --port 8090
"""

from fastapi import FastAPI

from ..config import load_settings
from ..core.observability import configure_logging, init_metrics, init_tracing
from .app import create_app


def _create_default_app() -> FastAPI:
    settings = load_settings()
    observability = settings.observability
    configure_logging(
        level=observability.log_level,
        structured=observability.log_structured,
        service_name="reserve-admin-api",
    )
    init_tracing(service_name="reserve-admin-api", otlp_endpoint=observability.otlp_endpoint)
    init_metrics(service_name="reserve-admin-api", otlp_endpoint=observability.otlp_endpoint)
    return create_app(settings)


app = _create_default_app()
