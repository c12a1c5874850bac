"""
Admin API

Operator endpoints over the outbox tables. Run with
``uvicorn reserve_delivery.api.main:app``.
"""

from .app import create_app

__all__ = ["create_app"]
