"""
Reserve Delivery Core

Database access, the outbox engine and the channel-specific handlers.
"""

from . import database
from . import outbox

__all__ = ["database", "outbox"]
