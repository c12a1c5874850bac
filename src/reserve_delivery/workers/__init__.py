"""
Background Workers

Process entry points for the notification and webhook dispatchers.
"""

from .context import WorkerContext
from .notifications import build_notification_dispatcher
from .runner import WorkerRunner, run_worker
from .webhooks import build_webhook_dispatcher

__all__ = [
    "WorkerContext",
    "WorkerRunner",
    "run_worker",
    "build_notification_dispatcher",
    "build_webhook_dispatcher",
]
