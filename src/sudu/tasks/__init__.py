"""Background task processing."""

from sudu.tasks.maintenance import sweep_pending_registrations
from sudu.tasks.queue import get_queue_settings, queue

__all__ = ["get_queue_settings", "queue", "sweep_pending_registrations"]
