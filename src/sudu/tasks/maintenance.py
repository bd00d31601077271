"""Maintenance background tasks for cleanup operations."""

import logging
from typing import Any

from sudu.database import get_session_context
from sudu.services.notifications import NotificationChannel
from sudu.services.store import CredentialStore
from sudu.services.telegram_link import TelegramLinkProtocol

logger = logging.getLogger(__name__)

# Timeout for maintenance tasks (1 minute)
MAINTENANCE_TIMEOUT_SECONDS = 60


async def sweep_pending_registrations(_ctx: dict[str, Any]) -> dict[str, Any]:
    """Delete pending registrations whose link code has expired.

    Only rows already expired at delete time are removed, so a code
    confirmed concurrently is either promoted or swept, never both.

    Returns:
        Dict with the number of deleted rows
    """
    async with get_session_context() as session:
        protocol = TelegramLinkProtocol(CredentialStore(session), NotificationChannel())
        deleted = await protocol.sweep_expired_pending()

    logger.info(f"Pending registration sweep finished: {deleted} deleted")
    return {"deleted": deleted}
