"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sudu.database import get_session
from sudu.services.notifications import NotificationChannel, get_notification_channel
from sudu.services.recovery import RecoveryProtocol
from sudu.services.store import CredentialStore
from sudu.services.telegram_link import TelegramLinkProtocol
from sudu.services.verification import VerificationProtocol

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]
ChannelDep = Annotated[NotificationChannel, Depends(get_notification_channel)]


def get_store(session: SessionDep) -> CredentialStore:
    """Credential store bound to the request's session."""
    return CredentialStore(session)


StoreDep = Annotated[CredentialStore, Depends(get_store)]


def get_verification(store: StoreDep, channel: ChannelDep) -> VerificationProtocol:
    return VerificationProtocol(store, channel)


def get_recovery(store: StoreDep, channel: ChannelDep) -> RecoveryProtocol:
    return RecoveryProtocol(store, channel)


def get_telegram_link(store: StoreDep, channel: ChannelDep) -> TelegramLinkProtocol:
    return TelegramLinkProtocol(store, channel)


# Type aliases for protocol dependencies
VerificationDep = Annotated[VerificationProtocol, Depends(get_verification)]
RecoveryDep = Annotated[RecoveryProtocol, Depends(get_recovery)]
TelegramLinkDep = Annotated[TelegramLinkProtocol, Depends(get_telegram_link)]
