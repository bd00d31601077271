"""Email delivery for verification and password reset links.

``EmailService.send`` never raises: a backend failure is logged and
reported as ``False`` so the caller decides whether it matters.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage

import aiosmtplib

from sudu.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str | None = None

    def to_mime(self, sender: str) -> EmailMessage:
        """Build the MIME message; with a text part it is multipart/alternative."""
        message = EmailMessage()
        message["From"] = sender
        message["To"] = self.to
        message["Subject"] = self.subject
        if self.text:
            message.set_content(self.text)
            message.add_alternative(self.html, subtype="html")
        else:
            message.set_content(self.html, subtype="html")
        return message


class EmailBackend(ABC):
    """Delivers a single email, raising on failure."""

    @abstractmethod
    async def deliver(self, email: OutgoingEmail) -> None: ...


class ConsoleEmailBackend(EmailBackend):
    """Logs emails instead of sending them (development and tests)."""

    async def deliver(self, email: OutgoingEmail) -> None:
        rule = "=" * 60
        logger.info(
            f"\n{rule}\nEMAIL (console backend - not sent)\n"
            f"To: {email.to}\nSubject: {email.subject}\n{rule}\n"
            f"{email.text or email.html}\n{rule}"
        )


class SMTPEmailBackend(EmailBackend):
    """SMTP delivery, e.g. Gmail with an app password."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        # Gmail rewrites From to the authenticated account anyway
        self.from_address = from_address or username

    async def deliver(self, email: OutgoingEmail) -> None:
        await aiosmtplib.send(
            email.to_mime(self.from_address),
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            start_tls=self.use_tls,
        )
        logger.info(f"Email sent via SMTP to {email.to}")


def get_email_backend() -> EmailBackend:
    """Backend selected by ``settings.email_backend``."""
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    if settings.email_backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
        )
    raise ValueError(f"Unknown email backend: {settings.email_backend}")


class EmailService:
    """Sends emails through a lazily configured backend."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        email = OutgoingEmail(to=to, subject=subject, html=html, text=text)
        try:
            await self.backend.deliver(email)
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {e!r}")
            return False
        return True
