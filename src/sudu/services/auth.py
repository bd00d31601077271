"""Authentication errors shared by the verification, recovery and link protocols.

Every subclass of ``AuthError`` is a user-facing rejection: the API turns
it into a ``{"success": false, "error": message}`` response with the
error's ``status_code``. Store faults are not AuthErrors and surface as a
generic 500.
"""

from fastapi import status


class AuthError(Exception):
    """Authentication error."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateEmailError(AuthError):
    default_message = "A user with this email already exists"


class InvalidTokenError(AuthError):
    """Verification or reset token is wrong, already used, or expired."""

    default_message = "Invalid or expired link"


class InvalidCodeError(AuthError):
    """One-time code is unknown, already used, or expired."""

    default_message = "Invalid or expired code"


class AlreadyLinkedError(AuthError):
    default_message = "Telegram is already linked to this account"


class AlreadyBoundError(AuthError):
    default_message = "This Telegram account is already linked to another user"


class UserNotFoundError(AuthError):
    default_message = "User with this email was not found"


class NotLinkedError(AuthError):
    default_message = "Telegram is not linked to this account"


class UnverifiedEmailError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Please verify your email before signing in"


class WrongCredentialsError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class TransportError(AuthError):
    """A message the user depends on could not be delivered."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to deliver the message, please try again later"
