"""Authentication endpoints.

Protocol rejections (``AuthError``) propagate to the app's exception
handler, which renders them as ``{"success": false, "error": ...}``.
"""

import logging
from typing import Annotated

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter
from fastapi.responses import RedirectResponse
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from sudu.api.deps import RecoveryDep, TelegramLinkDep, VerificationDep
from sudu.config import settings
from sudu.models.user import UserRead
from sudu.services.auth import InvalidCodeError, InvalidTokenError
from sudu.services.recovery import RecoveryChannel
from sudu.services.telegram_link import LinkOutcome

logger = logging.getLogger(__name__)

router = APIRouter()

PASSWORD_MAX_LENGTH = 72


def check_email(value: str) -> str:
    """Reject malformed addresses; the value is kept exactly as sent."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValueError(f"value is not a valid email address: {e}") from e
    return value


Email = Annotated[str, Field(max_length=255), AfterValidator(check_email)]


class RegisterRequest(BaseModel):
    """Request body for registration."""

    full_name: str = Field(min_length=1, max_length=255)
    email: Email
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class EmailRequest(BaseModel):
    """Request body carrying only an email."""

    email: Email


class LoginRequest(BaseModel):
    """Request body for login."""

    email: Email
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class ResetPasswordRequest(BaseModel):
    """Reset with an emailed token, or with an email plus Telegram code."""

    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    email: Email | None = None
    code: str | None = None
    new_password: str = Field(
        alias="newPassword", min_length=1, max_length=PASSWORD_MAX_LENGTH
    )

    @model_validator(mode="after")
    def check_secret(self) -> "ResetPasswordRequest":
        if not self.token and not (self.email and self.code):
            raise ValueError("Provide either token or email and code")
        return self


class ConfirmLinkRequest(BaseModel):
    """Request body sent by the bot to confirm a link code."""

    model_config = ConfigDict(populate_by_name=True)

    link_code: str = Field(alias="linkCode", min_length=1, max_length=6)
    telegram_chat_id: int


class MessageResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str


class RegisterResponse(MessageResponse):
    """Registration response; link fields are set in telegram mode."""

    model_config = ConfigDict(populate_by_name=True)

    link_code: str | None = Field(default=None, alias="linkCode")
    expires_in: int | None = Field(default=None, alias="expiresIn")
    instructions: str | None = None


class LoginResponse(MessageResponse):
    user: UserRead


class LinkCodeResponse(BaseModel):
    """Link code for the user to send to the bot."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    link_code: str = Field(alias="linkCode")
    expires_in: int = Field(alias="expiresIn")
    instructions: str


class ConfirmLinkResponse(MessageResponse):
    email: str
    name: str
    already_linked: bool = False


class CheckLinkResponse(BaseModel):
    linked: bool


@router.post("/register", response_model=RegisterResponse, response_model_exclude_none=True)
async def register(
    request: RegisterRequest,
    verification: VerificationDep,
    telegram_link: TelegramLinkDep,
):
    """
    Register a new account.

    In ``email`` mode the account is created unverified and a verification
    link is emailed. In ``telegram`` mode only a pending registration is
    stored; the account is created when the returned code reaches the bot.
    """
    if settings.registration_mode == "telegram":
        link = await telegram_link.register_pending(
            request.full_name, request.email, request.password
        )
        return RegisterResponse(
            message="Almost done! Send the code to our Telegram bot to finish registration",
            link_code=link.code,
            expires_in=link.expires_in,
            instructions=link.instructions,
        )

    result = await verification.register(request.full_name, request.email, request.password)
    if not result.email_sent:
        return RegisterResponse(
            message=(
                "Registration successful, but the verification email could not be sent. "
                "Request a new one later."
            )
        )
    return RegisterResponse(message="Registration successful! Check your email to confirm it.")


@router.get("/verify-email")
async def verify_email(verification: VerificationDep, token: str = ""):
    """Consume a verification link and redirect to the result page."""
    try:
        await verification.confirm_verification(token)
    except InvalidTokenError:
        return RedirectResponse("/verification-failed.html", status_code=303)
    return RedirectResponse("/verification-success.html", status_code=303)


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(request: EmailRequest, verification: VerificationDep):
    """Re-send the verification link. Does not reveal whether the account exists."""
    await verification.resend_verification(request.email)
    return MessageResponse(
        message="If the account exists and is not verified, a new link has been sent"
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(request: EmailRequest, recovery: RecoveryDep):
    """Email a reset link. The response is the same whether or not the account exists."""
    await recovery.request_reset(request.email, RecoveryChannel.EMAIL)
    return MessageResponse(message="If the email exists, instructions have been sent")


@router.post("/request-password-reset", response_model=MessageResponse)
async def request_password_reset(request: EmailRequest, recovery: RecoveryDep):
    """Send a recovery code to the Telegram chat bound to the account."""
    await recovery.request_reset(request.email, RecoveryChannel.TELEGRAM)
    return MessageResponse(message="A recovery code has been sent to your Telegram")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(request: ResetPasswordRequest, recovery: RecoveryDep):
    """Set a new password with a reset token or a Telegram recovery code."""
    if request.token:
        await recovery.reset_with_token(request.token, request.new_password)
    elif request.email and request.code:
        await recovery.reset_with_code(request.email, request.code, request.new_password)
    else:
        raise InvalidCodeError()
    return MessageResponse(message="Password changed successfully")


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, verification: VerificationDep):
    """Check credentials and return the user."""
    user = await verification.login(request.email, request.password)
    return LoginResponse(message="Signed in!", user=UserRead.from_user(user))


@router.post("/request-telegram-link", response_model=LinkCodeResponse)
async def request_telegram_link(request: EmailRequest, telegram_link: TelegramLinkDep):
    """Issue a code that links the account to a Telegram chat."""
    link = await telegram_link.request_link(request.email)
    return LinkCodeResponse(
        link_code=link.code,
        expires_in=link.expires_in,
        instructions=link.instructions,
    )


@router.post("/confirm-telegram-link", response_model=ConfirmLinkResponse)
async def confirm_telegram_link(request: ConfirmLinkRequest, telegram_link: TelegramLinkDep):
    """Confirm a link code received by the bot from ``telegram_chat_id``."""
    result = await telegram_link.confirm_link(request.link_code, request.telegram_chat_id)
    already_linked = result.outcome == LinkOutcome.ALREADY_LINKED
    if result.outcome == LinkOutcome.NEW_USER_LINKED:
        message = "Registration completed and Telegram linked"
    elif already_linked:
        message = "Telegram is already linked to this account"
    else:
        message = "Telegram linked successfully"
    return ConfirmLinkResponse(
        message=message,
        email=result.user.email,
        name=result.user.name,
        already_linked=already_linked,
    )


@router.post("/check-telegram-link", response_model=CheckLinkResponse)
async def check_telegram_link(request: EmailRequest, telegram_link: TelegramLinkDep):
    """Whether the account has a Telegram chat bound."""
    return CheckLinkResponse(linked=await telegram_link.check_link(request.email))
