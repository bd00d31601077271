"""Message templates for emails and Telegram messages."""

from dataclasses import dataclass
from enum import Enum
from html import escape
from typing import Any


class TemplateKind(str, Enum):
    """Kinds of outbound messages."""

    VERIFY_EMAIL = "verify_email"
    PASSWORD_RESET = "password_reset"
    RECOVERY_CODE = "recovery_code"
    LINK_WELCOME = "link_welcome"
    REGISTRATION_WELCOME = "registration_welcome"


SUBJECTS = {
    TemplateKind.VERIFY_EMAIL: "Confirm your email - СУДУ",
    TemplateKind.PASSWORD_RESET: "Password recovery - СУДУ",
}


@dataclass(frozen=True)
class EmailContent:
    """Wording shared by the HTML and plain-text parts of an email."""

    title: str
    intro: str
    link: str
    button: str
    footer: tuple[str, ...]


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def _email_content(kind: TemplateKind, params: dict[str, Any]) -> EmailContent:
    if kind == TemplateKind.VERIFY_EMAIL:
        return EmailContent(
            title="Welcome to СУДУ!",
            intro="To finish registration, please confirm your email address.",
            link=params["link"],
            button="Confirm email",
            footer=("If you did not sign up for СУДУ, you can ignore this email.",),
        )
    if kind == TemplateKind.PASSWORD_RESET:
        return EmailContent(
            title="Password recovery",
            intro="Follow the link below to choose a new password.",
            link=params["link"],
            button="Reset password",
            footer=(
                "If you did not request a password reset, you can ignore this email.",
                f"The link is valid for {params['expires_minutes']} minutes.",
            ),
        )
    raise ValueError(f"Not an email template: {kind}")


def _email_html(content: EmailContent) -> str:
    link = escape(content.link, quote=True)
    footer = "<br>".join(escape(line) for line in content.footer)
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; background: #f8f9fa; padding: 20px;">
    <div style="text-align: center; margin-bottom: 20px;">
        <h2 style="color: #6A5ACD; margin: 0;">СУДУ</h2>
    </div>

    <div style="background: white; padding: 25px; border-radius: 8px; border: 1px solid #e0e0e0;">
        <h3 style="color: #333; margin-top: 0;">{escape(content.title)}</h3>
        <p style="color: #666; line-height: 1.5;">{escape(content.intro)}</p>

        <div style="text-align: center; margin: 25px 0;">
            <a href="{link}"
               style="display: inline-block; padding: 12px 30px; background: #6A5ACD; color: white; text-decoration: none; border-radius: 25px; font-weight: bold;">
                {escape(content.button)}
            </a>
        </div>

        <p style="color: #999; font-size: 12px; text-align: center;">{footer}</p>
    </div>

    <div style="text-align: center; color: #999; font-size: 12px; margin-top: 20px;">
        <p>
            If the button doesn't work, copy and paste this link into your browser:<br>
            <a href="{link}" style="color: #6A5ACD; word-break: break-all;">{link}</a>
        </p>
    </div>
</body>
</html>
"""


def _email_text(content: EmailContent) -> str:
    lines = [content.title, "", content.intro, "", f"{content.button}: {content.link}", ""]
    lines.extend(content.footer)
    return "\n".join(lines)


def render_email(kind: TemplateKind, params: dict[str, Any]) -> RenderedEmail:
    """Subject plus HTML and plain-text alternatives for an email kind."""
    content = _email_content(kind, params)
    return RenderedEmail(
        subject=SUBJECTS[kind],
        html=_email_html(content),
        text=_email_text(content),
    )


def render_template(kind: TemplateKind, params: dict[str, Any]) -> str:
    """Render a message body.

    Email kinds return an HTML document; Telegram kinds return text using
    Telegram's HTML parse mode.
    """
    if kind in SUBJECTS:
        return _email_html(_email_content(kind, params))
    if kind == TemplateKind.RECOVERY_CODE:
        return (
            "🔐 <b>СУДУ password recovery</b>\n\n"
            f"Your code: <code>{escape(params['code'])}</code>\n"
            f"The code is valid for {params['expires_minutes']} minutes.\n\n"
            "If you did not request a reset, ignore this message."
        )
    if kind == TemplateKind.LINK_WELCOME:
        return (
            "✅ Telegram is now linked to your СУДУ account!\n"
            f"📧 {escape(params['email'])}\n"
            f"👤 {escape(params['name'])}\n\n"
            "Password recovery codes will be sent to this chat."
        )
    if kind == TemplateKind.REGISTRATION_WELCOME:
        return (
            "🎉 Registration complete! Welcome to СУДУ.\n"
            f"📧 {escape(params['email'])}\n"
            f"👤 {escape(params['name'])}\n\n"
            "You can now sign in on the website."
        )
    raise ValueError(f"Unknown template: {kind}")
