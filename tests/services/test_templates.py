"""Message template tests."""

import pytest

from sudu.services.templates import SUBJECTS, TemplateKind, render_email, render_template


class TestEmailTemplates:
    def test_verify_email_contains_link(self):
        link = "http://localhost:5000/api/auth/verify-email?token=abc123"
        html = render_template(TemplateKind.VERIFY_EMAIL, {"link": link})

        assert f'href="{link}"' in html
        assert "<!DOCTYPE html>" in html

    def test_password_reset_mentions_lifetime(self):
        html = render_template(
            TemplateKind.PASSWORD_RESET,
            {"link": "http://localhost:5000/reset-password.html?token=t", "expires_minutes": 60},
        )

        assert "reset-password.html?token=t" in html
        assert "60 minutes" in html

    def test_link_is_escaped(self):
        html = render_template(TemplateKind.VERIFY_EMAIL, {"link": 'http://x/?a=1&b="2"'})
        assert "&amp;b=&quot;2&quot;" in html

    def test_subjects_exist_for_email_kinds(self):
        assert set(SUBJECTS) == {TemplateKind.VERIFY_EMAIL, TemplateKind.PASSWORD_RESET}

    def test_render_email_has_plain_text_alternative(self):
        link = "http://localhost:5000/reset-password.html?token=a&b"
        email = render_email(
            TemplateKind.PASSWORD_RESET, {"link": link, "expires_minutes": 60}
        )

        assert email.subject == SUBJECTS[TemplateKind.PASSWORD_RESET]
        assert f"Reset password: {link}" in email.text
        assert "60 minutes" in email.text
        assert "<" not in email.text
        assert "token=a&amp;b" in email.html

    def test_render_email_rejects_telegram_kinds(self):
        with pytest.raises(ValueError, match="Not an email template"):
            render_email(TemplateKind.RECOVERY_CODE, {"code": "1", "expires_minutes": 1})


class TestTelegramTemplates:
    def test_recovery_code(self):
        text = render_template(
            TemplateKind.RECOVERY_CODE, {"code": "123456", "expires_minutes": 10}
        )
        assert "<code>123456</code>" in text
        assert "10 minutes" in text

    @pytest.mark.parametrize(
        "kind", [TemplateKind.LINK_WELCOME, TemplateKind.REGISTRATION_WELCOME]
    )
    def test_welcome_escapes_user_fields(self, kind):
        text = render_template(kind, {"email": "a@example.com", "name": "<b>Eve</b>"})
        assert "a@example.com" in text
        assert "&lt;b&gt;Eve&lt;/b&gt;" in text


def test_unknown_kind_raises():
    with pytest.raises(ValueError, match="Unknown template"):
        render_template("nope", {})  # type: ignore[arg-type]
