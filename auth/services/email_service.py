"""Email delivery service."""

from __future__ import annotations

import logging
from html import escape

import httpx

from auth.config import AuthConfig

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


def _layout(title: str, body: str) -> str:
    return (
        '<div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif;">'
        f'<h1 style="color: #667eea;">{escape(AuthConfig.EMAIL_FROM_NAME)}</h1>'
        f"<h2>{escape(title)}</h2>"
        f"{body}"
        '<p style="color: #999; font-size: 12px;">If you did not request this, you can ignore this email.</p>'
        "</div>"
    )


class EmailService:
    async def send_verification_email(self, email: str, code: str) -> bool:
        html = _layout(
            "Your verification code",
            "<p>Thanks for signing up. Use this code to finish your registration:</p>"
            f'<p style="font-size: 32px; font-weight: bold; letter-spacing: 8px;">{escape(code)}</p>'
            f"<p>The code expires in {AuthConfig.VERIFICATION_CODE_EXPIRY_MINUTES} minutes.</p>",
        )
        return await self._send(email, "Your verification code", html, preview=code)

    async def send_password_reset_email(self, email: str, token: str) -> bool:
        link = f"{AuthConfig.FRONTEND_URL}/reset-password?token={token}"
        html = _layout(
            "Reset your password",
            f'<p><a href="{escape(link)}">Choose a new password</a></p>'
            f"<p>This link expires in {AuthConfig.PASSWORD_RESET_EXPIRY_MINUTES} minutes.</p>",
        )
        return await self._send(email, "Reset your password", html, preview=link)

    async def _send(self, email: str, subject: str, html: str, preview: str) -> bool:
        if not AuthConfig.RESEND_API_KEY:
            # Development mode: no provider configured
            logger.warning("Email provider not configured; message for %s: %s", email, preview)
            return True
        if AuthConfig.EMAIL_PROVIDER != "resend":
            logger.error("Unsupported email provider %r", AuthConfig.EMAIL_PROVIDER)
            return False

        payload = {
            "from": f"{AuthConfig.EMAIL_FROM_NAME} <{AuthConfig.EMAIL_FROM_ADDRESS}>",
            "to": [email],
            "subject": f"{subject} - {AuthConfig.EMAIL_FROM_NAME}",
            "html": html,
        }
        headers = {"Authorization": f"Bearer {AuthConfig.RESEND_API_KEY}"}

        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.post(RESEND_API_URL, headers=headers, json=payload)
        except httpx.HTTPError:
            logger.exception("Email delivery to %s failed", email)
            return False

        if response.status_code != 200:
            logger.error("Email provider rejected message to %s: %s", email, response.status_code)
            return False
        return True
