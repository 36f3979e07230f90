# witar/core/mailer.py
from __future__ import annotations

import logging
from html import escape
from typing import Optional

import httpx

from witar.core.config import settings

logger = logging.getLogger(__name__)

MAIL_TIMEOUT_SECONDS = 10.0


async def send_email(to: str, subject: str, html: str, *, text: Optional[str] = None) -> bool:
    """
    Send one transactional email through Resend.

    Returns False (and logs) when email is not configured or delivery fails;
    callers report the flag instead of failing the request.
    """
    if not settings.RESEND_API_KEY:
        logger.info("Email not configured; skipping %r to %s", subject, to)
        return False

    payload = {"from": settings.MAIL_FROM, "to": [to], "subject": subject, "html": html}
    if text:
        payload["text"] = text

    try:
        async with httpx.AsyncClient(timeout=MAIL_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                settings.RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.exception("Failed to send %r to %s", subject, to)
        return False

    logger.info("Sent %r to %s", subject, to)
    return True


def invitation_link(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/accept-invitation?token={token}"


async def send_invitation_email(
    *,
    to: str,
    company_name: str,
    role: str,
    token: str,
    first_name: Optional[str] = None,
    temporary_password: Optional[str] = None,
) -> bool:
    greeting = f"Hola {first_name}," if first_name else "Hola,"
    link = invitation_link(token)
    lines = [
        f"<p>{escape(greeting)}</p>",
        f"<p>You have been invited to join <strong>{escape(company_name)}</strong> on Witar as {role.lower()}.</p>",
        f'<p><a href="{link}">Accept the invitation</a></p>',
        f"<p>The invitation expires in {settings.INVITE_EXPIRY_DAYS} days.</p>",
    ]
    if temporary_password:
        lines.append(
            f"<p>Your temporary password is <code>{escape(temporary_password)}</code>. "
            "You will be asked to change it after your first login.</p>"
        )
    return await send_email(to, f"Invitation to join {company_name} on Witar", "\n".join(lines))


async def send_welcome_email(*, to: str, company_name: str, full_name: Optional[str] = None) -> bool:
    name = full_name or to
    html = (
        f"<p>Welcome, {escape(name)}!</p>"
        f"<p>{escape(company_name)} is ready. Your {settings.TRIAL_DAYS}-day trial has started.</p>"
    )
    return await send_email(to, "Welcome to Witar", html)


async def send_magic_code_email(*, to: str, code: str, expires_in_minutes: int) -> bool:
    html = f"<p>Your Witar sign-in code is <strong>{code}</strong>. It expires in {expires_in_minutes} minutes.</p>"
    return await send_email(to, "Your Witar sign-in code", html)


def password_reset_link(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/reset-password?token={token}"


async def send_password_reset_email(*, to: str, token: str, expires_in_minutes: int) -> bool:
    html = (
        f'<p>Someone asked to reset the password of your Witar account. <a href="{password_reset_link(token)}">'
        f"Choose a new password</a>.</p>"
        f"<p>The link expires in {expires_in_minutes} minutes. If it was not you, ignore this email.</p>"
    )
    return await send_email(to, "Reset your Witar password", html)
