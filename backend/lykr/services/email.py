"""Transactional email via the Resend HTTP API.

Without a configured API key (development) the message is logged at
info level instead of sent, so OTP codes and reset links stay usable
locally.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from lykr.config import settings
from lykr.i18n import Translator

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


async def send_email(*, to_email: str, subject: str, text: str) -> bool:
    """Send a plain-text email. Returns False if delivery failed."""
    if not settings.resend_api_key:
        logger.info("[DEV] Email to %s: %s\n%s", to_email, subject, text)
        return True

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": subject,
                    "text": text,
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to send email to %s", to_email, exc_info=True)
        return False
    return True


async def send_otp_email(to_email: str, code: str, t: Translator) -> bool:
    return await send_email(
        to_email=to_email,
        subject=t("auth.otpEmailSubject"),
        text=t("auth.otpEmailBody", code=code),
    )


def reset_link(token: str, locale: str) -> str:
    query = urlencode({"token": token}, quote_via=quote)
    return f"{settings.frontend_url}/{locale}/reset-password?{query}"


async def send_reset_link_email(to_email: str, token: str, t: Translator) -> bool:
    return await send_email(
        to_email=to_email,
        subject=t("auth.resetEmailSubject"),
        text=t("auth.resetEmailBody", url=reset_link(token, t.locale)),
    )
