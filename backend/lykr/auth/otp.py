"""Email OTP for password recovery, stored on the user record.

Storage:
  The user row holds a single OTP slot (`otp_code`, `otp_expires_at`).
  Issuing a code overwrites whatever was there; a successful verification
  or a detected expiry clears it. A background sweep also clears codes
  that expired without ever being checked.

Flow:
  1. POST /api/auth/otp/send with an email. Unknown emails fail with a
     field error and touch nothing. Otherwise a 6-digit code with a
     10-minute absolute expiry is written and mailed.
  2. POST /api/auth/otp/verify with email + code. Invalid and expired are
     reported separately. Success clears the slot and mints a reset grant.
  3. POST /api/auth/otp/reset-password with email + new password.
"""

import enum
import hmac
import secrets
import string
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.config import settings
from lykr.database import utcnow
from lykr.models.user import User

OTP_LENGTH = settings.otp_length
OTP_EXPIRY = timedelta(seconds=settings.otp_expiry_seconds)


class OTPCheck(str, enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


def generate_otp() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(OTP_LENGTH))


def issue_otp(user: User, now: datetime | None = None) -> str:
    """Write a fresh code and expiry to the user's slot. Returns the code."""
    now = now or utcnow()
    code = generate_otp()
    user.otp_code = code
    user.otp_expires_at = now + OTP_EXPIRY
    user.updated_at = now
    return code


def clear_otp(user: User) -> None:
    user.otp_code = None
    user.otp_expires_at = None


def verify_otp(user: User, code: str, now: datetime | None = None) -> OTPCheck:
    """Check a submitted code against the slot.

    The code is compared first, so a wrong code is always INVALID even
    after expiry. A matching code past its deadline is EXPIRED and the
    slot is cleared; the user has to request a new one.
    """
    now = now or utcnow()

    if not user.otp_code or not hmac.compare_digest(user.otp_code, code):
        return OTPCheck.INVALID

    if user.otp_expires_at is None or now > user.otp_expires_at:
        clear_otp(user)
        return OTPCheck.EXPIRED

    clear_otp(user)  # single use
    user.updated_at = now
    return OTPCheck.VALID


def issue_reset_grant(user: User) -> str:
    """Store a one-time grant in the reset-token slot and return it."""
    grant = secrets.token_hex(settings.reset_token_bytes)
    user.reset_token = grant
    return grant


def consume_reset_grant(user: User, grant: str | None) -> bool:
    """True if `grant` matches the stored one. The slot is cleared on a match."""
    if not grant or not user.reset_token:
        return False
    if not hmac.compare_digest(user.reset_token, grant):
        return False
    user.reset_token = None
    return True


async def purge_expired_otps(db: AsyncSession, now: datetime | None = None) -> int:
    """Clear every OTP slot whose deadline has passed. Returns rows touched."""
    now = now or utcnow()
    result = await db.execute(
        update(User)
        .where(User.otp_expires_at.is_not(None), User.otp_expires_at < now)
        .values(otp_code=None, otp_expires_at=None)
    )
    return result.rowcount or 0
