"""Auth server actions.

Every action takes the submitted form fields plus an injected translator
and returns a fresh ActionState. Expected failures (validation, unknown
email, bad code) come back as field errors. Anything unexpected is logged,
the transaction rolled back, and reported as the generic server error.
"""

import functools
import logging
import secrets
from collections.abc import Mapping

from fastapi import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.auth import otp as otp_store
from lykr.auth.jwt import create_access_token, create_otp_grant, decode_token
from lykr.auth.password import hash_password, verify_password
from lykr.config import settings
from lykr.database import utcnow
from lykr.i18n import Translator
from lykr.models.user import User
from lykr.schemas.auth import (
    ActionState,
    ForgotPasswordForm,
    LoginForm,
    RegisterForm,
    ResetPasswordByOtpForm,
    ResetPasswordForm,
    VerifyOtpForm,
    parse_form,
)
from lykr.services.email import send_otp_email, send_reset_link_email

logger = logging.getLogger(__name__)

OTP_GRANT_COOKIE = "lykr_otp_grant"
_PASSWORD_FIELDS = {"password", "confirmPassword"}


# ── Helpers ──────────────────────────────────────────────────

def _echo(form: Mapping[str, object], *fields: str) -> dict[str, str]:
    """Form values to hand back on failure. Password fields are never echoed."""
    return {
        f: str(form.get(f) or "")
        for f in fields
        if f not in _PASSWORD_FIELDS
    }


def _failed(
    t: Translator,
    message_key: str,
    errors: dict[str, list[str]] | None = None,
    values: dict[str, str] | None = None,
) -> ActionState:
    return ActionState(
        success=False,
        message=t(message_key),
        errors=t.translate_errors(errors) if errors else None,
        values=values,
    )


async def _user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email).limit(1))
    return result.scalar_one_or_none()


def set_session_cookie(response: Response, user: User) -> None:
    token = create_access_token(user_id=user.id, email=user.email, name=user.name)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
        path="/",
    )


def _server_boundary(fn):
    """Downgrade unexpected exceptions to the translated server error."""

    @functools.wraps(fn)
    async def wrapper(db: AsyncSession, form: Mapping[str, object], t: Translator, *args, **kwargs):
        try:
            return await fn(db, form, t, *args, **kwargs)
        except Exception:
            logger.error("%s action failed", fn.__name__, exc_info=True)
            await db.rollback()
            return ActionState(success=False, message=t("errors.serverError"))

    return wrapper


# ── Register ─────────────────────────────────────────────────

@_server_boundary
async def register(db: AsyncSession, form: Mapping[str, object], t: Translator) -> ActionState:
    values = _echo(form, "name", "email")
    data, errors = parse_form(RegisterForm, form)
    if data is None:
        return _failed(t, "auth.registerFailed", errors, values)

    if await _user_by_email(db, data.email):
        return _failed(t, "auth.registerFailed", {"email": ["emailExists"]}, values)

    db.add(User(
        name=data.name,
        email=data.email,
        hashed_password=hash_password(data.password),
    ))
    await db.flush()
    logger.info("Registered user %s", data.email)
    return ActionState(success=True, message=t("auth.registerSuccess"))


# ── Login / logout ───────────────────────────────────────────

@_server_boundary
async def login(
    db: AsyncSession,
    form: Mapping[str, object],
    t: Translator,
    response: Response,
) -> ActionState:
    values = _echo(form, "email")
    data, errors = parse_form(LoginForm, form)
    if data is None:
        return _failed(t, "auth.loginFailed", errors, values)

    user = await _user_by_email(db, data.email)
    # OAuth-only accounts have no password and can never match
    if not user or not verify_password(data.password, user.hashed_password):
        return ActionState(
            success=False,
            message=t("validation.invalidCredentials"),
            values=values,
        )

    set_session_cookie(response, user)
    return ActionState(success=True, message=t("auth.loginSuccess"))


def logout(response: Response, t: Translator) -> ActionState:
    response.delete_cookie(settings.session_cookie_name, path="/")
    return ActionState(success=True, message=t("auth.logoutSuccess"))


# ── Reset link recovery ─────────────────────────────────────

@_server_boundary
async def forgot_password(
    db: AsyncSession, form: Mapping[str, object], t: Translator
) -> ActionState:
    data, errors = parse_form(ForgotPasswordForm, form)
    if data is None:
        return _failed(t, "auth.loginFailed", errors)

    user = await _user_by_email(db, data.email)
    if not user:
        return _failed(t, "auth.loginFailed", {"email": ["emailNotFound"]})

    token = secrets.token_hex(settings.reset_token_bytes)
    user.reset_token = token
    user.updated_at = utcnow()
    await db.flush()

    await send_reset_link_email(user.email, token, t)
    return ActionState(success=True, message=t("auth.passwordResetSent"))


@_server_boundary
async def reset_password(
    db: AsyncSession, form: Mapping[str, object], t: Translator
) -> ActionState:
    data, errors = parse_form(ResetPasswordForm, form)
    if data is None:
        return _failed(t, "auth.loginFailed", errors)

    result = await db.execute(select(User).where(User.reset_token == data.token).limit(1))
    user = result.scalar_one_or_none()
    if not user:
        return _failed(t, "auth.loginFailed", {"token": ["tokenInvalid"]})

    user.hashed_password = hash_password(data.password)
    user.reset_token = None
    user.updated_at = utcnow()
    await db.flush()
    return ActionState(success=True, message=t("auth.passwordResetSuccess"))


# ── OTP recovery ────────────────────────────────────────────

@_server_boundary
async def send_otp(db: AsyncSession, form: Mapping[str, object], t: Translator) -> ActionState:
    email = str(form.get("email") or "")
    if not email:
        return _failed(t, "auth.loginFailed", {"email": ["emailRequired"]})

    user = await _user_by_email(db, email)
    if not user:
        return _failed(t, "auth.loginFailed", {"email": ["emailNotFound"]})

    code = otp_store.issue_otp(user)
    await db.flush()

    await send_otp_email(user.email, code, t)
    return ActionState(success=True, message=t("auth.otpSent"))


@_server_boundary
async def verify_otp(
    db: AsyncSession,
    form: Mapping[str, object],
    t: Translator,
    response: Response,
) -> ActionState:
    data, errors = parse_form(VerifyOtpForm, form)
    if data is None:
        return _failed(t, "auth.loginFailed", errors)

    user = await _user_by_email(db, data.email)
    if not user:
        return _failed(t, "auth.loginFailed", {"email": ["emailNotFound"]})

    check = otp_store.verify_otp(user, data.otp)
    if check is otp_store.OTPCheck.INVALID:
        return _failed(t, "auth.loginFailed", {"otp": ["otpInvalid"]})
    if check is otp_store.OTPCheck.EXPIRED:
        await db.flush()
        return _failed(t, "auth.loginFailed", {"otp": ["otpExpired"]})

    grant = otp_store.issue_reset_grant(user)
    await db.flush()
    response.set_cookie(
        OTP_GRANT_COOKIE,
        create_otp_grant(user.email, grant),
        max_age=settings.otp_expiry_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
        path="/",
    )
    return ActionState(success=True, message=t("auth.otpVerified"))


@_server_boundary
async def reset_password_by_otp(
    db: AsyncSession,
    form: Mapping[str, object],
    t: Translator,
    response: Response,
    grant_token: str | None = None,
) -> ActionState:
    data, errors = parse_form(ResetPasswordByOtpForm, form)
    if data is None:
        return _failed(t, "auth.loginFailed", errors)

    user = await _user_by_email(db, data.email)
    if not user:
        return _failed(t, "auth.loginFailed", {"email": ["emailNotFound"]})

    if settings.otp_reset_requires_grant:
        claims = decode_token(grant_token) if grant_token else {}
        if (
            claims.get("type") != "otp_grant"
            or claims.get("sub") != user.email
            or not otp_store.consume_reset_grant(user, claims.get("grant"))
        ):
            return _failed(t, "auth.loginFailed", {"otp": ["otpNotVerified"]})

    user.hashed_password = hash_password(data.password)
    user.updated_at = utcnow()
    await db.flush()
    response.delete_cookie(OTP_GRANT_COOKIE, path="/")
    return ActionState(success=True, message=t("auth.passwordResetSuccess"))
