"""Auth routes.

Route overview:
  POST /register             → create an email/password account
  POST /login                → verify credentials, set the session cookie
  POST /logout               → clear the session cookie
  POST /forgot-password      → mail a reset link
  POST /reset-password       → set a new password from a reset-link token
  POST /otp/send             → mail a 6-digit recovery code
  POST /otp/verify           → check the code, grant a password reset
  POST /otp/reset-password   → set a new password after OTP verification
  GET  /google               → start Google sign-in (PKCE)
  GET  /callback/google      → finish Google sign-in
  GET  /me                   → current user profile

Form endpoints always answer 200 with an ActionState body; failures are
carried in `success`, `message` and `errors`.
"""

import logging
import secrets

import httpx
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.auth import oauth
from lykr.auth.deps import get_current_user
from lykr.auth.jwt import create_oauth_state, decode_token
from lykr.config import settings
from lykr.database import get_db
from lykr.i18n import Translator, get_translator
from lykr.models.user import User
from lykr.schemas.auth import ActionState, UserOut
from lykr.services import auth_actions
from lykr.wizard.steps import STEPS

logger = logging.getLogger(__name__)

router = APIRouter()


async def _form(request: Request) -> dict[str, str]:
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


# ── Credentials ─────────────────────────────────────────────

@router.post("/register", response_model=ActionState, response_model_exclude_none=True)
async def register(
    request: Request,
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    return await auth_actions.register(db, await _form(request), t)


@router.post("/login", response_model=ActionState, response_model_exclude_none=True)
async def login(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    return await auth_actions.login(db, await _form(request), t, response)


@router.post("/logout", response_model=ActionState, response_model_exclude_none=True)
async def logout(response: Response, t: Translator = Depends(get_translator)):
    return auth_actions.logout(response, t)


# ── Reset link ──────────────────────────────────────────────

@router.post("/forgot-password", response_model=ActionState, response_model_exclude_none=True)
async def forgot_password(
    request: Request,
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    return await auth_actions.forgot_password(db, await _form(request), t)


@router.post("/reset-password", response_model=ActionState, response_model_exclude_none=True)
async def reset_password(
    request: Request,
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    return await auth_actions.reset_password(db, await _form(request), t)


# ── OTP ─────────────────────────────────────────────────────

@router.post("/otp/send", response_model=ActionState, response_model_exclude_none=True)
async def send_otp(
    request: Request,
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    return await auth_actions.send_otp(db, await _form(request), t)


@router.post("/otp/verify", response_model=ActionState, response_model_exclude_none=True)
async def verify_otp(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    return await auth_actions.verify_otp(db, await _form(request), t, response)


@router.post("/otp/reset-password", response_model=ActionState, response_model_exclude_none=True)
async def reset_password_by_otp(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    return await auth_actions.reset_password_by_otp(
        db,
        await _form(request),
        t,
        response,
        grant_token=request.cookies.get(auth_actions.OTP_GRANT_COOKIE),
    )


# ── Google ──────────────────────────────────────────────────

def _frontend(path: str, t: Translator) -> str:
    return f"{settings.frontend_url}/{t.locale}{path}"


@router.get("/google")
async def google_sign_in():
    state = secrets.token_urlsafe(32)
    verifier = oauth.generate_code_verifier()

    response = RedirectResponse(oauth.authorization_url(state, verifier), status_code=302)
    response.set_cookie(
        oauth.OAUTH_STATE_COOKIE,
        create_oauth_state(state, verifier, ttl_seconds=oauth.STATE_TTL_SECONDS),
        max_age=oauth.STATE_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
        path="/api/auth",
    )
    return response


@router.get("/callback/google")
async def google_callback(
    request: Request,
    code: str = "",
    state: str = "",
    db: AsyncSession = Depends(get_db),
    t: Translator = Depends(get_translator),
):
    failure = RedirectResponse(_frontend("/?error=oauth", t), status_code=302)
    failure.delete_cookie(oauth.OAUTH_STATE_COOKIE, path="/api/auth")

    claims = decode_token(request.cookies.get(oauth.OAUTH_STATE_COOKIE, ""))
    if (
        not code
        or claims.get("type") != "oauth_state"
        or not state
        or not secrets.compare_digest(str(claims.get("state", "")), state)
    ):
        logger.warning("Google callback with missing or mismatched state")
        return failure

    try:
        tokens = await oauth.exchange_code_for_tokens(
            code=code, code_verifier=claims["code_verifier"]
        )
        profile = await oauth.fetch_userinfo(tokens["access_token"])
    except (httpx.HTTPError, KeyError):
        logger.warning("Google token exchange failed", exc_info=True)
        return failure

    email = profile.get("email")
    if not email:
        logger.warning("Google profile without an email address")
        return failure

    result = await db.execute(select(User).where(User.email == email).limit(1))
    user = result.scalar_one_or_none()
    if not user:
        user = User(
            name=(profile.get("name") or t("auth.defaultUserName"))[:120],
            email=email,
            hashed_password=None,
        )
        db.add(user)
        await db.flush()
        logger.info("Created user %s from Google sign-in", email)

    response = RedirectResponse(_frontend(STEPS[0].route, t), status_code=302)
    response.delete_cookie(oauth.OAUTH_STATE_COOKIE, path="/api/auth")
    auth_actions.set_session_cookie(response, user)
    return response


# ── Profile ─────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        has_password=user.hashed_password is not None,
        created_at=user.created_at,
    )
