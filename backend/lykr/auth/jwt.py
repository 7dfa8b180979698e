"""JWT token creation and decoding.

Token types:
  - access:     session token. Claims: sub (user id), email, name.
  - otp_grant:  short-lived proof that an OTP was verified. Claims:
                sub (email), grant (the reset-token slot value).
  - oauth_state: OAuth CSRF state + PKCE verifier between redirect and callback.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from lykr.config import settings

ALGORITHM = settings.jwt_algorithm


def _encode(payload: dict, expires_delta: timedelta) -> str:
    payload = dict(payload)
    payload["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def create_access_token(
    user_id: int,
    email: str,
    name: str,
    expires_delta: timedelta | None = None,
) -> str:
    return _encode(
        {"sub": str(user_id), "email": email, "name": name, "type": "access"},
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_otp_grant(email: str, grant: str) -> str:
    return _encode(
        {"sub": email, "grant": grant, "type": "otp_grant"},
        timedelta(seconds=settings.otp_expiry_seconds),
    )


def create_oauth_state(state: str, code_verifier: str, ttl_seconds: int = 600) -> str:
    return _encode(
        {"state": state, "code_verifier": code_verifier, "type": "oauth_state"},
        timedelta(seconds=ttl_seconds),
    )


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
