"""FastAPI dependencies for authentication.

Dependencies:
  get_current_user      → decode the session JWT, load the user, return User
  get_websocket_user_id → claims-only check (no DB hit) for WebSocket handshakes
"""

from fastapi import Depends, HTTPException, Request, WebSocket, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lykr.auth.jwt import decode_token
from lykr.config import settings
from lykr.database import get_db
from lykr.models.user import User

# auto_error=False: the browser sends the session cookie instead of a header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _unauthorized(detail: str = "Invalid or expired token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_id_from_token(token: str | None) -> int | None:
    if not token:
        return None
    payload = decode_token(token)
    if payload.get("type") != "access":
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    request: Request,
    bearer: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the session (Bearer header first, then cookie) to a User."""
    token = bearer or request.cookies.get(settings.session_cookie_name)
    user_id = _user_id_from_token(token)
    if user_id is None:
        raise _unauthorized()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise _unauthorized("User not found")
    return user


# ── WebSocket variant ───────────────────────────────────────

async def get_websocket_user_id(websocket: WebSocket) -> int | None:
    """Claims-only session check for WebSocket handshakes.

    Returns None instead of raising so the handler can close the socket
    with a policy-violation code.
    """
    token = websocket.query_params.get("token") or websocket.cookies.get(
        settings.session_cookie_name
    )
    return _user_id_from_token(token)
