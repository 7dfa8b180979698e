"""Security middleware for HTTPS enforcement, security headers and cookies."""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

from lykr.config import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # HSTS: 1 year, include subdomains
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # The voice interview and the agent call need the microphone
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(self), camera=(), payment=()"
        )

        if settings.environment == "production":
            csp = (
                "default-src 'self'; "
                "img-src 'self' data: https:; "
                "connect-src 'self' wss: https://api.elevenlabs.io; "
                "frame-ancestors 'none'; "
                "base-uri 'self'; "
                "form-action 'self';"
            )
            response.headers["Content-Security-Policy"] = csp

        return response


class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    """Redirect HTTP requests to HTTPS (production only)."""

    def __init__(self, app, force_https: bool = False):
        super().__init__(app)
        self.force_https = force_https or settings.environment == "production"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.force_https:
            return await call_next(request)

        if request.url.scheme == "http":
            https_url = request.url.replace(scheme="https")
            return RedirectResponse(url=str(https_url), status_code=301)

        return await call_next(request)


class SecureCookieMiddleware(BaseHTTPMiddleware):
    """Ensure cookies are secure in production.

    SameSite stays Lax: the session cookie is set on the OAuth callback,
    which is a cross-site top-level navigation.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if settings.environment == "production":
            set_cookie_headers = response.headers.getlist("set-cookie")
            if set_cookie_headers:
                del response.headers["set-cookie"]

                for cookie in set_cookie_headers:
                    if "Secure" not in cookie:
                        cookie += "; Secure"
                    if "HttpOnly" not in cookie:
                        cookie += "; HttpOnly"
                    if "SameSite" not in cookie:
                        cookie += "; SameSite=Lax"

                    response.headers.append("set-cookie", cookie)

        return response
