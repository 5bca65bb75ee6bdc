"""
CSRF protection middleware using the double-submit cookie pattern.
"""
import secrets
import logging
from typing import Set, Optional
from urllib.parse import urlparse
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from app.config import settings

logger = logging.getLogger(__name__)


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Double-submit cookie check for cookie-borne browser sessions.

    State-changing requests must carry an X-CSRF-Token header equal to the
    csrf_token cookie. Requests authenticated with a bearer token are not
    exposed to CSRF and skip the check, as do the public endpoints (contact
    form, tracking, login and the token-addressed upload routes), which only
    get an Origin/Referer check.
    """

    SAFE_METHODS: Set[str] = {"GET", "HEAD", "OPTIONS", "TRACE"}

    EXEMPT_PATHS: Set[str] = {
        f"{settings.API_V1_STR}/submissions",
        f"{settings.API_V1_STR}/submissions/track",
        f"{settings.API_V1_STR}/auth/login",
        "/health",
    }

    EXEMPT_PATH_PREFIXES: tuple = (
        f"{settings.API_V1_STR}/documents/upload/",
        f"{settings.API_V1_STR}/payments/upload-receipt/",
    )

    COOKIE_NAME: str = "csrf_token"
    HEADER_NAME: str = "X-CSRF-Token"
    TOKEN_LENGTH: int = 32

    async def dispatch(self, request: Request, call_next) -> Response:
        if not settings.CSRF_ENABLED:
            return await call_next(request)

        if request.method in self.SAFE_METHODS:
            response = await call_next(request)
            return self._ensure_csrf_cookie(request, response)

        if request.headers.get("Authorization", "").startswith("Bearer "):
            return await call_next(request)

        if self._is_exempt_path(request.url.path):
            origin_error = self._validate_origin(request)
            if origin_error:
                logger.warning(
                    f"CSRF origin validation failed: {origin_error} for {request.method} {request.url.path}"
                )
                return self._forbidden("Invalid request origin")
            return await call_next(request)

        csrf_cookie = request.cookies.get(self.COOKIE_NAME)
        csrf_header = request.headers.get(self.HEADER_NAME)

        if not csrf_cookie:
            logger.warning(f"CSRF validation failed: missing cookie for {request.method} {request.url.path}")
            return self._forbidden("CSRF token cookie missing")

        if not csrf_header:
            logger.warning(f"CSRF validation failed: missing header for {request.method} {request.url.path}")
            return self._forbidden("CSRF token header missing")

        if not secrets.compare_digest(csrf_cookie, csrf_header):
            logger.warning(f"CSRF validation failed: token mismatch for {request.method} {request.url.path}")
            return self._forbidden("CSRF token mismatch")

        return await call_next(request)

    @staticmethod
    def _forbidden(detail: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": detail, "code": "csrf_failed"}
        )

    def _is_exempt_path(self, path: str) -> bool:
        return path in self.EXEMPT_PATHS or path.startswith(self.EXEMPT_PATH_PREFIXES)

    def _validate_origin(self, request: Request) -> Optional[str]:
        """
        Validate Origin/Referer header against allowed origins.

        Returns:
            None if valid, error message if invalid
        """
        origin = request.headers.get("Origin")
        referer = request.headers.get("Referer")

        # Same-origin requests may omit both
        if not origin and not referer:
            return None

        allowed_origins = settings.BACKEND_CORS_ORIGINS

        if origin:
            if origin not in allowed_origins:
                return f"Origin '{origin}' not allowed"
            return None

        parsed = urlparse(referer)
        referer_origin = f"{parsed.scheme}://{parsed.netloc}"
        if referer_origin not in allowed_origins:
            return f"Referer origin '{referer_origin}' not allowed"
        return None

    def _ensure_csrf_cookie(self, request: Request, response: Response) -> Response:
        if self.COOKIE_NAME not in request.cookies:
            response.set_cookie(
                key=self.COOKIE_NAME,
                value=secrets.token_urlsafe(self.TOKEN_LENGTH),
                httponly=False,  # Read by the admin UI to echo in the header
                samesite="strict",
                secure=settings.ENVIRONMENT == "production",
                max_age=3600 * 24
            )
        return response


def setup_csrf_protection(app) -> None:
    """
    Configure CSRF protection for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    if not settings.CSRF_ENABLED:
        logger.info("CSRF protection is disabled")
        return

    app.add_middleware(CSRFMiddleware)
    logger.info("CSRF protection enabled")
