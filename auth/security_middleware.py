"""
Security middleware for FastAPI:
- HTTPS enforcement
- Security headers (CSP, HSTS, X-Frame-Options, etc.)
- Request audit logging
"""

import logging
from datetime import datetime

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from auth.errors import error_body

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Pages are server rendered with inline styles only
        csp = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "frame-ancestors 'none'; "
            "base-uri 'self'; "
            "form-action 'self';"
        )
        response.headers["Content-Security-Policy"] = csp
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response


class HTTPSEnforcementMiddleware(BaseHTTPMiddleware):
    """Reject plain HTTP when running in production"""

    def __init__(self, app, enabled: bool = False):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if self.enabled:
            scheme = request.url.scheme
            x_forwarded_proto = request.headers.get("x-forwarded-proto")

            if scheme != "https" and x_forwarded_proto != "https":
                return JSONResponse(status_code=403, content=error_body("HTTPS required", "forbidden"))

        return await call_next(request)


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with the caller's user id.

    The id comes from the Identity the route's gate stored on request.state,
    so the token is verified once per request. Ungated and rejected requests
    log no user.
    """

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        started = datetime.utcnow()

        response = await call_next(request)

        identity = getattr(request.state, "identity", None)
        user_id = identity.user_id if identity is not None else None
        logger.info(
            f"Request: {request.method} {request.url.path} -> {response.status_code} | "
            f"User: {user_id} | IP: {client_ip} | "
            f"Time: {started.isoformat()}"
        )
        return response
