"""
Error taxonomy for authentication and authorization.

Every AppError is rendered with the same body:
    {"success": false, "error": true, "message": ..., "code": ...}
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from loguru import logger


class PolicyConfigurationError(ValueError):
    """Code or config references a role, resource or action outside the catalog."""


class AppError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500
    code = "server_error"
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required"


class AuthenticationFailed(Unauthenticated):
    """Login rejected. Never says whether the email or the password was wrong."""
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Insufficient permissions"


class BusinessRuleError(AppError):
    status_code = 400
    code = "business_rule"
    default_message = "Operation not allowed"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


def error_body(message: str, code: str, errors=None) -> dict:
    body = {"success": False, "error": True, "message": message, "code": code}
    if errors is not None:
        body["errors"] = errors
    return body


_HTTP_CODES = {
    400: "bad_request",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
}


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error the API raises with the fixed error body."""

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, exc.code),
            headers=headers,
        )

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        code = _HTTP_CODES.get(exc.status_code, "server_error")
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message, code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        logger.debug(f"Validation failed for {request.method} {request.url.path}")
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=error_body("Validation failed", "validation_error", errors),
        )
