"""
FastAPI authentication endpoints.

    POST /api/auth/login           email + password -> bearer token (also set as cookie for pages)
    POST /api/auth/logout          revoke the current token
    POST /api/auth/refresh         swap a valid token for a fresh one
    GET  /api/auth/me              current user record
    GET  /api/auth/me/permissions  role and permission list with display names
"""

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from loguru import logger
from pydantic import BaseModel, Field

from auth.auth_manager import Identity
from auth.errors import AppError, NotFoundError, Unauthenticated
from auth.policy import DEFAULT_LANGUAGE, LANGUAGES
from auth.rbac_dependencies import bearer_token, require_auth

router = APIRouter(prefix="/api/auth", tags=["auth"])

ACCESS_TOKEN_COOKIE = "access_token"

# ==================== REQUEST MODELS ====================


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


# ==================== HELPER FUNCTIONS ====================


def get_client_ip(request: Request) -> str:
    """Extract client IP from request"""
    if request.client:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    """Extract User-Agent from request"""
    return request.headers.get("user-agent", "unknown")


def _require_token(authorization: str) -> str:
    token = bearer_token(authorization)
    if token is None:
        raise Unauthenticated("Missing authorization token")
    return token


# ==================== LOGIN & LOGOUT ====================


@router.post("/login")
async def login(data: LoginRequest, request: Request, response: Response):
    """
    Login user and return an access token.
    """
    auth_manager = request.app.state.auth_manager
    try:
        result = auth_manager.login(
            email=data.email,
            password=data.password,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )

        response.set_cookie(
            ACCESS_TOKEN_COOKIE,
            result["access_token"],
            max_age=result["expires_in"],
            httponly=True,
            samesite="lax",
            secure=request.app.state.settings.secure_cookies,
        )
        return result

    except (AppError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Login error: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Login failed")


@router.post("/logout")
async def logout(request: Request, response: Response, authorization: str = Header(None)):
    """
    Logout user and revoke the presented token until it would have expired.
    """
    try:
        token = _require_token(authorization)
        result = request.app.state.auth_manager.logout(token, ip_address=get_client_ip(request))
        response.delete_cookie(ACCESS_TOKEN_COOKIE)
        return result

    except (AppError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Logout error: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Logout failed")


@router.post("/refresh")
async def refresh_token(request: Request, response: Response, authorization: str = Header(None)):
    """
    Issue a new access token. The presented token is revoked.
    """
    try:
        token = _require_token(authorization)
        result = request.app.state.auth_manager.refresh(token)
        response.set_cookie(
            ACCESS_TOKEN_COOKIE,
            result["access_token"],
            max_age=result["expires_in"],
            httponly=True,
            samesite="lax",
            secure=request.app.state.settings.secure_cookies,
        )
        return result

    except (AppError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Token refresh error: {type(e).__name__}: {e}")
        raise HTTPException(status_code=500, detail="Token refresh failed")


# ==================== CURRENT USER ====================


@router.get("/me")
async def me(request: Request, identity: Identity = Depends(require_auth())):
    """Current user, as the UI caches it"""
    user = request.app.state.auth_manager.get_user(identity.user_id)
    if user is None:
        raise NotFoundError("User not found")

    policy = request.app.state.policy
    data = user.to_dict()
    data["role_display_name"] = {lang: policy.role_display_name(identity.role, lang) for lang in LANGUAGES}
    return {"success": True, "user": data}


@router.get("/me/permissions")
async def my_permissions(
    request: Request,
    language: str = Query(DEFAULT_LANGUAGE, pattern="^(ar|en)$"),
    identity: Identity = Depends(require_auth()),
):
    """
    Permission list for the current role. The UI uses this to decide which
    controls to show; the API still checks every call.
    """
    policy = request.app.state.policy
    permissions = sorted(request.app.state.evaluator.list_permissions(identity.role))
    return {
        "success": True,
        "role": identity.role.value,
        "role_display_name": policy.role_display_name(identity.role, language),
        "permissions": [p.code for p in permissions],
        "permission_display_names": {
            p.code: policy.permission_display_name(p, language) for p in permissions
        },
    }
