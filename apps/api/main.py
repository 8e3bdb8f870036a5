# FastAPI entrypoint: app factory wiring policy, auth, database, middleware and routers

import os

import dotenv
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import text

from apps.api.settings import AppSettings
from auth.auth_manager import AuthConfig, AuthManager
from auth.auth_routes import router as auth_router
from auth.cache_manager import InMemoryCacheManager
from auth.errors import register_exception_handlers
from auth.evaluator import AuthorizationEvaluator
from auth.policy import RolePolicy
from auth.rbac_dependencies import require_admin, route_requirements
from auth.security_middleware import (
    AuditLoggingMiddleware,
    HTTPSEnforcementMiddleware,
    SecurityHeadersMiddleware,
)
from legal.report_routes import router as report_router
from legal.resource_routes import routers as resource_routers
from legal.user_routes import router as users_router
from storage.database import DatabaseConfig, DatabaseManager
from ui.pages import router as pages_router

dotenv.load_dotenv()

API_VERSION = "1.0.0"


# ==================== BASE ROUTER ====================

router = APIRouter(prefix="/api/base", tags=["base"])


@router.get("/", dependencies=[Depends(require_admin)])
async def base_root(request: Request):
    """API information and the gate declared on every route."""
    return {
        "message": "Litigation Management API",
        "version": API_VERSION,
        "routes": [
            r for r in route_requirements(request.app.routes) if r["path"].startswith("/api")
        ],
    }


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring system status."""
    try:
        with request.app.state.db_manager.session() as db:
            db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "components": {
                "database": request.app.state.db_manager.engine.dialect.name,
                "revoked_tokens": request.app.state.auth_manager.cache.blacklist_size(),
            },
        }
    except Exception as e:
        logger.error(f"Health check failed: {type(e).__name__}: {e}")
        return {"status": "unhealthy", "error": "database unavailable"}


# ==================== APP FACTORY ====================

def create_app(
    auth_config: AuthConfig = None,
    db_config: DatabaseConfig = None,
    policy: RolePolicy = None,
    settings: AppSettings = None,
) -> FastAPI:
    settings = settings or AppSettings()
    policy = policy or RolePolicy.from_yaml()

    db_manager = DatabaseManager(db_config or DatabaseConfig())
    db_manager.create_tables()

    app = FastAPI(
        title="Litigation Management API",
        description="Bilingual case management with role-based access control",
        version=API_VERSION,
    )
    app.state.settings = settings
    app.state.policy = policy
    app.state.evaluator = AuthorizationEvaluator(policy)
    app.state.db_manager = db_manager
    app.state.auth_manager = AuthManager(db_manager, auth_config or AuthConfig(), InMemoryCacheManager())

    register_exception_handlers(app)

    # ==================== SECURITY MIDDLEWARE STACK ====================
    # Last added runs first, so CORS wraps everything

    app.add_middleware(AuditLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(HTTPSEnforcementMiddleware, enabled=settings.is_production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.frontend_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Accept-Language", "Origin"],
        expose_headers=["Content-Disposition"],
        max_age=86400,
    )

    # ==================== ROUTER REGISTRATION ====================

    app.include_router(router)              # /api/base
    app.include_router(auth_router)         # /api/auth
    for resource_router in resource_routers:
        app.include_router(resource_router)  # /api/clients, /api/cases, ...
    app.include_router(users_router)        # /api/users
    app.include_router(report_router)       # /api/dashboard, /api/reports, /api/settings, ...
    app.include_router(pages_router)        # HTML pages

    @app.on_event("shutdown")
    async def shutdown_event():
        db_manager.dispose()

    logger.info(
        f"App created (environment={settings.environment}, "
        f"database={db_manager.engine.dialect.name}, roles={len(policy.roles())})"
    )
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "apps.api.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
