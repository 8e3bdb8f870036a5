"""
Dashboard, reports and administration endpoints.

- GET /api/dashboard/stats     dashboard:view or reports:view
- GET /api/reports/summary     reports:view
- GET /api/reports/export      reports:export  (CSV)
- GET /api/audit-logs          role super_admin
- GET /api/roles               role admin or super_admin
- GET /api/settings            system_settings:view
- PUT /api/settings            system_settings:edit
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger
from sqlalchemy.orm import Session

from auth.auth_manager import Identity
from auth.permissions import Role
from auth.policy import DEFAULT_LANGUAGE, LANGUAGES
from auth.rbac_dependencies import (
    require_any_permission, require_any_role, require_permission, require_role,
)
from legal.dependencies import PageParams, get_db, get_page_params
from legal.repository import (
    AuditLogRepository, SettingsRepository, StatsRepository, UserRepository, paginate,
)
from legal.resource_routes import csv_response, run_write
from legal.schemas import SettingsUpdate

router = APIRouter(prefix="/api", tags=["reports"])


@router.get(
    "/dashboard/stats",
    dependencies=[Depends(require_any_permission(["dashboard:view", "reports:view"]))],
)
async def dashboard_stats(db: Session = Depends(get_db)):
    return {"success": True, "data": StatsRepository.dashboard(db)}


@router.get("/reports/summary", dependencies=[Depends(require_permission("reports:view"))])
async def reports_summary(db: Session = Depends(get_db)):
    data = StatsRepository.summary(db)
    data["totals"] = StatsRepository.dashboard(db)
    return {"success": True, "data": data}


def export_report_csv(db: Session, actor):
    summary = StatsRepository.summary(db)
    rows = [
        {"section": section, "key": key, "value": value}
        for section, values in summary.items()
        for key, value in values.items()
    ]
    logger.info(f"Report exported by user {actor.user_id}")
    return csv_response("report.csv", ["section", "key", "value"], rows)


@router.get("/reports/export")
async def export_report(
    identity: Identity = Depends(require_permission("reports:export")),
    db: Session = Depends(get_db),
):
    return export_report_csv(db, identity)


@router.get("/audit-logs", dependencies=[Depends(require_role(Role.SUPER_ADMIN))])
async def audit_logs(
    user_id: Optional[int] = None,
    event_type: Optional[str] = None,
    pages: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    query = AuditLogRepository.query(db, user_id=user_id, event_type=event_type)
    return {"success": True, **paginate(query, pages.page, pages.limit)}


@router.get("/roles", dependencies=[Depends(require_any_role([Role.ADMIN, Role.SUPER_ADMIN]))])
async def list_roles(
    request: Request,
    language: str = Query(DEFAULT_LANGUAGE, pattern="^(ar|en)$"),
    db: Session = Depends(get_db),
):
    """Role catalog with each role's permissions and current user count"""
    policy = request.app.state.policy
    counts = UserRepository.count_by_role(db)
    roles = []
    for role in Role:
        permissions = sorted(policy.list_permissions(role))
        roles.append({
            "role": role.value,
            "display_name": policy.role_display_name(role, language),
            "display_names": {lang: policy.role_display_name(role, lang) for lang in LANGUAGES},
            "user_count": counts.get(role.value, 0),
            "permissions": [
                {"code": p.code, "display_name": policy.permission_display_name(p, language)}
                for p in permissions
            ],
        })
    return {"success": True, "data": roles}


@router.get("/settings", dependencies=[Depends(require_permission("system_settings:view"))])
async def get_settings(db: Session = Depends(get_db)):
    return {"success": True, "data": SettingsRepository.all(db)}


def update_settings_record(request: Request, db: Session, actor, data: SettingsUpdate):
    settings = run_write(db, "updating settings",
                         lambda: SettingsRepository.upsert(db, data.settings, updated_by=actor.user_id))
    request.app.state.auth_manager.log_audit_event(
        actor.user_id, "settings_updated", {"keys": sorted(data.settings)},
    )
    return settings


@router.put("/settings")
async def update_settings(
    data: SettingsUpdate,
    request: Request,
    identity: Identity = Depends(require_permission("system_settings:edit")),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": update_settings_record(request, db, identity, data)}
