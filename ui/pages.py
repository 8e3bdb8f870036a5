"""
Page Routes - server-rendered HTML UI

Routes:
- /login (GET form, POST credentials), /logout
- /dashboard, /reports, /reports/export
- /clients, /cases, /hearings, /invoices, /users (record lists)
- /{list}/new, /{list}/{id}/edit, /{list}/{id}/delete (record forms)
- /clients/export, /cases/export (CSV)
- /settings (view and edit), /audit-logs

The viewer is resolved from the access_token cookie. Each page and form route
is wrapped in a RouteGuard, which runs server-side and is the authoritative
check for the HTML data and writes it serves; pages read through the
repositories directly. Buttons inside a page are hidden with PermissionGates.
Writes go through the same record actions as the API, so business rules
(self-delete, super_admin protection, uniqueness) hold on both paths.
The session cookie is SameSite=Lax, so cross-site form posts arrive anonymous.
"""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import Session

from auth.auth_routes import ACCESS_TOKEN_COOKIE, get_client_ip, get_user_agent
from auth.errors import AppError, AuthenticationFailed, NotFoundError, Unauthenticated
from auth.permissions import Role
from auth.policy import DEFAULT_LANGUAGE, LANGUAGES
from legal.dependencies import get_db
from legal.report_routes import export_report_csv, update_settings_record
from legal.repository import (
    AuditLogRepository, CaseRepository, ClientRepository, HearingRepository,
    InvoiceRepository, SettingsRepository, StatsRepository, UserRepository, paginate,
)
from legal.resource_routes import RECORD_ACTIONS
from legal.schemas import SettingsUpdate
from legal.user_routes import USER_ACTIONS
from ui.gates import PermissionGate, RouteGuard, Viewer
from ui.navigation import nav_item, visible_navigation
from ui.text_direction import detect_direction, input_direction

router = APIRouter(tags=["pages"], include_in_schema=False)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.filters["text_direction"] = detect_direction

LANGUAGE_COOKIE = "lang"


# =============================================================================
# VIEWER / CONTEXT
# =============================================================================

def get_viewer(request: Request) -> Optional[Viewer]:
    """Viewer for the access_token cookie, or None when signed out"""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        return None
    try:
        identity = request.app.state.auth_manager.resolve_current(token)
    except Unauthenticated:
        return None

    request.state.identity = identity
    return Viewer(
        user_id=identity.user_id,
        role=identity.role,
        display_name=identity.display_name(get_language(request)),
        evaluator=request.app.state.evaluator,
    )


def get_language(request: Request) -> str:
    lang = request.query_params.get("lang") or request.cookies.get(LANGUAGE_COOKIE) or DEFAULT_LANGUAGE
    return lang if lang in LANGUAGES else DEFAULT_LANGUAGE


def _safe_next(target: Optional[str]) -> str:
    # Only same-site relative paths
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return "/dashboard"


def render(request: Request, template: str, viewer: Optional[Viewer], status_code: int = 200, **context):
    lang = get_language(request)
    policy = request.app.state.policy

    def can(permission) -> bool:
        return viewer is not None and viewer.can(permission)

    def has_role(*roles) -> bool:
        return viewer is not None and viewer.has_role(roles)

    def gate(**conditions) -> bool:
        return PermissionGate(**conditions).allows(viewer)

    context.update({
        "viewer": viewer,
        "lang": lang,
        "dir": "rtl" if lang == "ar" else "ltr",
        "nav": visible_navigation(viewer),
        "current_path": request.url.path,
        "role_name": policy.role_display_name(viewer.role, lang) if viewer else None,
        "can": can,
        "has_role": has_role,
        "gate": gate,
    })
    return templates.TemplateResponse(request, template, context, status_code=status_code)


def guard_page(request: Request, guard: RouteGuard, viewer: Optional[Viewer]):
    """None when the page may render, otherwise the redirect / 403 response"""
    decision = guard.check(viewer, request.url.path)
    if decision.allowed:
        return None
    if decision.redirect_to:
        return RedirectResponse(url=decision.redirect_to, status_code=302)

    logger.warning(f"[GATE] Page {request.url.path} denied for user {viewer.user_id} ({viewer.role.value})")
    return render(request, "access_denied.html", viewer, status_code=403)


def _error_status(e: Exception):
    """(status, message) for an error raised by a record action"""
    if isinstance(e, AppError):
        return e.status_code, e.message
    return e.status_code, e.detail if isinstance(e.detail, str) else "Request failed"


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================

@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    return RedirectResponse(url="/dashboard", status_code=302)


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, next: Optional[str] = None):
    viewer = get_viewer(request)
    if viewer is not None:
        return RedirectResponse(url=_safe_next(next), status_code=302)
    return render(request, "login.html", None, next=_safe_next(next), error=None)


@router.post("/login", response_class=HTMLResponse)
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str = Form("/dashboard"),
):
    try:
        result = request.app.state.auth_manager.login(
            email=email,
            password=password,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
    except AuthenticationFailed as e:
        return render(request, "login.html", None, status_code=401, next=_safe_next(next), error=e.message)

    response = RedirectResponse(url=_safe_next(next), status_code=303)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        result["access_token"],
        max_age=result["expires_in"],
        httponly=True,
        samesite="lax",
        secure=request.app.state.settings.secure_cookies,
    )
    return response


@router.post("/logout")
def logout(request: Request):
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        try:
            request.app.state.auth_manager.logout(token, ip_address=get_client_ip(request))
        except Unauthenticated:
            logger.debug("Logout with an already invalid cookie")
    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return response


# =============================================================================
# DASHBOARD / REPORTS
# =============================================================================

DASHBOARD_GUARD = RouteGuard(required_resource="dashboard", required_action="view")
REPORTS_GUARD = RouteGuard(required_permission="reports:view")
REPORTS_EXPORT_GUARD = RouteGuard(required_permission="reports:export")


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, db: Session = Depends(get_db)):
    viewer = get_viewer(request)
    denied = guard_page(request, DASHBOARD_GUARD, viewer)
    if denied:
        return denied
    return render(request, "dashboard.html", viewer, stats=StatsRepository.dashboard(db))


@router.get("/reports", response_class=HTMLResponse)
def reports(request: Request, db: Session = Depends(get_db)):
    viewer = get_viewer(request)
    denied = guard_page(request, REPORTS_GUARD, viewer)
    if denied:
        return denied
    return render(request, "reports.html", viewer, summary=StatsRepository.summary(db))


@router.get("/reports/export")
def reports_export(request: Request, db: Session = Depends(get_db)):
    viewer = get_viewer(request)
    denied = guard_page(request, REPORTS_EXPORT_GUARD, viewer)
    if denied:
        return denied
    return export_report_csv(db, viewer)


# =============================================================================
# RECORD LISTS
# =============================================================================

LIST_PAGES = {
    "clients": {
        "repository": ClientRepository,
        "columns": ["id", "client_name_ar", "client_name_en", "client_type", "status"],
        "resource": "clients",
        "export": True,
    },
    "cases": {
        "repository": CaseRepository,
        "columns": ["id", "matter_ar", "matter_en", "matter_status", "matter_importance"],
        "resource": "cases",
        "export": True,
    },
    "hearings": {
        "repository": HearingRepository,
        "columns": ["id", "case_id", "hearing_date", "hearing_type", "hearing_result"],
        "resource": "hearings",
        "export": False,
    },
    "invoices": {
        "repository": InvoiceRepository,
        "columns": ["id", "invoice_number", "invoice_date", "amount", "currency", "invoice_status"],
        "resource": "invoices",
        "export": False,
    },
    "users": {
        "repository": UserRepository,
        "columns": ["id", "username", "email", "role", "is_active"],
        "resource": "users",
        "export": False,
    },
}

ACTIONS = {**RECORD_ACTIONS, "users": USER_ACTIONS}

LIST_GUARDS = {
    key: RouteGuard(required_resource=page["resource"], required_action="view")
    for key, page in LIST_PAGES.items()
}

# (list key, action) -> guard for the form and export routes
ACTION_GUARDS = {
    (key, action): RouteGuard(required_resource=page["resource"], required_action=action)
    for key, page in LIST_PAGES.items()
    for action in ("create", "edit", "delete") + (("export",) if page["export"] else ())
}


def _list_page(key: str, request: Request, db: Session, page: int, viewer=None,
               error: str = None, status_code: int = 200):
    viewer = viewer or get_viewer(request)
    denied = guard_page(request, LIST_GUARDS[key], viewer)
    if denied:
        return denied

    config = LIST_PAGES[key]
    settings = request.app.state.settings
    result = paginate(config["repository"].query(db), max(page, 1), settings.default_page_size)
    return render(
        request, "list.html", viewer,
        status_code=status_code,
        item=nav_item(key),
        resource=config["resource"],
        columns=config["columns"],
        rows=result["items"],
        pagination=result["pagination"],
        exportable=config["export"],
        error=error,
    )


@router.get("/clients", response_class=HTMLResponse)
def clients_page(request: Request, page: int = 1, db: Session = Depends(get_db)):
    return _list_page("clients", request, db, page)


@router.get("/cases", response_class=HTMLResponse)
def cases_page(request: Request, page: int = 1, db: Session = Depends(get_db)):
    return _list_page("cases", request, db, page)


@router.get("/hearings", response_class=HTMLResponse)
def hearings_page(request: Request, page: int = 1, db: Session = Depends(get_db)):
    return _list_page("hearings", request, db, page)


@router.get("/invoices", response_class=HTMLResponse)
def invoices_page(request: Request, page: int = 1, db: Session = Depends(get_db)):
    return _list_page("invoices", request, db, page)


@router.get("/users", response_class=HTMLResponse)
def users_page(request: Request, page: int = 1, db: Session = Depends(get_db)):
    return _list_page("users", request, db, page)


# =============================================================================
# RECORD FORMS / EXPORT
# =============================================================================

SELECT_OPTIONS = {
    "role": [role.value for role in Role],
    "is_active": ["true", "false"],
}


def _input_type(name: str) -> str:
    if name in ("password", "email"):
        return name
    if name == "phone":
        return "tel"
    if name.endswith("_date"):
        return "date"
    return "text"


def _form_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _form_fields(schema, values: dict):
    fields = []
    for name in schema.model_fields:
        input_type = _input_type(name)
        value = "" if input_type == "password" else values.get(name, "")
        fields.append({
            "name": name,
            "type": input_type,
            "value": value,
            "options": SELECT_OPTIONS.get(name),
            "dir": input_direction(input_type) if input_type != "text" else detect_direction(value),
        })
    return fields


def _action_context(key: str, action: str):
    if key not in LIST_PAGES or (key, action) not in ACTION_GUARDS:
        raise NotFoundError("Page not found")
    return LIST_PAGES[key], ACTIONS[key], ACTION_GUARDS[(key, action)]


def _render_form(request, viewer, key, schema, values, action_url, status_code=200, error=None, errors=None):
    return render(
        request, "form.html", viewer,
        status_code=status_code,
        item=nav_item(key),
        fields=_form_fields(schema, values),
        action_url=action_url,
        error=error,
        errors=errors or [],
    )


def _validation_errors(e: ValidationError):
    return [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
        for err in e.errors()
    ]


@router.get("/{key}/export")
def export_page(key: str, request: Request, db: Session = Depends(get_db)):
    _, actions, guard = _action_context(key, "export")
    viewer = get_viewer(request)
    denied = guard_page(request, guard, viewer)
    if denied:
        return denied
    return actions.export(db)


@router.get("/{key}/new", response_class=HTMLResponse)
def new_record_form(key: str, request: Request):
    _, actions, guard = _action_context(key, "create")
    viewer = get_viewer(request)
    denied = guard_page(request, guard, viewer)
    if denied:
        return denied
    return _render_form(request, viewer, key, actions.create_schema, {}, f"/{key}/new")


@router.post("/{key}/new", response_class=HTMLResponse)
async def create_record(key: str, request: Request, db: Session = Depends(get_db)):
    _, actions, guard = _action_context(key, "create")
    viewer = get_viewer(request)
    denied = guard_page(request, guard, viewer)
    if denied:
        return denied

    form = await request.form()
    schema = actions.create_schema
    submitted = {name: value for name, value in form.items() if name in schema.model_fields}
    try:
        data = schema.model_validate({name: value for name, value in submitted.items() if value != ""})
        actions.create(request, db, viewer, data)
    except ValidationError as e:
        return _render_form(request, viewer, key, schema, submitted, f"/{key}/new",
                            status_code=422, errors=_validation_errors(e))
    except (AppError, HTTPException) as e:
        status, message = _error_status(e)
        return _render_form(request, viewer, key, schema, submitted, f"/{key}/new",
                            status_code=status, error=message)
    return RedirectResponse(url=f"/{key}", status_code=303)


@router.get("/{key}/{record_id}/edit", response_class=HTMLResponse)
def edit_record_form(key: str, record_id: int, request: Request, db: Session = Depends(get_db)):
    config, actions, guard = _action_context(key, "edit")
    viewer = get_viewer(request)
    denied = guard_page(request, guard, viewer)
    if denied:
        return denied

    record = config["repository"].get_by_id(db, record_id)
    if not record:
        raise NotFoundError("Record not found")
    values = {name: _form_value(value) for name, value in record.to_dict().items()}
    return _render_form(request, viewer, key, actions.update_schema, values, f"/{key}/{record_id}/edit")


@router.post("/{key}/{record_id}/edit", response_class=HTMLResponse)
async def update_record(key: str, record_id: int, request: Request, db: Session = Depends(get_db)):
    config, actions, guard = _action_context(key, "edit")
    viewer = get_viewer(request)
    denied = guard_page(request, guard, viewer)
    if denied:
        return denied

    record = config["repository"].get_by_id(db, record_id)
    if not record:
        raise NotFoundError("Record not found")
    current = {name: _form_value(value) for name, value in record.to_dict().items()}

    form = await request.form()
    schema = actions.update_schema
    submitted = {name: value for name, value in form.items() if name in schema.model_fields}
    # Only changed fields are sent; a cleared field becomes null
    changes = {
        name: (value if value != "" else None)
        for name, value in submitted.items()
        if value != current.get(name, "")
    }
    action_url = f"/{key}/{record_id}/edit"
    try:
        data = schema.model_validate(changes)
        actions.update(request, db, viewer, record_id, data)
    except ValidationError as e:
        return _render_form(request, viewer, key, schema, submitted, action_url,
                            status_code=422, errors=_validation_errors(e))
    except (AppError, HTTPException) as e:
        status, message = _error_status(e)
        return _render_form(request, viewer, key, schema, submitted, action_url,
                            status_code=status, error=message)
    return RedirectResponse(url=f"/{key}", status_code=303)


@router.post("/{key}/{record_id}/delete", response_class=HTMLResponse)
def delete_record(key: str, record_id: int, request: Request, db: Session = Depends(get_db)):
    _, actions, guard = _action_context(key, "delete")
    viewer = get_viewer(request)
    denied = guard_page(request, guard, viewer)
    if denied:
        return denied

    try:
        actions.delete(request, db, viewer, record_id)
    except (AppError, HTTPException) as e:
        status, message = _error_status(e)
        return _list_page(key, request, db, 1, viewer=viewer, error=message, status_code=status)
    return RedirectResponse(url=f"/{key}", status_code=303)


# =============================================================================
# ADMINISTRATION
# =============================================================================

SETTINGS_GUARD = RouteGuard(required_permission="system_settings:view")
SETTINGS_EDIT_GUARD = RouteGuard(required_permission="system_settings:edit")
AUDIT_GUARD = RouteGuard(required_role=Role.SUPER_ADMIN, show_access_denied=False)

SETTING_FIELD_PREFIX = "setting:"


@router.get("/settings", response_class=HTMLResponse)
def settings_page(request: Request, db: Session = Depends(get_db)):
    viewer = get_viewer(request)
    denied = guard_page(request, SETTINGS_GUARD, viewer)
    if denied:
        return denied
    return render(request, "settings.html", viewer, settings=SettingsRepository.all(db), error=None)


@router.post("/settings", response_class=HTMLResponse)
async def settings_submit(request: Request, db: Session = Depends(get_db)):
    viewer = get_viewer(request)
    denied = guard_page(request, SETTINGS_EDIT_GUARD, viewer)
    if denied:
        return denied

    form = await request.form()
    values = {
        name[len(SETTING_FIELD_PREFIX):]: value
        for name, value in form.items()
        if name.startswith(SETTING_FIELD_PREFIX)
    }
    new_key = (form.get("new_key") or "").strip()
    if new_key:
        values[new_key] = form.get("new_value") or ""
    try:
        update_settings_record(request, db, viewer, SettingsUpdate(settings=values))
    except ValidationError:
        return render(request, "settings.html", viewer, status_code=422,
                      settings=SettingsRepository.all(db), error="Validation failed")
    return RedirectResponse(url="/settings", status_code=303)


@router.get("/audit-logs", response_class=HTMLResponse)
def audit_logs_page(request: Request, page: int = 1, db: Session = Depends(get_db)):
    viewer = get_viewer(request)
    denied = guard_page(request, AUDIT_GUARD, viewer)
    if denied:
        return denied
    settings = request.app.state.settings
    result = paginate(AuditLogRepository.query(db), max(page, 1), settings.default_page_size)
    return render(
        request, "list.html", viewer,
        item=nav_item("audit_logs"),
        resource=None,
        columns=["id", "user_id", "event_type", "status", "ip_address", "created_at"],
        rows=result["items"],
        pagination=result["pagination"],
        exportable=False,
        error=None,
    )
