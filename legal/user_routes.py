"""
User management API.

- GET    /api/users         users:view
- GET    /api/users/{id}    users:view
- POST   /api/users         users:create
- PUT    /api/users/{id}    users:edit
- DELETE /api/users/{id}    users:delete

Accounts holding super_admin can only be created, changed or deleted by a
caller that also holds users:manage.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from sqlalchemy.orm import Session

from auth.auth_manager import Identity
from auth.auth_routes import get_client_ip
from auth.errors import BusinessRuleError, Forbidden, NotFoundError
from auth.permissions import Permission, Role
from auth.rbac_dependencies import require_permission
from legal.dependencies import PageParams, get_db, get_page_params
from legal.repository import UserRepository, paginate
from legal.resource_routes import RecordActions, run_write
from legal.schemas import UserCreate, UserUpdate

router = APIRouter(prefix="/api/users", tags=["users"])

MANAGE_USERS = Permission.parse("users:manage")


def _guard_super_admin(request: Request, actor, *roles) -> None:
    """Touching a super_admin account (or granting the role) needs users:manage"""
    if Role.SUPER_ADMIN not in roles:
        return
    if not request.app.state.evaluator.has_permission(actor.role, MANAGE_USERS):
        logger.warning(
            f"[GATE] User {actor.user_id} ({actor.role.value}) attempted to "
            f"manage a super_admin account on {request.method} {request.url.path}"
        )
        raise Forbidden()


def _check_unique(db: Session, email: Optional[str], username: Optional[str], exclude_id: int = None):
    if email:
        existing = UserRepository.find_by_email(db, email)
        if existing and existing.id != exclude_id:
            raise HTTPException(status_code=409, detail="Email already registered")
    if username:
        existing = UserRepository.find_by_username(db, username)
        if existing and existing.id != exclude_id:
            raise HTTPException(status_code=409, detail="Username already taken")


# ==================== USER ACTIONS ====================

def create_user_record(request: Request, db: Session, actor, data: UserCreate):
    _guard_super_admin(request, actor, data.role)
    _check_unique(db, data.email, data.username)

    auth_manager = request.app.state.auth_manager
    fields = data.model_dump(exclude={"password"})
    fields["role"] = data.role.value
    password_hash = auth_manager.hash_password(data.password)
    user = run_write(db, "creating user",
                     lambda: UserRepository.create(db, password_hash=password_hash, **fields))

    auth_manager.log_audit_event(
        actor.user_id, "user_created",
        {"user_id": user.id, "email": user.email, "role": user.role},
        ip_address=get_client_ip(request),
    )
    logger.info(f"User {user.id} ({user.role}) created by {actor.user_id}")
    return user


def update_user_record(request: Request, db: Session, actor, user_id: int, data: UserUpdate):
    user = UserRepository.get_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    updates = data.model_dump(exclude_unset=True, exclude={"password"})
    new_role = updates.get("role")
    _guard_super_admin(request, actor, user.role, new_role)

    if user.id == actor.user_id and updates.get("is_active") is False:
        raise BusinessRuleError("Cannot deactivate your own account")

    _check_unique(db, updates.get("email"), updates.get("username"), exclude_id=user.id)

    auth_manager = request.app.state.auth_manager
    if new_role is not None:
        updates["role"] = new_role.value
    if data.password:
        updates["password_hash"] = auth_manager.hash_password(data.password)

    old_role = user.role
    user = run_write(db, "updating user", lambda: UserRepository.update(db, user_id, **updates))

    if user.role != old_role:
        auth_manager.log_audit_event(
            actor.user_id, "role_changed",
            {"user_id": user.id, "from": old_role, "to": user.role},
            ip_address=get_client_ip(request),
        )
    auth_manager.log_audit_event(
        actor.user_id, "user_updated",
        {"user_id": user.id, "fields": sorted(k for k in updates if k != "password_hash")},
        ip_address=get_client_ip(request),
    )
    return user


def delete_user_record(request: Request, db: Session, actor, user_id: int) -> None:
    # Holding users:delete is not enough to remove yourself
    if user_id == actor.user_id:
        raise BusinessRuleError("Cannot delete your own account")

    user = UserRepository.get_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")

    _guard_super_admin(request, actor, user.role)

    email = user.email
    run_write(db, "deleting user", lambda: UserRepository.delete(db, user_id))
    request.app.state.auth_manager.log_audit_event(
        actor.user_id, "user_deleted",
        {"user_id": user_id, "email": email},
        ip_address=get_client_ip(request),
    )


USER_ACTIONS = RecordActions(UserCreate, UserUpdate, create_user_record, update_user_record, delete_user_record)


# ==================== ROUTES ====================

@router.get("", dependencies=[Depends(require_permission("users:view"))])
async def list_users(
    search: Optional[str] = None,
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    pages: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    query = UserRepository.query(db, search=search, role=role.value if role else None, is_active=is_active)
    return {"success": True, **paginate(query, pages.page, pages.limit)}


@router.get("/{user_id}", dependencies=[Depends(require_permission("users:view"))])
async def get_user(user_id: int, db: Session = Depends(get_db)):
    user = UserRepository.get_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    return {"success": True, "data": user.to_dict()}


@router.post("", status_code=201)
async def create_user(
    data: UserCreate,
    request: Request,
    identity: Identity = Depends(require_permission("users:create")),
    db: Session = Depends(get_db),
):
    user = create_user_record(request, db, identity, data)
    return {"success": True, "data": user.to_dict()}


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    request: Request,
    identity: Identity = Depends(require_permission("users:edit")),
    db: Session = Depends(get_db),
):
    user = update_user_record(request, db, identity, user_id, data)
    return {"success": True, "data": user.to_dict()}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    request: Request,
    identity: Identity = Depends(require_permission("users:delete")),
    db: Session = Depends(get_db),
):
    delete_user_record(request, db, identity, user_id)
    return {"success": True, "message": "User deleted"}
