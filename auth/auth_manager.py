"""
Authentication manager: bcrypt password hashing, signed session tokens
and resolution of the current identity.
"""

import json
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import dotenv
import jwt
from loguru import logger

from auth.cache_manager import InMemoryCacheManager
from auth.errors import AuthenticationFailed, PolicyConfigurationError, Unauthenticated
from auth.models import AuditLog, User
from auth.permissions import Role, parse_role
from legal.repository import UserRepository
from storage.database import DatabaseManager

dotenv.load_dotenv()

JWT_ALGORITHM = "HS256"


class AuthConfig:
    """Token and hashing settings, read from the environment by default"""

    def __init__(
        self,
        jwt_secret: str = None,
        jwt_expiry: int = None,
        bcrypt_rounds: int = None,
    ):
        self.jwt_secret = jwt_secret or os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        if len(self.jwt_secret.encode("utf-8")) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")

        self.jwt_expiry = jwt_expiry if jwt_expiry is not None else int(os.getenv("JWT_EXPIRY_SECONDS", "3600"))
        self.bcrypt_rounds = bcrypt_rounds or int(os.getenv("BCRYPT_ROUNDS", "12"))


@dataclass(frozen=True)
class Identity:
    """The authenticated caller for one request"""
    user_id: int
    role: Role
    email: str
    issued_at: datetime
    expires_at: datetime
    jti: str
    username: str = ""
    full_name_ar: Optional[str] = None
    full_name_en: Optional[str] = None

    def display_name(self, language: str = "ar") -> str:
        if language == "en":
            return self.full_name_en or self.full_name_ar or self.username or self.email
        return self.full_name_ar or self.full_name_en or self.username or self.email


class AuthManager:
    """Authentication manager"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        config: AuthConfig = None,
        cache: InMemoryCacheManager = None,
    ):
        self.db_manager = db_manager
        self.config = config or AuthConfig()
        self.cache = cache or InMemoryCacheManager()
        # Checked against on unknown emails so every failed login pays the bcrypt cost
        self._dummy_hash = self.hash_password(secrets.token_urlsafe(16))
        logger.info("AuthManager initialized")

    # ==================== PASSWORD HASHING ====================

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt (input truncated to bcrypt's 72 bytes)"""
        password_bytes = password.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=self.config.bcrypt_rounds)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            logger.error("[VERIFY] Password hash is None or empty")
            return False

        hash_bytes = password_hash if isinstance(password_hash, bytes) else password_hash.encode("utf-8")
        try:
            return bcrypt.checkpw(password.encode("utf-8")[:72], hash_bytes)
        except ValueError as e:
            # Malformed stored hash
            logger.error(f"[VERIFY] Stored hash rejected by bcrypt: {e}")
            return False

    # ==================== LOGIN ====================

    def login(self, email: str, password: str, ip_address: str = None, user_agent: str = None) -> dict:
        """
        Verify credentials and issue an access token.

        Unknown email, wrong password and disabled account all raise the same
        AuthenticationFailed so callers cannot tell which one it was.
        """
        email = (email or "").strip().lower()
        logger.info(f"[LOGIN] Starting login for email: {email}")

        session = self.db_manager.session()
        try:
            user = UserRepository.find_by_email(session, email)
            if not user:
                self.verify_password(password, self._dummy_hash)
                logger.warning(f"[LOGIN] User not found: {email}")
                self._login_failed(None, email, "user_not_found", ip_address, user_agent)
                raise AuthenticationFailed()

            if not self.verify_password(password, user.password_hash):
                logger.warning(f"[LOGIN] Password verification failed for: {email}")
                self._login_failed(user.id, email, "bad_password", ip_address, user_agent)
                raise AuthenticationFailed()

            if not user.is_active:
                logger.warning(f"[LOGIN] Account is disabled for: {email}")
                self._login_failed(user.id, email, "inactive", ip_address, user_agent)
                raise AuthenticationFailed()

            user.last_login = datetime.utcnow()
            session.commit()

            token = self.issue_token(user)
            logger.info(f"[LOGIN] User logged in successfully: {email} ({user.role})")
            self.log_audit_event(user.id, "login_success", {"email": email},
                                 ip_address=ip_address, user_agent=user_agent)

            return {
                "success": True,
                **token,
                "user": user.to_dict(),
            }
        finally:
            session.close()

    def _login_failed(self, user_id, email, reason, ip_address, user_agent):
        self.cache.log_security_event(user_id, "login_failed", {"email": email, "reason": reason})
        self.log_audit_event(user_id, "login_failed", {"email": email, "reason": reason},
                             status="failure", ip_address=ip_address, user_agent=user_agent)

    # ==================== TOKENS ====================

    def issue_token(self, user: User) -> dict:
        """Sign a new access token for the user"""
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=self.config.jwt_expiry)
        access_token = jwt.encode(
            {
                "sub": str(user.id),
                "email": user.email,
                "role": user.role,
                "iat": now,
                "exp": expires_at,
                "jti": secrets.token_hex(16),
            },
            self.config.jwt_secret,
            algorithm=JWT_ALGORITHM,
        )
        logger.debug(f"[TOKEN] Issued token for user: {user.id}")
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": self.config.jwt_expiry,
        }

    def verify_token(self, token: str) -> Optional[dict]:
        """Verify JWT signature and expiry; returns the payload or None"""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self.config.jwt_secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp", "iat", "jti"]},
            )
            logger.debug(f"[TOKEN_VERIFY] Token verified successfully for user: {payload.get('sub')}")
            return payload
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid token: {e}")
            return None

    def resolve_current(self, token: str) -> Identity:
        """
        Turn a bearer credential into an Identity.

        The role comes from the stored user record, so role changes and
        deactivation apply on the very next request.
        """
        payload = self.verify_token(token)
        if payload is None:
            raise Unauthenticated("Invalid or expired token")

        if self.cache.is_token_blacklisted(payload["jti"]):
            logger.warning(f"[TOKEN_VERIFY] Revoked token used for user: {payload.get('sub')}")
            raise Unauthenticated("Token has been revoked")

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            logger.warning(f"[TOKEN_VERIFY] Malformed subject: {payload.get('sub')!r}")
            raise Unauthenticated("Invalid or expired token")

        user = self.get_user(user_id)
        if user is None or not user.is_active:
            logger.warning(f"[TOKEN_VERIFY] User missing or inactive: {user_id}")
            raise Unauthenticated("Account is not active")

        try:
            role = parse_role(user.role)
        except PolicyConfigurationError:
            logger.error(f"[TOKEN_VERIFY] User {user_id} has unknown role {user.role!r}")
            raise Unauthenticated("Account is not active")

        return Identity(
            user_id=user.id,
            role=role,
            email=user.email,
            issued_at=datetime.fromtimestamp(payload["iat"], timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
            jti=payload["jti"],
            username=user.username,
            full_name_ar=user.full_name_ar,
            full_name_en=user.full_name_en,
        )

    def refresh(self, token: str) -> dict:
        """Exchange a still-valid token for a fresh one and revoke the old one"""
        identity = self.resolve_current(token)
        user = self.get_user(identity.user_id)
        new_token = self.issue_token(user)
        self._revoke(identity.jti, identity.expires_at)
        logger.info(f"[REFRESH_TOKEN] Token refreshed for user: {identity.user_id}")
        return {"success": True, **new_token}

    def logout(self, token: str, ip_address: str = None) -> dict:
        """Revoke the token until its natural expiry"""
        payload = self.verify_token(token)
        if payload is None:
            raise Unauthenticated("Invalid or expired token")

        self._revoke(payload["jti"], datetime.fromtimestamp(payload["exp"], timezone.utc))
        user_id = int(payload["sub"]) if str(payload["sub"]).isdigit() else None
        self.log_audit_event(user_id, "logout", {}, ip_address=ip_address)
        logger.info(f"[LOGOUT] User logged out: {payload['sub']}")
        return {"success": True, "message": "Logged out successfully"}

    def _revoke(self, jti: str, expires_at: datetime):
        ttl = int((expires_at - datetime.now(timezone.utc)).total_seconds()) + 1
        self.cache.blacklist_token(jti, ttl=ttl)

    # ==================== USERS ====================

    def get_user(self, user_id: int) -> Optional[User]:
        session = self.db_manager.session()
        try:
            return UserRepository.get_by_id(session, user_id)
        finally:
            session.close()

    # ==================== AUDIT LOGGING ====================

    def log_audit_event(self, user_id, event_type: str, event_details: dict = None,
                        status: str = "success", ip_address: str = None, user_agent: str = None):
        """Log security audit event"""
        logger.debug(f"[AUDIT] Logging audit event - user: {user_id}, event: {event_type}, status: {status}")

        session = self.db_manager.session()
        try:
            audit_log = AuditLog(
                user_id=user_id,
                event_type=event_type,
                event_details=json.dumps(event_details or {}, ensure_ascii=False),
                ip_address=ip_address,
                user_agent=user_agent,
                status=status,
            )
            session.add(audit_log)
            session.commit()
            logger.info(f"[AUDIT] {event_type} for user {user_id} - {status}")
        except Exception as e:
            # Audit trail must never break the request it describes
            logger.error(f"[AUDIT] Error logging audit event: {type(e).__name__}: {e}")
            session.rollback()
        finally:
            session.close()
