"""
SQLAlchemy models for user accounts and the security audit log.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from auth.permissions import Role
from storage.database import Base


class User(Base):
    """User accounts. Each user holds exactly one role."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name_ar = Column(String(255))
    full_name_en = Column(String(255))

    # Stored as the Role value; validated on write by the users API
    role = Column(String(20), nullable=False, default=Role.STAFF.value)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def display_name(self, language: str = "ar") -> str:
        if language == "en":
            return self.full_name_en or self.full_name_ar or self.username
        return self.full_name_ar or self.full_name_en or self.username

    def to_dict(self) -> dict:
        """Public representation (never includes the password hash)"""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name_ar": self.full_name_ar,
            "full_name_en": self.full_name_en,
            "role": self.role,
            "is_active": self.is_active,
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AuditLog(Base):
    """Security audit log for auth and user-management events"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = Column(String(50), nullable=False)  # login_success, login_failed, logout, user_deleted, ...
    event_details = Column(Text)  # JSON string
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    status = Column(String(20), default="success")  # success, failure
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "event_details": self.event_details,
            "ip_address": self.ip_address,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
