"""
Database models for the litigation practice.

Models:
- Client: Individuals and companies the firm represents
- Case: A legal matter for one client
- Hearing: A court session within a case
- Invoice: Billing for a client (optionally tied to a case)
- SystemSetting: Key/value configuration editable from the settings page

Names are stored in Arabic and English side by side (`*_ar`, `*_en`).
"""

from datetime import datetime

from sqlalchemy import (
    Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.orm import relationship

from storage.database import Base


def _iso(value):
    return value.isoformat() if value else None


class Client(Base):
    """
    A client of the firm.

    Attributes:
        client_type: individual or company
        cash_pro_bono: cash (billed) or probono
        status: active, inactive or disabled
    """

    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_name_ar = Column(String(200), nullable=False, index=True)
    client_name_en = Column(String(200))
    client_type = Column(String(20), nullable=False, default="individual")
    cash_pro_bono = Column(String(20), nullable=False, default="cash")
    status = Column(String(20), nullable=False, default="active", index=True)
    phone = Column(String(50))
    email = Column(String(255))
    address = Column(Text)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cases = relationship("Case", back_populates="client", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.client_name_en or self.client_name_ar}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "client_name_ar": self.client_name_ar,
            "client_name_en": self.client_name_en,
            "client_type": self.client_type,
            "cash_pro_bono": self.cash_pro_bono,
            "status": self.status,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Case(Base):
    """A legal matter. `matter_*` fields follow the court filing vocabulary."""

    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    matter_ar = Column(String(500), nullable=False)
    matter_en = Column(String(500))
    matter_subject = Column(Text)
    matter_status = Column(String(20), nullable=False, default="active", index=True)
    matter_category = Column(String(30), nullable=False, default="civil")
    matter_importance = Column(String(20), nullable=False, default="medium")
    lawyer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="cases")
    hearings = relationship("Hearing", back_populates="case", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Case(id={self.id}, client_id={self.client_id}, status='{self.matter_status}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "matter_ar": self.matter_ar,
            "matter_en": self.matter_en,
            "matter_subject": self.matter_subject,
            "matter_status": self.matter_status,
            "matter_category": self.matter_category,
            "matter_importance": self.matter_importance,
            "lawyer_id": self.lawyer_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Hearing(Base):
    __tablename__ = "hearings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    hearing_date = Column(Date, nullable=False, index=True)
    hearing_type = Column(String(20), default="initial")
    hearing_result = Column(String(20), default="pending")
    hearing_duration = Column(String(20))
    court = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    case = relationship("Case", back_populates="hearings")

    def to_dict(self):
        return {
            "id": self.id,
            "case_id": self.case_id,
            "hearing_date": _iso(self.hearing_date),
            "hearing_type": self.hearing_type,
            "hearing_result": self.hearing_result,
            "hearing_duration": self.hearing_duration,
            "court": self.court,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number = Column(String(50), unique=True, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(Integer, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    invoice_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EGP")
    invoice_status = Column(String(20), nullable=False, default="draft", index=True)
    invoice_type = Column(String(20), nullable=False, default="service")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "client_id": self.client_id,
            "case_id": self.case_id,
            "invoice_date": _iso(self.invoice_date),
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "invoice_status": self.invoice_status,
            "invoice_type": self.invoice_type,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
            "updated_by": self.updated_by,
            "updated_at": _iso(self.updated_at),
        }
