"""
Pydantic schemas for the litigation API.

These schemas handle request validation. Responses are built from the
models' to_dict() so list endpoints stay cheap.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from auth.permissions import Role


CLIENT_TYPES = "^(individual|company)$"
CLIENT_BILLING = "^(cash|probono)$"
CLIENT_STATUSES = "^(active|inactive|disabled)$"

CASE_STATUSES = "^(active|pending|completed|cancelled|on_hold|appealed)$"
CASE_CATEGORIES = (
    "^(civil|commercial|criminal|administrative|labor|family|real_estate|intellectual_property)$"
)
CASE_IMPORTANCE = "^(low|medium|high|critical)$"

HEARING_RESULTS = "^(won|lost|postponed|pending)$"
HEARING_TYPES = "^(initial|procedural|evidence|witness|expert|final|appeal|execution)$"
HEARING_DURATIONS = "^(30min|1hour|2hours|3hours|4hours|fullday)$"

INVOICE_CURRENCIES = "^(EGP|USD|EUR)$"
INVOICE_STATUSES = "^(draft|sent|paid|overdue|cancelled)$"
INVOICE_TYPES = "^(service|expenses|advance)$"


def reject_null(v):
    """Partial updates may omit a required column but never set it to null"""
    if v is None:
        raise ValueError("Field cannot be null")
    return v


# ============ Clients ============

class ClientCreate(BaseModel):
    """
    Example:
        {"client_name_ar": "شركة النيل", "client_name_en": "Nile Co.",
         "client_type": "company", "cash_pro_bono": "cash"}
    """
    client_name_ar: str = Field(..., min_length=2, max_length=200)
    client_name_en: Optional[str] = Field(None, max_length=200)
    client_type: str = Field(..., pattern=CLIENT_TYPES)
    cash_pro_bono: str = Field(..., pattern=CLIENT_BILLING)
    status: str = Field("active", pattern=CLIENT_STATUSES)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    address: Optional[str] = None


class ClientUpdate(BaseModel):
    client_name_ar: Optional[str] = Field(None, min_length=2, max_length=200)
    client_name_en: Optional[str] = Field(None, max_length=200)
    client_type: Optional[str] = Field(None, pattern=CLIENT_TYPES)
    cash_pro_bono: Optional[str] = Field(None, pattern=CLIENT_BILLING)
    status: Optional[str] = Field(None, pattern=CLIENT_STATUSES)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    address: Optional[str] = None

    @field_validator("client_name_ar", "client_type", "cash_pro_bono", "status")
    def required_fields(cls, v):
        return reject_null(v)


# ============ Cases ============

class CaseCreate(BaseModel):
    client_id: int
    matter_ar: str = Field(..., min_length=3, max_length=500)
    matter_en: Optional[str] = Field(None, min_length=3, max_length=500)
    matter_subject: Optional[str] = None
    matter_status: str = Field("active", pattern=CASE_STATUSES)
    matter_category: str = Field("civil", pattern=CASE_CATEGORIES)
    matter_importance: str = Field("medium", pattern=CASE_IMPORTANCE)
    lawyer_id: Optional[int] = None


class CaseUpdate(BaseModel):
    client_id: Optional[int] = None
    matter_ar: Optional[str] = Field(None, min_length=3, max_length=500)
    matter_en: Optional[str] = Field(None, min_length=3, max_length=500)
    matter_subject: Optional[str] = None
    matter_status: Optional[str] = Field(None, pattern=CASE_STATUSES)
    matter_category: Optional[str] = Field(None, pattern=CASE_CATEGORIES)
    matter_importance: Optional[str] = Field(None, pattern=CASE_IMPORTANCE)
    lawyer_id: Optional[int] = None

    @field_validator("client_id", "matter_ar", "matter_status", "matter_category", "matter_importance")
    def required_fields(cls, v):
        return reject_null(v)


# ============ Hearings ============

class HearingCreate(BaseModel):
    case_id: int
    hearing_date: date
    hearing_type: str = Field("initial", pattern=HEARING_TYPES)
    hearing_result: str = Field("pending", pattern=HEARING_RESULTS)
    hearing_duration: Optional[str] = Field(None, pattern=HEARING_DURATIONS)
    court: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class HearingUpdate(BaseModel):
    hearing_date: Optional[date] = None
    hearing_type: Optional[str] = Field(None, pattern=HEARING_TYPES)
    hearing_result: Optional[str] = Field(None, pattern=HEARING_RESULTS)
    hearing_duration: Optional[str] = Field(None, pattern=HEARING_DURATIONS)
    court: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None

    @field_validator("hearing_date", "hearing_type", "hearing_result")
    def required_fields(cls, v):
        return reject_null(v)


# ============ Invoices ============

class InvoiceCreate(BaseModel):
    invoice_number: str = Field(..., min_length=1, max_length=50)
    client_id: int
    case_id: Optional[int] = None
    invoice_date: date
    amount: Decimal = Field(..., ge=0)
    currency: str = Field("EGP", pattern=INVOICE_CURRENCIES)
    invoice_status: str = Field("draft", pattern=INVOICE_STATUSES)
    invoice_type: str = Field("service", pattern=INVOICE_TYPES)


class InvoiceUpdate(BaseModel):
    case_id: Optional[int] = None
    invoice_date: Optional[date] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, pattern=INVOICE_CURRENCIES)
    invoice_status: Optional[str] = Field(None, pattern=INVOICE_STATUSES)
    invoice_type: Optional[str] = Field(None, pattern=INVOICE_TYPES)

    @field_validator("invoice_date", "amount", "currency", "invoice_status", "invoice_type")
    def required_fields(cls, v):
        return reject_null(v)


# ============ Users ============

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name_ar: Optional[str] = Field(None, max_length=255)
    full_name_en: Optional[str] = Field(None, max_length=255)
    role: Role = Role.STAFF
    is_active: bool = True

    @field_validator("email")
    def normalise_email(cls, v):
        return v.lower()


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    full_name_ar: Optional[str] = Field(None, max_length=255)
    full_name_en: Optional[str] = Field(None, max_length=255)
    role: Optional[Role] = None
    is_active: Optional[bool] = None

    @field_validator("username", "email", "password", "role", "is_active")
    def required_fields(cls, v):
        return reject_null(v)

    @field_validator("email")
    def normalise_email(cls, v):
        return v.lower() if v else v


# ============ Settings ============

class SettingsUpdate(BaseModel):
    """Example: {"settings": {"firm_name_ar": "مكتب المحاماة", "default_currency": "EGP"}}"""
    settings: Dict[str, str] = Field(..., min_length=1)

    @field_validator("settings")
    def validate_keys(cls, v):
        for key in v:
            if not key or len(key) > 100:
                raise ValueError(f"Invalid setting key: {key!r}")
        return v
