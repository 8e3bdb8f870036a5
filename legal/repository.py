"""
Data access layer for users and the litigation records.

The repository pattern isolates database operations from the route handlers.
Methods take an explicit Session and never decide authorization.
"""

import logging
import math
from typing import Any, Dict, Optional, Type

from sqlalchemy import desc, func, or_
from sqlalchemy.orm import Query, Session

from auth.models import AuditLog, User
from legal.models import Case, Client, Hearing, Invoice, SystemSetting

logger = logging.getLogger(__name__)


def paginate(query: Query, page: int, limit: int) -> Dict[str, Any]:
    """
    Slice a query into one page.

    Returns:
        {"items": [...to_dict()], "pagination": {page, limit, total, pages}}
    """
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [item.to_dict() for item in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


class _CrudRepository:
    """Shared create/get/update/delete for simple id-keyed models"""

    model: Type = None

    @classmethod
    def get_by_id(cls, db: Session, record_id: int):
        return db.get(cls.model, record_id)

    @classmethod
    def create(cls, db: Session, **fields):
        record = cls.model(**fields)
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info(f"Created {cls.model.__tablename__} {record.id}")
        return record

    @classmethod
    def update(cls, db: Session, record_id: int, **updates):
        """
        Update fields on an existing record.

        Returns:
            Updated record, or None if not found
        """
        record = db.get(cls.model, record_id)
        if not record:
            return None

        for key, value in updates.items():
            if hasattr(record, key):
                setattr(record, key, value)

        db.commit()
        db.refresh(record)
        logger.info(f"Updated {cls.model.__tablename__} {record_id}")
        return record

    @classmethod
    def delete(cls, db: Session, record_id: int) -> bool:
        record = db.get(cls.model, record_id)
        if not record:
            return False

        db.delete(record)
        db.commit()
        logger.warning(f"Deleted {cls.model.__tablename__} {record_id}")
        return True


class ClientRepository(_CrudRepository):
    model = Client

    @staticmethod
    def query(
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        client_type: Optional[str] = None,
        cash_pro_bono: Optional[str] = None,
    ) -> Query:
        query = db.query(Client)
        if status:
            query = query.filter(Client.status == status)
        if client_type:
            query = query.filter(Client.client_type == client_type)
        if cash_pro_bono:
            query = query.filter(Client.cash_pro_bono == cash_pro_bono)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Client.client_name_ar.ilike(pattern),
                Client.client_name_en.ilike(pattern),
                Client.email.ilike(pattern),
                Client.phone.ilike(pattern),
            ))
        return query.order_by(desc(Client.created_at), desc(Client.id))


class CaseRepository(_CrudRepository):
    model = Case

    @staticmethod
    def query(
        db: Session,
        search: Optional[str] = None,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        lawyer_id: Optional[int] = None,
        category: Optional[str] = None,
    ) -> Query:
        query = db.query(Case)
        if status:
            query = query.filter(Case.matter_status == status)
        if client_id:
            query = query.filter(Case.client_id == client_id)
        if lawyer_id:
            query = query.filter(Case.lawyer_id == lawyer_id)
        if category:
            query = query.filter(Case.matter_category == category)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Case.matter_ar.ilike(pattern),
                Case.matter_en.ilike(pattern),
                Case.matter_subject.ilike(pattern),
            ))
        return query.order_by(desc(Case.created_at), desc(Case.id))


class HearingRepository(_CrudRepository):
    model = Hearing

    @staticmethod
    def query(
        db: Session,
        case_id: Optional[int] = None,
        hearing_result: Optional[str] = None,
        hearing_type: Optional[str] = None,
        date_from=None,
        date_to=None,
    ) -> Query:
        query = db.query(Hearing)
        if case_id:
            query = query.filter(Hearing.case_id == case_id)
        if hearing_result:
            query = query.filter(Hearing.hearing_result == hearing_result)
        if hearing_type:
            query = query.filter(Hearing.hearing_type == hearing_type)
        if date_from:
            query = query.filter(Hearing.hearing_date >= date_from)
        if date_to:
            query = query.filter(Hearing.hearing_date <= date_to)
        return query.order_by(Hearing.hearing_date, Hearing.id)


class InvoiceRepository(_CrudRepository):
    model = Invoice

    @staticmethod
    def query(
        db: Session,
        search: Optional[str] = None,
        invoice_status: Optional[str] = None,
        invoice_type: Optional[str] = None,
        currency: Optional[str] = None,
        client_id: Optional[int] = None,
    ) -> Query:
        query = db.query(Invoice)
        if invoice_status:
            query = query.filter(Invoice.invoice_status == invoice_status)
        if invoice_type:
            query = query.filter(Invoice.invoice_type == invoice_type)
        if currency:
            query = query.filter(Invoice.currency == currency)
        if client_id:
            query = query.filter(Invoice.client_id == client_id)
        if search:
            query = query.filter(Invoice.invoice_number.ilike(f"%{search}%"))
        return query.order_by(desc(Invoice.invoice_date), desc(Invoice.id))

    @staticmethod
    def number_exists(db: Session, invoice_number: str) -> bool:
        return db.query(Invoice.id).filter(Invoice.invoice_number == invoice_number).first() is not None


class UserRepository(_CrudRepository):
    """User lookups for the identity provider and the users API"""

    model = User

    @staticmethod
    def find_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == (email or "").strip().lower()).first()

    @staticmethod
    def find_by_username(db: Session, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    @staticmethod
    def query(
        db: Session,
        search: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Query:
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.full_name_ar.ilike(pattern),
                User.full_name_en.ilike(pattern),
            ))
        return query.order_by(User.id)

    @staticmethod
    def count_by_role(db: Session) -> Dict[str, int]:
        rows = db.query(User.role, func.count(User.id)).group_by(User.role).all()
        return {role: count for role, count in rows}


class AuditLogRepository:
    @staticmethod
    def query(
        db: Session,
        user_id: Optional[int] = None,
        event_type: Optional[str] = None,
    ) -> Query:
        query = db.query(AuditLog)
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if event_type:
            query = query.filter(AuditLog.event_type == event_type)
        return query.order_by(desc(AuditLog.created_at), desc(AuditLog.id))


class SettingsRepository:
    @staticmethod
    def all(db: Session) -> Dict[str, Optional[str]]:
        return {s.key: s.value for s in db.query(SystemSetting).order_by(SystemSetting.key).all()}

    @staticmethod
    def upsert(db: Session, values: Dict[str, str], updated_by: Optional[int] = None) -> Dict[str, Optional[str]]:
        for key, value in values.items():
            setting = db.get(SystemSetting, key)
            if setting is None:
                setting = SystemSetting(key=key)
                db.add(setting)
            setting.value = value
            setting.updated_by = updated_by
        db.commit()
        logger.info(f"Updated settings: {sorted(values)}")
        return SettingsRepository.all(db)


class StatsRepository:
    """Aggregate counts for the dashboard and reports"""

    @staticmethod
    def _count_by(db: Session, column) -> Dict[str, int]:
        return {key: count for key, count in db.query(column, func.count()).group_by(column).all()}

    @staticmethod
    def dashboard(db: Session) -> Dict[str, Any]:
        return {
            "clients": db.query(func.count(Client.id)).scalar(),
            "active_clients": db.query(func.count(Client.id)).filter(Client.status == "active").scalar(),
            "cases": db.query(func.count(Case.id)).scalar(),
            "active_cases": db.query(func.count(Case.id)).filter(Case.matter_status == "active").scalar(),
            "hearings": db.query(func.count(Hearing.id)).scalar(),
            "invoices": db.query(func.count(Invoice.id)).scalar(),
        }

    @staticmethod
    def summary(db: Session) -> Dict[str, Any]:
        totals = db.query(Invoice.currency, func.sum(Invoice.amount)).group_by(Invoice.currency).all()
        return {
            "cases_by_status": StatsRepository._count_by(db, Case.matter_status),
            "cases_by_category": StatsRepository._count_by(db, Case.matter_category),
            "hearings_by_result": StatsRepository._count_by(db, Hearing.hearing_result),
            "invoices_by_status": StatsRepository._count_by(db, Invoice.invoice_status),
            "invoice_totals": {currency: float(total or 0) for currency, total in totals},
        }
