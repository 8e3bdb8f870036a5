"""
Litigation records API.

Exposed endpoints (each guarded by the permission shown):
- GET    /api/clients              clients:view
- GET    /api/clients/export       clients:export  (CSV)
- GET    /api/clients/{id}         clients:view
- POST   /api/clients              clients:create
- PUT    /api/clients/{id}         clients:edit
- DELETE /api/clients/{id}         clients:delete
- same shape for /api/cases (cases:*), /api/hearings (hearings:*)
  and /api/invoices (invoices:*)

The write paths live in plain record actions (create_client_record, ...)
so the HTML forms in ui.pages run exactly the same checks. Actions never
authorize: callers gate them first.
"""

import csv
import io
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterable, List, Optional, Type

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from loguru import logger
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.auth_manager import Identity
from auth.errors import AppError, NotFoundError
from auth.rbac_dependencies import require_permission
from legal.dependencies import PageParams, get_db, get_page_params
from legal.repository import (
    CaseRepository, ClientRepository, HearingRepository, InvoiceRepository, paginate,
)
from legal.schemas import (
    CaseCreate, CaseUpdate, ClientCreate, ClientUpdate,
    HearingCreate, HearingUpdate, InvoiceCreate, InvoiceUpdate,
)

clients_router = APIRouter(prefix="/api/clients", tags=["clients"])
cases_router = APIRouter(prefix="/api/cases", tags=["cases"])
hearings_router = APIRouter(prefix="/api/hearings", tags=["hearings"])
invoices_router = APIRouter(prefix="/api/invoices", tags=["invoices"])

routers = [clients_router, cases_router, hearings_router, invoices_router]


@dataclass(frozen=True)
class RecordActions:
    """
    Write operations for one resource, shared by the API and the HTML forms.

    create(request, db, actor, data), update(request, db, actor, record_id, data)
    and delete(request, db, actor, record_id) raise AppError/HTTPException on
    a rejected write. actor is anything with user_id and role.
    """
    create_schema: Type[BaseModel]
    update_schema: Type[BaseModel]
    create: Callable
    update: Callable
    delete: Callable
    export: Optional[Callable] = None


def csv_response(filename: str, columns: List[str], rows: Iterable[dict]) -> Response:
    buffer = io.StringIO()
    # BOM so spreadsheet apps detect UTF-8 Arabic text
    buffer.write("\ufeff")
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _server_error(action: str, e: Exception):
    logger.error(f"Error {action}: {type(e).__name__}: {e}")
    raise HTTPException(status_code=500, detail=f"Failed {action}")


def run_write(db: Session, action: str, operation: Callable[[], Any]):
    """Run a write; unexpected failures roll back and surface as a 500"""
    try:
        return operation()
    except (AppError, HTTPException):
        raise
    except Exception as e:
        db.rollback()
        _server_error(action, e)


# ==================== CLIENTS ====================

CLIENT_EXPORT_COLUMNS = [
    "id", "client_name_ar", "client_name_en", "client_type", "cash_pro_bono",
    "status", "phone", "email", "created_at",
]


def create_client_record(request: Request, db: Session, actor, data: ClientCreate):
    client = run_write(db, "creating client",
                       lambda: ClientRepository.create(db, created_by=actor.user_id, **data.model_dump()))
    logger.info(f"Client {client.id} created by user {actor.user_id}")
    return client


def update_client_record(request: Request, db: Session, actor, client_id: int, data: ClientUpdate):
    client = run_write(db, "updating client",
                       lambda: ClientRepository.update(db, client_id, **data.model_dump(exclude_unset=True)))
    if not client:
        raise NotFoundError("Client not found")
    return client


def delete_client_record(request: Request, db: Session, actor, client_id: int) -> None:
    if not run_write(db, "deleting client", lambda: ClientRepository.delete(db, client_id)):
        raise NotFoundError("Client not found")
    logger.info(f"Client {client_id} deleted by user {actor.user_id}")


def export_clients_csv(db: Session, search: Optional[str] = None, status: Optional[str] = None) -> Response:
    clients = ClientRepository.query(db, search=search, status=status).all()
    logger.info(f"Exporting {len(clients)} clients")
    return csv_response("clients.csv", CLIENT_EXPORT_COLUMNS, (c.to_dict() for c in clients))


@clients_router.get("", dependencies=[Depends(require_permission("clients:view"))])
async def list_clients(
    search: Optional[str] = None,
    status: Optional[str] = None,
    type: Optional[str] = None,
    cash_pro_bono: Optional[str] = None,
    pages: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    query = ClientRepository.query(db, search=search, status=status, client_type=type,
                                   cash_pro_bono=cash_pro_bono)
    return {"success": True, **paginate(query, pages.page, pages.limit)}


@clients_router.get("/export", dependencies=[Depends(require_permission("clients:export"))])
async def export_clients(
    search: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return export_clients_csv(db, search=search, status=status)


@clients_router.get("/{client_id}", dependencies=[Depends(require_permission("clients:view"))])
async def get_client(client_id: int, db: Session = Depends(get_db)):
    client = ClientRepository.get_by_id(db, client_id)
    if not client:
        raise NotFoundError("Client not found")
    return {"success": True, "data": client.to_dict()}


@clients_router.post("", status_code=201)
async def create_client(
    data: ClientCreate,
    request: Request,
    identity: Identity = Depends(require_permission("clients:create")),
    db: Session = Depends(get_db),
):
    client = create_client_record(request, db, identity, data)
    return {"success": True, "data": client.to_dict()}


@clients_router.put("/{client_id}")
async def update_client(
    client_id: int,
    data: ClientUpdate,
    request: Request,
    identity: Identity = Depends(require_permission("clients:edit")),
    db: Session = Depends(get_db),
):
    client = update_client_record(request, db, identity, client_id, data)
    return {"success": True, "data": client.to_dict()}


@clients_router.delete("/{client_id}")
async def delete_client(
    client_id: int,
    request: Request,
    identity: Identity = Depends(require_permission("clients:delete")),
    db: Session = Depends(get_db),
):
    delete_client_record(request, db, identity, client_id)
    return {"success": True, "message": "Client deleted"}


# ==================== CASES ====================

CASE_EXPORT_COLUMNS = [
    "id", "client_id", "matter_ar", "matter_en", "matter_status",
    "matter_category", "matter_importance", "lawyer_id", "created_at",
]


def create_case_record(request: Request, db: Session, actor, data: CaseCreate):
    if not ClientRepository.get_by_id(db, data.client_id):
        raise NotFoundError("Client not found")
    case = run_write(db, "creating case", lambda: CaseRepository.create(db, **data.model_dump()))
    logger.info(f"Case {case.id} created by user {actor.user_id}")
    return case


def update_case_record(request: Request, db: Session, actor, case_id: int, data: CaseUpdate):
    updates = data.model_dump(exclude_unset=True)
    if "client_id" in updates and not ClientRepository.get_by_id(db, updates["client_id"]):
        raise NotFoundError("Client not found")
    case = run_write(db, "updating case", lambda: CaseRepository.update(db, case_id, **updates))
    if not case:
        raise NotFoundError("Case not found")
    return case


def delete_case_record(request: Request, db: Session, actor, case_id: int) -> None:
    if not run_write(db, "deleting case", lambda: CaseRepository.delete(db, case_id)):
        raise NotFoundError("Case not found")
    logger.info(f"Case {case_id} deleted by user {actor.user_id}")


def export_cases_csv(db: Session, status: Optional[str] = None, client_id: Optional[int] = None) -> Response:
    cases = CaseRepository.query(db, status=status, client_id=client_id).all()
    logger.info(f"Exporting {len(cases)} cases")
    return csv_response("cases.csv", CASE_EXPORT_COLUMNS, (c.to_dict() for c in cases))


@cases_router.get("", dependencies=[Depends(require_permission("cases:view"))])
async def list_cases(
    search: Optional[str] = None,
    status: Optional[str] = None,
    client_id: Optional[int] = None,
    lawyer_id: Optional[int] = None,
    category: Optional[str] = None,
    pages: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    query = CaseRepository.query(db, search=search, status=status, client_id=client_id,
                                 lawyer_id=lawyer_id, category=category)
    return {"success": True, **paginate(query, pages.page, pages.limit)}


@cases_router.get("/export", dependencies=[Depends(require_permission("cases:export"))])
async def export_cases(
    status: Optional[str] = None,
    client_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return export_cases_csv(db, status=status, client_id=client_id)


@cases_router.get("/{case_id}", dependencies=[Depends(require_permission("cases:view"))])
async def get_case(case_id: int, db: Session = Depends(get_db)):
    case = CaseRepository.get_by_id(db, case_id)
    if not case:
        raise NotFoundError("Case not found")
    data = case.to_dict()
    data["hearings"] = [h.to_dict() for h in case.hearings]
    return {"success": True, "data": data}


@cases_router.post("", status_code=201)
async def create_case(
    data: CaseCreate,
    request: Request,
    identity: Identity = Depends(require_permission("cases:create")),
    db: Session = Depends(get_db),
):
    case = create_case_record(request, db, identity, data)
    return {"success": True, "data": case.to_dict()}


@cases_router.put("/{case_id}")
async def update_case(
    case_id: int,
    data: CaseUpdate,
    request: Request,
    identity: Identity = Depends(require_permission("cases:edit")),
    db: Session = Depends(get_db),
):
    case = update_case_record(request, db, identity, case_id, data)
    return {"success": True, "data": case.to_dict()}


@cases_router.delete("/{case_id}")
async def delete_case(
    case_id: int,
    request: Request,
    identity: Identity = Depends(require_permission("cases:delete")),
    db: Session = Depends(get_db),
):
    delete_case_record(request, db, identity, case_id)
    return {"success": True, "message": "Case deleted"}


# ==================== HEARINGS ====================

def create_hearing_record(request: Request, db: Session, actor, data: HearingCreate):
    if not CaseRepository.get_by_id(db, data.case_id):
        raise NotFoundError("Case not found")
    return run_write(db, "creating hearing", lambda: HearingRepository.create(db, **data.model_dump()))


def update_hearing_record(request: Request, db: Session, actor, hearing_id: int, data: HearingUpdate):
    hearing = run_write(db, "updating hearing",
                        lambda: HearingRepository.update(db, hearing_id, **data.model_dump(exclude_unset=True)))
    if not hearing:
        raise NotFoundError("Hearing not found")
    return hearing


def delete_hearing_record(request: Request, db: Session, actor, hearing_id: int) -> None:
    if not run_write(db, "deleting hearing", lambda: HearingRepository.delete(db, hearing_id)):
        raise NotFoundError("Hearing not found")


@hearings_router.get("", dependencies=[Depends(require_permission("hearings:view"))])
async def list_hearings(
    case_id: Optional[int] = None,
    hearing_result: Optional[str] = None,
    hearing_type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    pages: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    query = HearingRepository.query(db, case_id=case_id, hearing_result=hearing_result,
                                    hearing_type=hearing_type, date_from=date_from, date_to=date_to)
    return {"success": True, **paginate(query, pages.page, pages.limit)}


@hearings_router.get("/{hearing_id}", dependencies=[Depends(require_permission("hearings:view"))])
async def get_hearing(hearing_id: int, db: Session = Depends(get_db)):
    hearing = HearingRepository.get_by_id(db, hearing_id)
    if not hearing:
        raise NotFoundError("Hearing not found")
    return {"success": True, "data": hearing.to_dict()}


@hearings_router.post("", status_code=201)
async def create_hearing(
    data: HearingCreate,
    request: Request,
    identity: Identity = Depends(require_permission("hearings:create")),
    db: Session = Depends(get_db),
):
    hearing = create_hearing_record(request, db, identity, data)
    return {"success": True, "data": hearing.to_dict()}


@hearings_router.put("/{hearing_id}")
async def update_hearing(
    hearing_id: int,
    data: HearingUpdate,
    request: Request,
    identity: Identity = Depends(require_permission("hearings:edit")),
    db: Session = Depends(get_db),
):
    hearing = update_hearing_record(request, db, identity, hearing_id, data)
    return {"success": True, "data": hearing.to_dict()}


@hearings_router.delete("/{hearing_id}")
async def delete_hearing(
    hearing_id: int,
    request: Request,
    identity: Identity = Depends(require_permission("hearings:delete")),
    db: Session = Depends(get_db),
):
    delete_hearing_record(request, db, identity, hearing_id)
    return {"success": True, "message": "Hearing deleted"}


# ==================== INVOICES ====================

def create_invoice_record(request: Request, db: Session, actor, data: InvoiceCreate):
    if not ClientRepository.get_by_id(db, data.client_id):
        raise NotFoundError("Client not found")
    if InvoiceRepository.number_exists(db, data.invoice_number):
        raise HTTPException(status_code=409, detail="Invoice number already exists")
    return run_write(db, "creating invoice", lambda: InvoiceRepository.create(db, **data.model_dump()))


def update_invoice_record(request: Request, db: Session, actor, invoice_id: int, data: InvoiceUpdate):
    invoice = run_write(db, "updating invoice",
                        lambda: InvoiceRepository.update(db, invoice_id, **data.model_dump(exclude_unset=True)))
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def delete_invoice_record(request: Request, db: Session, actor, invoice_id: int) -> None:
    if not run_write(db, "deleting invoice", lambda: InvoiceRepository.delete(db, invoice_id)):
        raise NotFoundError("Invoice not found")


@invoices_router.get("", dependencies=[Depends(require_permission("invoices:view"))])
async def list_invoices(
    search: Optional[str] = None,
    invoice_status: Optional[str] = None,
    invoice_type: Optional[str] = None,
    currency: Optional[str] = None,
    client_id: Optional[int] = None,
    pages: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    query = InvoiceRepository.query(db, search=search, invoice_status=invoice_status,
                                    invoice_type=invoice_type, currency=currency, client_id=client_id)
    return {"success": True, **paginate(query, pages.page, pages.limit)}


@invoices_router.get("/{invoice_id}", dependencies=[Depends(require_permission("invoices:view"))])
async def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = InvoiceRepository.get_by_id(db, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    return {"success": True, "data": invoice.to_dict()}


@invoices_router.post("", status_code=201)
async def create_invoice(
    data: InvoiceCreate,
    request: Request,
    identity: Identity = Depends(require_permission("invoices:create")),
    db: Session = Depends(get_db),
):
    invoice = create_invoice_record(request, db, identity, data)
    return {"success": True, "data": invoice.to_dict()}


@invoices_router.put("/{invoice_id}")
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    request: Request,
    identity: Identity = Depends(require_permission("invoices:edit")),
    db: Session = Depends(get_db),
):
    invoice = update_invoice_record(request, db, identity, invoice_id, data)
    return {"success": True, "data": invoice.to_dict()}


@invoices_router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    request: Request,
    identity: Identity = Depends(require_permission("invoices:delete")),
    db: Session = Depends(get_db),
):
    delete_invoice_record(request, db, identity, invoice_id)
    return {"success": True, "message": "Invoice deleted"}


RECORD_ACTIONS = {
    "clients": RecordActions(ClientCreate, ClientUpdate, create_client_record, update_client_record,
                             delete_client_record, export=export_clients_csv),
    "cases": RecordActions(CaseCreate, CaseUpdate, create_case_record, update_case_record,
                           delete_case_record, export=export_cases_csv),
    "hearings": RecordActions(HearingCreate, HearingUpdate, create_hearing_record, update_hearing_record,
                              delete_hearing_record),
    "invoices": RecordActions(InvoiceCreate, InvoiceUpdate, create_invoice_record, update_invoice_record,
                              delete_invoice_record),
}
