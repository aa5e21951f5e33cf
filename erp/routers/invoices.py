from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from erp.core.security import ROLE_ADMIN, ROLE_MANAGER
from erp.dependencies import get_db, require_auth, require_role
from erp.schemas.invoice import (
    InvoiceCreate,
    InvoicePage,
    InvoiceRead,
    InvoiceStatusUpdate,
    InvoiceUpdate,
)
from erp.services.invoice_service import (
    create_invoice,
    delete_invoice,
    get_invoice,
    list_invoices,
    update_invoice,
    update_invoice_status,
)

router = APIRouter(prefix="/invoices", tags=["Invoices"], dependencies=[Depends(require_auth)])


@router.get("", response_model=InvoicePage)
def list_all_invoices(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_invoices(db, page, page_size, search)


@router.post(
    "",
    response_model=InvoiceRead,
    status_code=201,
    dependencies=[Depends(require_role(ROLE_ADMIN, ROLE_MANAGER))],
)
def add_invoice(payload: InvoiceCreate, db: Session = Depends(get_db)):
    return create_invoice(db, **payload.model_dump())


@router.get("/{invoice_id}", response_model=InvoiceRead)
def read_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return get_invoice(db, invoice_id)


@router.put(
    "/{invoice_id}",
    response_model=InvoiceRead,
    dependencies=[Depends(require_role(ROLE_ADMIN, ROLE_MANAGER))],
)
def edit_invoice(invoice_id: int, payload: InvoiceUpdate, db: Session = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True)
    return update_invoice(db, invoice_id, **changes)


@router.patch(
    "/{invoice_id}",
    response_model=InvoiceRead,
    dependencies=[Depends(require_role(ROLE_ADMIN, ROLE_MANAGER))],
)
def change_invoice_status(
    invoice_id: int,
    payload: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
):
    return update_invoice_status(db, invoice_id, payload.status)


@router.delete(
    "/{invoice_id}",
    status_code=204,
    dependencies=[Depends(require_role(ROLE_ADMIN))],
)
def remove_invoice(invoice_id: int, db: Session = Depends(get_db)):
    delete_invoice(db, invoice_id)
    return Response(status_code=204)


__all__ = ["router"]
