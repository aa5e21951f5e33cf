from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from erp.dependencies import get_db, require_auth
from erp.schemas.inventory import (
    InventoryPage,
    InventoryRead,
    LedgerAudit,
    MovementCreate,
    MovementPage,
    MovementRead,
    ReorderLevelUpdate,
    StockMovementRequest,
    StockMovementResponse,
)
from erp.services.export_service import XLSX_MEDIA_TYPE, build_inventory_workbook
from erp.services.inventory_service import (
    StockMovementResult,
    get_current_stock,
    get_inventory,
    get_inventory_summary,
    get_ledger,
    get_product_movements,
    list_inventory,
    list_low_stock,
    list_movements,
    record_movement,
    serialize_inventory,
    stock_in,
    stock_out,
    update_reorder_level,
    verify_movement_chain,
)

router = APIRouter(prefix="/inventory", tags=["Inventory"], dependencies=[Depends(require_auth)])


def _movement_response(result: StockMovementResult) -> dict:
    return {
        "inventory": serialize_inventory(result.inventory),
        "movement": result.summary,
        "entry": result.movement,
    }


@router.get("", response_model=InventoryPage)
def list_inventory_records(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_inventory(db, page, page_size, search)


@router.get("/summary", response_model=List[InventoryRead])
def inventory_summary(db: Session = Depends(get_db)):
    return get_inventory_summary(db)


@router.get("/low-stock", response_model=InventoryPage)
def low_stock(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return list_low_stock(db, page, page_size)


@router.get("/movements", response_model=MovementPage)
def movements(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return list_movements(db, page, page_size)


@router.post("/movements", response_model=StockMovementResponse, status_code=201)
def create_movement(payload: MovementCreate, db: Session = Depends(get_db)):
    result = record_movement(
        db,
        payload.product_id,
        payload.product_name,
        payload.type,
        payload.amount,
        payload.reason,
        payload.reference,
        payload.notes,
    )
    return _movement_response(result)


@router.get("/export")
def export_inventory(db: Session = Depends(get_db)):
    content = build_inventory_workbook(get_inventory_summary(db), get_ledger(db))
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="inventory_{stamp}.xlsx"'},
    )


@router.post("/stock-in", response_model=StockMovementResponse)
def add_stock(payload: StockMovementRequest, db: Session = Depends(get_db)):
    result = stock_in(
        db,
        payload.product_id,
        payload.product_name,
        payload.amount,
        payload.reason,
        payload.reference,
        payload.notes,
    )
    return _movement_response(result)


@router.post("/stock-out", response_model=StockMovementResponse)
def remove_stock(payload: StockMovementRequest, db: Session = Depends(get_db)):
    result = stock_out(
        db,
        payload.product_id,
        payload.product_name,
        payload.amount,
        payload.reason,
        payload.reference,
        payload.notes,
    )
    return _movement_response(result)


@router.get("/{product_id}/movements", response_model=List[MovementRead])
def product_movements(
    product_id: int,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return get_product_movements(db, product_id, limit, offset)


@router.get("/{product_id}/audit", response_model=LedgerAudit)
def audit_product_ledger(product_id: int, db: Session = Depends(get_db)):
    issues = verify_movement_chain(db, product_id)
    return {
        "product_id": product_id,
        "quantity": get_current_stock(db, product_id),
        "consistent": not issues,
        "issues": issues,
    }


@router.put("/{product_id}/reorder-level", response_model=InventoryRead)
def set_reorder_level(
    product_id: int,
    payload: ReorderLevelUpdate,
    db: Session = Depends(get_db),
):
    inventory = update_reorder_level(db, product_id, payload.reorder_level)
    return serialize_inventory(inventory)


@router.get("/{inventory_id}", response_model=InventoryRead)
def get_inventory_record(inventory_id: int, db: Session = Depends(get_db)):
    return get_inventory(db, inventory_id)


__all__ = ["router"]
