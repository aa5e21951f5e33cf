from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from erp.core.security import ROLE_ADMIN, ROLE_MANAGER
from erp.dependencies import get_db, require_auth, require_role
from erp.schemas.product import ProductCreate, ProductPage, ProductRead, ProductUpdate
from erp.services.product_service import (
    create_product,
    delete_product,
    get_product,
    list_products,
    update_product,
)

router = APIRouter(prefix="/products", tags=["Products"], dependencies=[Depends(require_auth)])


@router.get("", response_model=ProductPage)
def list_catalogue(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_products(db, page, page_size, search)


@router.post(
    "",
    response_model=ProductRead,
    status_code=201,
    dependencies=[Depends(require_role(ROLE_ADMIN, ROLE_MANAGER))],
)
def add_product(payload: ProductCreate, db: Session = Depends(get_db)):
    return create_product(db, **payload.model_dump())


@router.get("/{product_id}", response_model=ProductRead)
def read_product(product_id: int, db: Session = Depends(get_db)):
    return get_product(db, product_id)


@router.put(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_role(ROLE_ADMIN, ROLE_MANAGER))],
)
def edit_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    return update_product(db, product_id, **payload.model_dump(exclude_unset=True))


@router.delete(
    "/{product_id}",
    status_code=204,
    dependencies=[Depends(require_role(ROLE_ADMIN))],
)
def remove_product(product_id: int, db: Session = Depends(get_db)):
    delete_product(db, product_id)
    return Response(status_code=204)


__all__ = ["router"]
