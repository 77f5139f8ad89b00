from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from billdesk.core.config import settings
from billdesk.database.database import get_db
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.products.models import ProductCategory, ProductStatus
from billdesk.modules.products.schemas import ProductCreate, ProductUpdate, ProductOut, ProductList
from billdesk.modules.products.service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    product_data: ProductCreate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    return ProductService(db).create_product(product_data, user_id)


@router.get("/", response_model=ProductList)
def list_products(
    user_id: CurrentUserId,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Buscar por nombre o SKU"),
    category: Optional[ProductCategory] = Query(None),
    status: Optional[ProductStatus] = Query(None),
    db: Session = Depends(get_db)
):
    return ProductService(db).list_products(page, limit, search, category, status)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    return ProductService(db).get_product(product_id)


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    product_update: ProductUpdate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    """
    Actualizar un producto

    Los cambios de precio solo afectan a documentos nuevos.
    """
    return ProductService(db).update_product(product_id, product_update)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    ProductService(db).delete_product(product_id)
