from pydantic import BaseModel, ConfigDict, Field
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from billdesk.modules.products.models import ProductCategory, ProductStatus


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: ProductCategory
    sku: Optional[str] = Field(None, max_length=50)
    price: Decimal = Field(..., ge=0, description="Precio de lista")
    sale_price: Optional[Decimal] = Field(None, ge=0, description="Precio promocional")
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    status: ProductStatus = ProductStatus.ACTIVE
    stock_quantity: int = Field(0, ge=0)
    is_featured: bool = False
    is_new: bool = False
    service_work_hours: int = Field(0, ge=0)
    work_hour_by_day: Optional[str] = Field(None, max_length=50)
    work_hours_per_day: Optional[Decimal] = Field(None, ge=0, le=24)


class ProductCreate(ProductBase):
    model_config = ConfigDict(extra="forbid")


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[ProductCategory] = None
    sku: Optional[str] = Field(None, max_length=50)
    price: Optional[Decimal] = Field(None, ge=0)
    sale_price: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    status: Optional[ProductStatus] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_featured: Optional[bool] = None
    is_new: Optional[bool] = None
    service_work_hours: Optional[int] = Field(None, ge=0)
    work_hour_by_day: Optional[str] = Field(None, max_length=50)
    work_hours_per_day: Optional[Decimal] = Field(None, ge=0, le=24)


class ProductOut(ProductBase):
    id: int
    created_by: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductList(BaseModel):
    items: List[ProductOut]
    total: int
    page: int
    limit: int
