from pydantic import BaseModel, ConfigDict, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from enum import Enum


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DocumentType(str, Enum):
    QUOTATION = "quotation"
    INVOICE = "invoice"
    OUTGOING_PAYMENT = "outgoing_payment"
    CLIENT = "client"


class DiscountPolicy(BaseModel):
    """Discount applied to the subtotal before tax"""
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)


# Line items shared by quotations and invoices
class LineItemCreate(BaseModel):
    """
    Line item as sent by the caller.

    ``amount`` is never accepted: it is always recomputed from quantity and
    unit price. Without ``product_id`` the item is a custom one and needs
    both ``product_name`` and ``unit_price``.
    """
    model_config = ConfigDict(extra="forbid")

    product_id: Optional[int] = None
    product_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    quantity: Decimal = Field(..., gt=0, max_digits=10, decimal_places=3, description="Quantity must be greater than 0")
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2, description="Unit price before tax")

    @model_validator(mode='after')
    def validate_custom_item(self):
        if self.product_id is None:
            if not self.product_name:
                raise ValueError('Custom line items require product_name')
            if self.unit_price is None:
                raise ValueError('Custom line items require unit_price')
        return self


class LineItemOut(BaseModel):
    id: int
    product_id: Optional[int]
    product_name: str
    description: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PricedLine(BaseModel):
    quantity: Decimal
    unit_price: Decimal


class Totals(BaseModel):
    """Monetary breakdown of a document"""
    subtotal: Decimal
    discount_amount: Decimal = Decimal("0.00")
    taxable_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class TotalsRequest(BaseModel):
    line_items: List[PricedLine] = Field(..., min_length=1)
    discount: Optional[DiscountPolicy] = None
    tax_rate_percent: Decimal = Field(Decimal("0"), ge=0, le=Decimal("999.99"), decimal_places=2)


class NextNumber(BaseModel):
    document_type: DocumentType
    next_number: str
