from pydantic import BaseModel, ConfigDict, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from billdesk.modules.invoices.models import InvoiceStatus
from billdesk.modules.ledger.schemas import DiscountType, LineItemCreate, LineItemOut
from billdesk.modules.quotations.models import QuotationStatus


class QuotationCreate(BaseModel):
    """
    Nueva cotización.

    Totales, número y snapshot del cliente los calcula el servidor; enviar
    cualquiera de ellos es un error de validación.
    """
    model_config = ConfigDict(extra="forbid")

    client_id: int
    quotation_date: Optional[date] = None
    valid_until_date: date
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(Decimal("0"), ge=0, max_digits=15, decimal_places=2)
    tax_rate_percent: Decimal = Field(Decimal("0"), ge=0, le=Decimal("999.99"), decimal_places=2)
    status: QuotationStatus = QuotationStatus.DRAFT
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    terms_and_conditions: Optional[str] = None
    notes: Optional[str] = None
    line_items: List[LineItemCreate] = Field(..., min_length=1)

    @model_validator(mode='after')
    def validate_dates(self):
        if self.quotation_date and self.valid_until_date < self.quotation_date:
            raise ValueError('valid_until_date cannot be before quotation_date')
        return self


class QuotationUpdate(BaseModel):
    """Parche parcial; line_items reemplaza todas las líneas"""
    model_config = ConfigDict(extra="forbid")

    client_id: Optional[int] = None
    quotation_date: Optional[date] = None
    valid_until_date: Optional[date] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0, max_digits=15, decimal_places=2)
    tax_rate_percent: Optional[Decimal] = Field(None, ge=0, le=Decimal("999.99"), decimal_places=2)
    status: Optional[QuotationStatus] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    terms_and_conditions: Optional[str] = None
    notes: Optional[str] = None
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1)
    version: Optional[int] = Field(None, description="Versión leída; si no coincide se rechaza la edición")


class QuotationOut(BaseModel):
    id: int
    quotation_number: str
    client_id: int
    client_name: str
    client_email: Optional[str]
    quotation_date: date
    valid_until_date: date
    discount_type: DiscountType
    discount_value: Decimal
    tax_rate_percent: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: QuotationStatus
    currency: str
    terms_and_conditions: Optional[str]
    notes: Optional[str]
    version: int
    line_items: List[LineItemOut]
    created_by: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class QuotationList(BaseModel):
    items: List[QuotationOut]
    total: int
    page: int
    limit: int


class QuotationConvert(BaseModel):
    """Datos de la factura que se genera a partir de la cotización"""
    model_config = ConfigDict(extra="forbid")

    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    payment_terms: Optional[str] = Field(None, max_length=30)
    payment_instructions: Optional[str] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError('due_date cannot be before issue_date')
        return self
