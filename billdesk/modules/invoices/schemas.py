from pydantic import BaseModel, ConfigDict, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from billdesk.modules.invoices.models import InvoiceStatus, PaymentMethod
from billdesk.modules.ledger.schemas import LineItemCreate, LineItemOut


class InvoiceCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    client_id: int
    issue_date: Optional[date] = None
    due_date: date
    tax_rate_percent: Decimal = Field(Decimal("0"), ge=0, le=Decimal("999.99"), decimal_places=2)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    payment_terms: Optional[str] = Field(None, max_length=30)
    payment_instructions: Optional[str] = None
    notes: Optional[str] = None
    line_items: List[LineItemCreate] = Field(..., min_length=1)

    @model_validator(mode='after')
    def validate_dates(self):
        if self.issue_date and self.due_date < self.issue_date:
            raise ValueError('due_date cannot be before issue_date')
        return self


class InvoiceUpdate(BaseModel):
    """
    Parche parcial de una factura.

    ``amount_paid`` es el nuevo total pagado; la diferencia se registra como
    un pago. ``balance_due`` y los totales nunca se aceptan.
    """
    model_config = ConfigDict(extra="forbid")

    client_id: Optional[int] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    tax_rate_percent: Optional[Decimal] = Field(None, ge=0, le=Decimal("999.99"), decimal_places=2)
    status: Optional[InvoiceStatus] = None
    amount_paid: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    payment_terms: Optional[str] = Field(None, max_length=30)
    payment_instructions: Optional[str] = None
    notes: Optional[str] = None
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1)
    version: Optional[int] = None


class PaymentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Monto del pago")
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = Field(None, max_length=100)
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    invoice_id: int
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str]
    payment_date: date
    notes: Optional[str]
    created_by: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    client_id: int
    client_name: str
    client_email: Optional[str]
    quotation_id: Optional[int]
    issue_date: date
    due_date: date
    tax_rate_percent: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: InvoiceStatus
    # Derived when read: stored status, or "overdue" past the due date
    effective_status: str
    is_overdue: bool
    payment_terms: Optional[str]
    payment_instructions: Optional[str]
    notes: Optional[str]
    version: int
    line_items: List[LineItemOut]
    created_by: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceList(BaseModel):
    items: List[InvoiceOut]
    total: int
    page: int
    limit: int
