from pydantic import BaseModel, ConfigDict, EmailStr, Field
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime


class ClientBase(BaseModel):
    business_name: str = Field(..., min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=150)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)

    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)

    payment_schedule: str = Field("monthly", max_length=30)
    payment_terms: str = Field("net_30", max_length=30)
    status: bool = True
    notes: Optional[str] = None


class ClientCreate(ClientBase):
    model_config = ConfigDict(extra="forbid")


class ClientUpdate(BaseModel):
    """Campos editables; client_code y los agregados de pagos no se aceptan"""
    model_config = ConfigDict(extra="forbid")

    business_name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    payment_schedule: Optional[str] = Field(None, max_length=30)
    payment_terms: Optional[str] = Field(None, max_length=30)
    status: Optional[bool] = None
    notes: Optional[str] = None


class ClientOut(ClientBase):
    id: int
    client_code: str
    total_spent: Decimal
    last_payment: Optional[date]
    created_by: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientList(BaseModel):
    items: List[ClientOut]
    total: int
    page: int
    limit: int
