from pydantic import BaseModel, ConfigDict, EmailStr, Field
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from billdesk.modules.staff.models import PaymentFrequency, StaffStatus


class StaffBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    position: str = Field(..., min_length=1, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    role: Optional[str] = Field(None, max_length=50)
    salary: Optional[Decimal] = Field(None, ge=0)
    payment_rate: Decimal = Field(..., ge=0)
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    join_date: Optional[date] = None
    status: StaffStatus = StaffStatus.ACTIVE


class StaffCreate(StaffBase):
    model_config = ConfigDict(extra="forbid")


class StaffUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    role: Optional[str] = Field(None, max_length=50)
    salary: Optional[Decimal] = Field(None, ge=0)
    payment_rate: Optional[Decimal] = Field(None, ge=0)
    payment_frequency: Optional[PaymentFrequency] = None
    join_date: Optional[date] = None
    status: Optional[StaffStatus] = None


class StaffOut(StaffBase):
    id: int
    created_by: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StaffList(BaseModel):
    items: List[StaffOut]
    total: int
    page: int
    limit: int
