from pydantic import BaseModel
from decimal import Decimal
from typing import Dict


class ReceivablesSummary(BaseModel):
    invoiced_total: Decimal
    collected_total: Decimal
    outstanding_balance: Decimal
    overdue_count: int
    overdue_balance: Decimal


class OutgoingSummary(BaseModel):
    total_paid: Decimal
    by_status: Dict[str, Decimal]


class DashboardStats(BaseModel):
    clients: int
    active_clients: int
    staff: int
    products: int
    quotations_by_status: Dict[str, int]
    invoices_by_status: Dict[str, int]
    receivables: ReceivablesSummary
    outgoing: OutgoingSummary
