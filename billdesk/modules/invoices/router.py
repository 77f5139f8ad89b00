from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from billdesk.core.config import settings
from billdesk.database.database import get_db
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.invoices.models import InvoiceStatus
from billdesk.modules.invoices.schemas import (
    InvoiceCreate, InvoiceUpdate, InvoiceOut, InvoiceList, PaymentCreate, PaymentOut
)
from billdesk.modules.invoices.service import InvoiceService

# Router principal del módulo de facturas
router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("/", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    """
    Crear una nueva factura

    El número, los totales y el snapshot del cliente los asigna el servidor.
    """
    return InvoiceService(db).create_invoice(invoice_data, user_id)


@router.get("/", response_model=InvoiceList)
def list_invoices(
    user_id: CurrentUserId,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[InvoiceStatus] = Query(None, description="Estado almacenado"),
    client_id: Optional[int] = Query(None, description="Filtrar por cliente"),
    overdue: Optional[bool] = Query(None, description="Solo vencidas (true) o no vencidas (false)"),
    search: Optional[str] = Query(None, description="Buscar por número o cliente"),
    db: Session = Depends(get_db)
):
    return InvoiceService(db).list_invoices(page, limit, status, client_id, overdue, search)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    """Obtener detalles completos de una factura"""
    return InvoiceService(db).get_invoice(invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: int,
    invoice_update: InvoiceUpdate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    """
    Actualizar una factura

    Recalcula totales y saldo. ``amount_paid`` registra la diferencia como pago.
    """
    return InvoiceService(db).update_invoice(invoice_id, invoice_update, user_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    InvoiceService(db).delete_invoice(invoice_id)


# --- PAGOS ---

@router.post("/{invoice_id}/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def add_payment(
    invoice_id: int,
    payment_data: PaymentCreate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    """
    Registrar un pago para una factura

    Permite pagos parciales. Cuando el saldo llega a cero, el estado cambia
    automáticamente a 'paid'.
    """
    return InvoiceService(db).record_payment(invoice_id, payment_data, user_id)


@router.get("/{invoice_id}/payments", response_model=List[PaymentOut])
def get_invoice_payments(invoice_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    """Obtener todos los pagos de una factura"""
    return InvoiceService(db).get_payments(invoice_id)
