from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from billdesk.core.config import settings
from billdesk.database.database import get_db
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.invoices.schemas import InvoiceOut
from billdesk.modules.quotations.models import QuotationStatus
from billdesk.modules.quotations.schemas import (
    QuotationCreate, QuotationUpdate, QuotationOut, QuotationList, QuotationConvert
)
from billdesk.modules.quotations.service import QuotationService

router = APIRouter(prefix="/quotations", tags=["Quotations"])


@router.post("/", response_model=QuotationOut, status_code=status.HTTP_201_CREATED)
def create_quotation(
    quotation_data: QuotationCreate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    """
    Crear una cotización

    Acepta estado inicial 'draft' o 'sent'. Número, totales y snapshot del
    cliente los asigna el servidor.
    """
    return QuotationService(db).create_quotation(quotation_data, user_id)


@router.get("/", response_model=QuotationList)
def list_quotations(
    user_id: CurrentUserId,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[QuotationStatus] = Query(None),
    client_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Buscar por número o cliente"),
    db: Session = Depends(get_db)
):
    return QuotationService(db).list_quotations(page, limit, status, client_id, search)


@router.get("/{quotation_id}", response_model=QuotationOut)
def get_quotation(quotation_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    return QuotationService(db).get_quotation(quotation_id)


@router.patch("/{quotation_id}", response_model=QuotationOut)
def update_quotation(
    quotation_id: int,
    quotation_update: QuotationUpdate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    return QuotationService(db).update_quotation(quotation_id, quotation_update)


@router.delete("/{quotation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quotation(quotation_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    QuotationService(db).delete_quotation(quotation_id)


@router.post("/{quotation_id}/convert", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def convert_quotation(
    quotation_id: int,
    user_id: CurrentUserId,
    convert_data: Optional[QuotationConvert] = None,
    db: Session = Depends(get_db)
):
    """
    Convertir una cotización aceptada en factura

    La cotización queda en estado 'converted' y la factura referencia su id.
    """
    return QuotationService(db).convert_to_invoice(quotation_id, convert_data or QuotationConvert(), user_id)
