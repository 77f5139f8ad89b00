from fastapi import APIRouter

from billdesk.dependencies.dbDependecies import db_dependency
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.ledger.calculator import compute_totals
from billdesk.modules.ledger.numbering import NumberingService
from billdesk.modules.ledger.schemas import DocumentType, NextNumber, Totals, TotalsRequest

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.post("/totals", response_model=Totals)
def preview_totals(request: TotalsRequest, user_id: CurrentUserId):
    """
    Calcular totales sin guardar nada

    Mismo cálculo que se aplica al crear o editar cotizaciones y facturas.
    """
    return compute_totals(request.line_items, request.discount, request.tax_rate_percent)


@router.get("/next-number/{document_type}", response_model=NextNumber)
def next_number(document_type: DocumentType, user_id: CurrentUserId, db: db_dependency):
    """Próximo número que recibiría un documento; no lo reserva"""
    return NextNumber(
        document_type=document_type,
        next_number=NumberingService(db).peek_next(document_type)
    )
