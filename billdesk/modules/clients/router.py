from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from billdesk.core.config import settings
from billdesk.database.database import get_db
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.clients.schemas import ClientCreate, ClientUpdate, ClientOut, ClientList
from billdesk.modules.clients.service import ClientService

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(
    client_data: ClientCreate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    """Crear un cliente; el código CLT se asigna automáticamente"""
    return ClientService(db).create_client(client_data, user_id)


@router.get("/", response_model=ClientList)
def list_clients(
    user_id: CurrentUserId,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Buscar por nombre, email o código"),
    status: Optional[bool] = Query(None, description="true = activos, false = inactivos"),
    db: Session = Depends(get_db)
):
    return ClientService(db).list_clients(page, limit, search, status)


@router.get("/{client_id}", response_model=ClientOut)
def get_client(client_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    return ClientService(db).get_client(client_id)


@router.patch("/{client_id}", response_model=ClientOut)
def update_client(
    client_id: int,
    client_update: ClientUpdate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    return ClientService(db).update_client(client_id, client_update)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    """Eliminar un cliente sin documentos asociados"""
    ClientService(db).delete_client(client_id)
