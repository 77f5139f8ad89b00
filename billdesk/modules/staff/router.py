from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from billdesk.core.config import settings
from billdesk.database.database import get_db
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.staff.models import StaffStatus
from billdesk.modules.staff.schemas import StaffCreate, StaffUpdate, StaffOut, StaffList
from billdesk.modules.staff.service import StaffService

router = APIRouter(prefix="/staff", tags=["Staff"])


@router.post("/", response_model=StaffOut, status_code=status.HTTP_201_CREATED)
def create_staff(staff_data: StaffCreate, user_id: CurrentUserId, db: Session = Depends(get_db)):
    return StaffService(db).create_staff(staff_data, user_id)


@router.get("/", response_model=StaffList)
def list_staff(
    user_id: CurrentUserId,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Buscar por nombre, email o cargo"),
    status: Optional[StaffStatus] = Query(None),
    db: Session = Depends(get_db)
):
    return StaffService(db).list_staff(page, limit, search, status)


@router.get("/{staff_id}", response_model=StaffOut)
def get_staff(staff_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    return StaffService(db).get_staff(staff_id)


@router.patch("/{staff_id}", response_model=StaffOut)
def update_staff(
    staff_id: int,
    staff_update: StaffUpdate,
    user_id: CurrentUserId,
    db: Session = Depends(get_db)
):
    return StaffService(db).update_staff(staff_id, staff_update)


@router.delete("/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_staff(staff_id: int, user_id: CurrentUserId, db: Session = Depends(get_db)):
    StaffService(db).delete_staff(staff_id)
