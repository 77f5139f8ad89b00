from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from typing import Optional
import logging

from billdesk.common.exceptions import NotFoundError, ValidationError
from billdesk.common.transactions import unit_of_work, paginate
from billdesk.modules.outgoing_payments.models import OutgoingPayment
from billdesk.modules.staff.models import Staff, StaffStatus
from billdesk.modules.staff.schemas import StaffCreate, StaffUpdate

logger = logging.getLogger(__name__)


class StaffService:
    def __init__(self, db: Session):
        self.db = db

    def create_staff(self, staff_data: StaffCreate, user_id: int) -> Staff:
        with unit_of_work(self.db, "creating staff member"):
            member = Staff(created_by=user_id, **staff_data.model_dump())
            self.db.add(member)

        self.db.refresh(member)
        logger.info(f"Staff member {member.id} ({member.email}) created by user {user_id}")
        return member

    def get_staff(self, staff_id: int) -> Staff:
        member = self.db.query(Staff).filter(Staff.id == staff_id).first()
        if not member:
            raise NotFoundError("Staff member", staff_id)
        return member

    def list_staff(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[StaffStatus] = None
    ) -> dict:
        query = self.db.query(Staff)
        if search:
            query = query.filter(or_(
                Staff.name.ilike(f"%{search}%"),
                Staff.email.ilike(f"%{search}%"),
                Staff.position.ilike(f"%{search}%")
            ))
        if status:
            query = query.filter(Staff.status == status)

        return paginate(query.order_by(desc(Staff.id)), page, limit)

    def update_staff(self, staff_id: int, staff_update: StaffUpdate) -> Staff:
        with unit_of_work(self.db, "updating staff member"):
            member = self.get_staff(staff_id)
            for field, value in staff_update.model_dump(exclude_unset=True).items():
                setattr(member, field, value)

        self.db.refresh(member)
        return member

    def delete_staff(self, staff_id: int) -> None:
        """Salary payments keep pointing at the member, so paid staff cannot be deleted"""
        with unit_of_work(self.db, "deleting staff member"):
            member = self.get_staff(staff_id)
            payments = self.db.query(OutgoingPayment.id).filter(OutgoingPayment.staff_id == staff_id).count()
            if payments:
                raise ValidationError(
                    f"Staff member {staff_id} has {payments} salary payment(s); set status to inactive instead"
                )
            self.db.delete(member)

        logger.info(f"Staff member {staff_id} deleted")
