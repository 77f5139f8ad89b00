from billdesk.database.database import Base
from sqlalchemy import Column, Integer, String, Numeric, Date, Enum
from billdesk.common.mixins import AuditMixin
import enum


class StaffStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"


class PaymentFrequency(str, enum.Enum):
    HOURLY = "hourly"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class Staff(Base, AuditMixin):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    email = Column(String(150), nullable=False, unique=True)
    phone = Column(String(30), nullable=True)

    # Address
    street = Column(String(200), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)

    position = Column(String(100), nullable=False)
    department = Column(String(100), nullable=True)
    role = Column(String(50), nullable=True)

    # Compensation
    salary = Column(Numeric(15, 2), nullable=True)
    payment_rate = Column(Numeric(15, 2), nullable=False)
    payment_frequency = Column(Enum(PaymentFrequency), nullable=False, default=PaymentFrequency.MONTHLY)

    join_date = Column(Date, nullable=True)
    status = Column(Enum(StaffStatus), nullable=False, default=StaffStatus.ACTIVE)
