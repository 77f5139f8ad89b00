from billdesk.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, Numeric, Date, Text
from billdesk.common.mixins import AuditMixin


class Client(Base, AuditMixin):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_code = Column(String(20), nullable=False, unique=True)  # CLT0001

    # Business info
    business_name = Column(String(200), nullable=False)
    contact_person = Column(String(150), nullable=True)
    email = Column(String(150), nullable=False, unique=True)
    phone = Column(String(30), nullable=True)

    # Address
    street = Column(String(200), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)

    # Billing preferences
    payment_schedule = Column(String(30), nullable=False, default="monthly")
    payment_terms = Column(String(30), nullable=False, default="net_30")

    status = Column(Boolean, nullable=False, default=True)  # activo / inactivo
    notes = Column(Text, nullable=True)

    # Aggregates maintained by the ledger when payments are applied
    total_spent = Column(Numeric(15, 2), nullable=False, default=0)
    last_payment = Column(Date, nullable=True)
