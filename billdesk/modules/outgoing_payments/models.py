from billdesk.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship
from datetime import date
from billdesk.common.mixins import AuditMixin
import enum


class PaymentCategory(str, enum.Enum):
    EXPENSE = "expense"
    STAFF_SALARY = "staff_salary"
    SUBSCRIPTION = "subscription"
    OTHER = "other"


class OutgoingPaymentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OutgoingPaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    ONLINE = "online"
    DIRECT_DEBIT = "direct_debit"
    OTHER = "other"


class CategoryStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ExpenseCategory(Base, AuditMixin):
    __tablename__ = "expense_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    status = Column(Enum(CategoryStatus), nullable=False, default=CategoryStatus.ACTIVE)


class OutgoingPayment(Base, AuditMixin):
    __tablename__ = "outgoing_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_number = Column(String(20), nullable=False, unique=True)
    payment_category = Column(Enum(PaymentCategory), nullable=False)

    # Payee: exactly one of these, depending on payment_category
    expense_category_id = Column(Integer, ForeignKey("expense_categories.id"), nullable=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True, index=True)
    payee_name = Column(String(200), nullable=True)

    amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    payment_method = Column(Enum(OutgoingPaymentMethod), nullable=False, default=OutgoingPaymentMethod.BANK_TRANSFER)
    reference_number = Column(String(100), nullable=True)
    status = Column(Enum(OutgoingPaymentStatus), nullable=False, default=OutgoingPaymentStatus.SCHEDULED)
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    # Relationships
    expense_category = relationship("ExpenseCategory")
    staff = relationship("Staff")
    product = relationship("Product")

    __mapper_args__ = {"version_id_col": version}
