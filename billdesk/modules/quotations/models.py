from billdesk.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship, composite
from datetime import date
from billdesk.common.mixins import AuditMixin, TimestampMixin
from billdesk.modules.ledger.references import ClientSnapshot
from billdesk.modules.ledger.schemas import DiscountType
import enum


class QuotationStatus(str, enum.Enum):
    DRAFT = "draft"            # Borrador, editable
    SENT = "sent"              # Enviada al cliente, aún editable
    ACCEPTED = "accepted"      # Aceptada, lista para convertir
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"    # Ya tiene factura asociada


class Quotation(Base, AuditMixin):
    __tablename__ = "quotations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quotation_number = Column(String(30), nullable=False, unique=True)

    # Client snapshot, taken when the quotation is created or re-targeted
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    client_name = Column(String(200), nullable=False)
    client_email = Column(String(150), nullable=True)
    client = composite(ClientSnapshot, client_id, client_name, client_email)

    # Dates
    quotation_date = Column(Date, nullable=False, default=date.today)
    valid_until_date = Column(Date, nullable=False)

    # Pricing policy
    discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = Column(Numeric(15, 2), nullable=False, default=0)
    tax_rate_percent = Column(Numeric(5, 2), nullable=False, default=0)

    # Totals (calculated)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)

    status = Column(Enum(QuotationStatus), nullable=False, default=QuotationStatus.DRAFT)
    currency = Column(String(3), nullable=False, default="USD")
    terms_and_conditions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    line_items = relationship(
        "QuotationLineItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationLineItem.id"
    )

    __mapper_args__ = {"version_id_col": version}


class QuotationLineItem(Base, TimestampMixin):
    __tablename__ = "quotation_line_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quotation_id = Column(Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL for custom items, or once the product is deleted
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    # Snapshot data
    product_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    quantity = Column(Numeric(10, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)  # quantity * unit_price

    quotation = relationship("Quotation", back_populates="line_items")
