from billdesk.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship, composite
from sqlalchemy.ext.hybrid import hybrid_property
from datetime import date
from decimal import Decimal
from billdesk.common.mixins import AuditMixin, TimestampMixin
from billdesk.modules.ledger.references import ClientSnapshot
import enum


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"                      # Borrador, no cobrable
    SENT = "sent"                        # Enviada al cliente
    PENDING_PAYMENT = "pending_payment"  # Con pagos parciales o en espera de pago
    PAID = "paid"                        # Pagada completamente
    OVERDUE = "overdue"                  # Vencida
    CANCELLED = "cancelled"              # Anulada


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    ONLINE = "online"
    DIRECT_DEBIT = "direct_debit"
    OTHER = "other"


class Invoice(Base, AuditMixin):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number = Column(String(30), nullable=False, unique=True)

    # Client snapshot
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    client_name = Column(String(200), nullable=False)
    client_email = Column(String(150), nullable=True)
    client = composite(ClientSnapshot, client_id, client_name, client_email)

    # Set when the invoice comes from a quotation
    quotation_id = Column(Integer, ForeignKey("quotations.id"), nullable=True, index=True)

    # Dates
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=False)

    tax_rate_percent = Column(Numeric(5, 2), nullable=False, default=0)

    # Totals (calculated)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(15, 2), nullable=False, default=0)

    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT)
    payment_terms = Column(String(30), nullable=True)
    payment_instructions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    # Relationships
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.id"
    )
    payments = relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.id"
    )

    __mapper_args__ = {"version_id_col": version}

    @hybrid_property
    def balance_due(self):
        """Saldo pendiente, nunca almacenado"""
        return (self.total_amount or Decimal("0")) - (self.amount_paid or Decimal("0"))

    @balance_due.expression
    def balance_due(cls):
        return cls.total_amount - cls.amount_paid


class InvoiceLineItem(Base, TimestampMixin):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    # Snapshot data (para preservar información si el producto cambia)
    product_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    quantity = Column(Numeric(10, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")


class InvoicePayment(Base, TimestampMixin):
    """One row per change of an invoice's amount_paid"""
    __tablename__ = "invoice_payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(Numeric(15, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.BANK_TRANSFER)
    reference = Column(String(100), nullable=True)  # Número de referencia, cheque, etc.
    payment_date = Column(Date, nullable=False, default=date.today)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
