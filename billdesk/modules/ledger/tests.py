"""
Tests para el motor contable

Cubren:
- Cálculo de totales (redondeo, descuentos, impuestos)
- Numeración de documentos (formatos, reinicio anual, concurrencia, reintentos)
- Máquinas de estado (tablas completas de transiciones)
- Resolución de referencias (snapshots de cliente y producto)
- Conciliación de saldos y pagos
"""

import threading
from datetime import date, timedelta
from decimal import Decimal
from itertools import product as pairs

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from billdesk.common.exceptions import (
    ConflictError, InvalidTransitionError, NotFoundError, OverpaymentError, ValidationError
)
from billdesk.database.database import Base
from billdesk.modules.invoices.models import InvoiceStatus
from billdesk.modules.invoices.schemas import InvoiceCreate
from billdesk.modules.invoices.service import InvoiceService
from billdesk.modules.ledger.calculator import compute_totals, line_amount, to_money
from billdesk.modules.ledger.models import DocumentSequence
from billdesk.modules.ledger.numbering import NumberingService, format_number, parse_sequence
from billdesk.modules.ledger.reconciler import LedgerReconciler
from billdesk.modules.ledger.references import ClientSnapshot, ReferenceResolver
from billdesk.modules.ledger.schemas import DiscountPolicy, DiscountType, DocumentType
from billdesk.modules.ledger.status import (
    INVOICE_MACHINE, OUTGOING_PAYMENT_MACHINE, QUOTATION_MACHINE, effective_status, is_invoice_overdue
)
from billdesk.modules.products.models import ProductStatus
from billdesk.modules.quotations.models import Quotation
from billdesk.modules.quotations.schemas import QuotationCreate
from billdesk.modules.quotations.service import QuotationService

TODAY = date(2026, 3, 15)


def fixed_today():
    return TODAY


def make_invoice(db_session, client_id, unit_price="500.00", tax_rate="0", due_date=None, status="sent"):
    data = InvoiceCreate(
        client_id=client_id,
        issue_date=TODAY,
        due_date=due_date or TODAY + timedelta(days=30),
        tax_rate_percent=Decimal(tax_rate),
        status=status,
        line_items=[{"product_name": "Consulting", "quantity": 1, "unit_price": unit_price}]
    )
    return InvoiceService(db_session, today=fixed_today).create_invoice(data, 1)


# ===== TESTS DE CALCULADORA =====

class TestTotalsCalculator:
    """Tests para el cálculo de totales"""

    def test_invoice_with_tax(self):
        """2 x 60 con 10% de impuesto -> 120 / 12 / 132"""
        totals = compute_totals([{"quantity": 2, "unit_price": "60.00"}], None, 10)

        assert totals.subtotal == Decimal("120.00")
        assert totals.discount_amount == Decimal("0.00")
        assert totals.tax_amount == Decimal("12.00")
        assert totals.total_amount == Decimal("132.00")

    def test_quotation_with_percentage_discount(self):
        """200 con 10% de descuento y 5% de impuesto -> 189"""
        totals = compute_totals(
            [{"quantity": 1, "unit_price": "200.00"}],
            DiscountPolicy(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("10")),
            Decimal("5")
        )

        assert totals.subtotal == Decimal("200.00")
        assert totals.discount_amount == Decimal("20.00")
        assert totals.taxable_amount == Decimal("180.00")
        assert totals.tax_amount == Decimal("9.00")
        assert totals.total_amount == Decimal("189.00")

    def test_fixed_discount(self):
        totals = compute_totals(
            [{"quantity": 3, "unit_price": "50"}],
            DiscountPolicy(discount_type=DiscountType.FIXED, discount_value=Decimal("25.50")),
            0
        )
        assert totals.discount_amount == Decimal("25.50")
        assert totals.total_amount == Decimal("124.50")

    def test_fixed_discount_above_subtotal_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals(
                [{"quantity": 1, "unit_price": "10"}],
                DiscountPolicy(discount_type=DiscountType.FIXED, discount_value=Decimal("10.01"))
            )

    def test_percentage_discount_above_100_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals(
                [{"quantity": 1, "unit_price": "10"}],
                DiscountPolicy(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("100.5"))
            )

    def test_subtotal_rounds_the_sum_not_each_line(self):
        """Σ q·p se redondea una sola vez, con ROUND_HALF_UP"""
        items = [
            {"quantity": "0.5", "unit_price": "0.01"},
            {"quantity": "0.5", "unit_price": "0.01"},
            {"quantity": "0.5", "unit_price": "0.01"},
        ]
        assert compute_totals(items).subtotal == Decimal("0.02")
        assert line_amount("0.5", "0.01") == Decimal("0.01")

    def test_half_up_rounding_of_tax(self):
        totals = compute_totals([{"quantity": 1, "unit_price": "0.50"}], None, 5)
        # 0.025 -> 0.03
        assert totals.tax_amount == Decimal("0.03")

    @pytest.mark.parametrize("item", [
        {"quantity": 0, "unit_price": "10"},
        {"quantity": -1, "unit_price": "10"},
        {"quantity": 1, "unit_price": "-0.01"},
        {"quantity": "abc", "unit_price": "10"},
    ])
    def test_invalid_lines_are_rejected(self, item):
        with pytest.raises(ValidationError):
            compute_totals([item])

    def test_negative_tax_rate_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals([{"quantity": 1, "unit_price": "10"}], None, -1)

    def test_floats_do_not_leak_binary_error(self):
        assert to_money(0.1 + 0.2) == Decimal("0.30")
        assert compute_totals([{"quantity": 3, "unit_price": 0.1}]).subtotal == Decimal("0.30")


# ===== TESTS DE NUMERACIÓN =====

class TestDocumentNumbering:
    """Tests para la numeración de documentos"""

    def test_formats(self):
        assert format_number(DocumentType.QUOTATION, 7, TODAY) == "QUO-2026-0007"
        assert format_number(DocumentType.INVOICE, 12, TODAY) == "INV-0012"
        assert format_number(DocumentType.OUTGOING_PAYMENT, 3, TODAY) == "OP-000003"
        assert format_number(DocumentType.CLIENT, 42, TODAY) == "CLT0042"

    def test_parse_sequence(self):
        assert parse_sequence("QUO-2026-0015") == 15
        assert parse_sequence("OP-000120") == 120
        with pytest.raises(ValidationError):
            parse_sequence("INV-")

    def test_sequential_allocation(self, db_session):
        numbering = NumberingService(db_session, today=fixed_today)
        numbers = [numbering.next_number(DocumentType.INVOICE) for _ in range(3)]
        db_session.commit()

        assert numbers == ["INV-0001", "INV-0002", "INV-0003"]

    def test_counters_are_independent_per_type(self, db_session):
        numbering = NumberingService(db_session, today=fixed_today)
        assert numbering.next_number(DocumentType.INVOICE) == "INV-0001"
        assert numbering.next_number(DocumentType.OUTGOING_PAYMENT) == "OP-000001"
        assert numbering.next_number(DocumentType.INVOICE) == "INV-0002"

    def test_quotation_counter_resets_each_year(self, db_session):
        numbering = NumberingService(db_session, yearly_reset=True)
        assert numbering.next_number(DocumentType.QUOTATION, date(2025, 12, 31)) == "QUO-2025-0001"
        assert numbering.next_number(DocumentType.QUOTATION, date(2025, 12, 31)) == "QUO-2025-0002"
        assert numbering.next_number(DocumentType.QUOTATION, date(2026, 1, 1)) == "QUO-2026-0001"

    def test_quotation_counter_without_yearly_reset(self, db_session):
        numbering = NumberingService(db_session, yearly_reset=False)
        assert numbering.next_number(DocumentType.QUOTATION, date(2025, 12, 31)) == "QUO-2025-0001"
        assert numbering.next_number(DocumentType.QUOTATION, date(2026, 1, 1)) == "QUO-2026-0002"

    def test_peek_does_not_consume(self, db_session):
        numbering = NumberingService(db_session, today=fixed_today)
        assert numbering.peek_next(DocumentType.INVOICE) == "INV-0001"
        assert numbering.peek_next(DocumentType.INVOICE) == "INV-0001"
        assert numbering.next_number(DocumentType.INVOICE) == "INV-0001"
        assert numbering.peek_next(DocumentType.INVOICE) == "INV-0002"

    def test_rollback_releases_the_number(self, db_session):
        numbering = NumberingService(db_session, today=fixed_today)
        numbering.next_number(DocumentType.INVOICE)
        db_session.commit()
        numbering.next_number(DocumentType.INVOICE)
        db_session.rollback()

        assert numbering.next_number(DocumentType.INVOICE) == "INV-0002"

    def test_advance_past_never_moves_backwards(self, db_session):
        numbering = NumberingService(db_session, today=fixed_today)
        numbering.advance_past(DocumentType.INVOICE, "INV-0010")
        numbering.advance_past(DocumentType.INVOICE, "INV-0004")

        assert numbering.next_number(DocumentType.INVOICE) == "INV-0011"

    def test_concurrent_allocations_are_distinct(self, tmp_path):
        """N asignaciones concurrentes producen N números distintos"""
        file_engine = create_engine(
            f"sqlite:///{tmp_path / 'numbering.db'}",
            connect_args={"check_same_thread": False, "timeout": 30}
        )

        # Writers take the lock at BEGIN so pysqlite never deadlocks on upgrade
        @event.listens_for(file_engine, "connect")
        def disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(file_engine, "begin")
        def begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        Base.metadata.create_all(bind=file_engine)
        Factory = sessionmaker(bind=file_engine, autoflush=False)

        results, errors = [], []
        lock = threading.Lock()

        def worker():
            session = Factory()
            try:
                for _ in range(5):
                    number = NumberingService(session, today=fixed_today).next_number(DocumentType.INVOICE)
                    session.commit()
                    with lock:
                        results.append(number)
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        try:
            assert errors == []
            assert len(results) == 40
            assert len(set(results)) == 40
            assert sorted(results) == [f"INV-{n:04d}" for n in range(1, 41)]
        finally:
            file_engine.dispose()

    def test_collision_is_retried_with_next_number(self, db_session, sample_client):
        """Si el número ya existe, se reintenta con el siguiente"""
        db_session.add(Quotation(
            quotation_number="QUO-2026-0001",
            client=ClientSnapshot(sample_client.id, sample_client.business_name, sample_client.email),
            quotation_date=TODAY,
            valid_until_date=TODAY,
            created_by=1
        ))
        db_session.commit()

        quotation = QuotationService(db_session, today=fixed_today).create_quotation(
            QuotationCreate(
                client_id=sample_client.id,
                valid_until_date=TODAY + timedelta(days=15),
                line_items=[{"product_name": "Audit", "quantity": 1, "unit_price": "80"}]
            ),
            1
        )

        assert quotation.quotation_number == "QUO-2026-0002"
        sequence = db_session.query(DocumentSequence).filter(
            DocumentSequence.document_type == DocumentType.QUOTATION.value
        ).one()
        assert sequence.current_value == 2

    def test_collision_retries_are_bounded(self, db_session, sample_client, monkeypatch):
        from billdesk.core.config import settings
        monkeypatch.setattr(settings, "NUMBERING_MAX_RETRIES", 1)

        db_session.add(Quotation(
            quotation_number="QUO-2026-0001",
            client=ClientSnapshot(sample_client.id, sample_client.business_name, sample_client.email),
            quotation_date=TODAY,
            valid_until_date=TODAY,
            created_by=1
        ))
        db_session.commit()

        with pytest.raises(ConflictError):
            QuotationService(db_session, today=fixed_today).create_quotation(
                QuotationCreate(
                    client_id=sample_client.id,
                    valid_until_date=TODAY,
                    line_items=[{"product_name": "Audit", "quantity": 1, "unit_price": "80"}]
                ),
                1
            )


# ===== TESTS DE MÁQUINAS DE ESTADO =====

QUOTATION_ALLOWED = {
    ("draft", "sent"),
    ("sent", "accepted"), ("sent", "rejected"), ("sent", "expired"),
    ("accepted", "converted"),
}
INVOICE_ALLOWED = {
    ("draft", "sent"),
    ("sent", "pending_payment"),
    ("pending_payment", "paid"), ("pending_payment", "overdue"), ("pending_payment", "cancelled"),
    ("overdue", "paid"), ("overdue", "cancelled"),
}
OUTGOING_ALLOWED = {
    ("scheduled", "processing"), ("scheduled", "cancelled"),
    ("processing", "paid"), ("processing", "failed"), ("processing", "cancelled"),
}


def transition_cases(machine, allowed):
    return [
        (machine, current, requested, (current, requested) in allowed)
        for current, requested in pairs(sorted(machine.states), repeat=2)
        if current != requested
    ]


class TestStatusMachines:
    """Cada transición permitida funciona; todas las demás fallan"""

    @pytest.mark.parametrize(
        "machine,current,requested,allowed",
        transition_cases(QUOTATION_MACHINE, QUOTATION_ALLOWED)
        + transition_cases(INVOICE_MACHINE, INVOICE_ALLOWED)
        + transition_cases(OUTGOING_PAYMENT_MACHINE, OUTGOING_ALLOWED)
    )
    def test_transition_table(self, machine, current, requested, allowed):
        if allowed:
            machine.ensure_transition(current, requested)
        else:
            with pytest.raises(InvalidTransitionError):
                machine.ensure_transition(current, requested)

    def test_same_status_is_a_no_op(self):
        for machine in (QUOTATION_MACHINE, INVOICE_MACHINE, OUTGOING_PAYMENT_MACHINE):
            for state in machine.states:
                machine.ensure_transition(state, state)

    def test_terminal_states(self):
        assert QUOTATION_MACHINE.is_terminal("converted")
        assert QUOTATION_MACHINE.is_terminal("rejected")
        assert not QUOTATION_MACHINE.is_terminal("accepted")
        assert INVOICE_MACHINE.is_terminal("paid")
        assert OUTGOING_PAYMENT_MACHINE.is_terminal("failed")

    def test_initial_states(self):
        QUOTATION_MACHINE.ensure_initial("sent")
        OUTGOING_PAYMENT_MACHINE.ensure_initial("paid")
        with pytest.raises(ValidationError):
            INVOICE_MACHINE.ensure_initial("paid")
        with pytest.raises(ValidationError):
            QUOTATION_MACHINE.ensure_initial("accepted")

    def test_overdue_is_derived(self):
        """Vencida con saldo 50 -> overdue aunque esté 'sent'"""
        yesterday = TODAY - timedelta(days=1)
        assert is_invoice_overdue("sent", yesterday, Decimal("50"), TODAY)
        assert effective_status("sent", yesterday, Decimal("50"), TODAY) == "overdue"

    @pytest.mark.parametrize("status,due_date,balance", [
        ("sent", TODAY, Decimal("50")),                       # due today
        ("sent", TODAY - timedelta(days=1), Decimal("0")),    # settled
        ("draft", TODAY - timedelta(days=1), Decimal("50")),
        ("cancelled", TODAY - timedelta(days=1), Decimal("50")),
        ("paid", TODAY - timedelta(days=1), Decimal("0")),
    ])
    def test_not_overdue(self, status, due_date, balance):
        assert not is_invoice_overdue(status, due_date, balance, TODAY)
        assert effective_status(status, due_date, balance, TODAY) == status


# ===== TESTS DE REFERENCIAS =====

class TestReferenceResolver:

    def test_client_snapshot(self, db_session, sample_client):
        snapshot = ReferenceResolver(db_session).resolve_client(sample_client.id)
        assert snapshot == ClientSnapshot(sample_client.id, "Acme Logistics", "billing@acme-logistics.com")

    def test_missing_or_inactive_client(self, db_session, sample_client):
        resolver = ReferenceResolver(db_session)
        with pytest.raises(NotFoundError):
            resolver.resolve_client(9999)

        sample_client.status = False
        db_session.commit()
        with pytest.raises(NotFoundError):
            resolver.resolve_client(sample_client.id)

    def test_product_price_prefers_sale_price(self, db_session, sample_product):
        resolver = ReferenceResolver(db_session)
        assert resolver.resolve_product(sample_product.id).price == Decimal("60.00")

        sample_product.sale_price = Decimal("55.00")
        db_session.commit()
        assert resolver.resolve_product(sample_product.id).price == Decimal("55.00")

    def test_line_items(self, db_session, sample_product):
        lines = ReferenceResolver(db_session).resolve_line_items([
            {"product_id": sample_product.id, "quantity": 2},
            {"product_id": sample_product.id, "quantity": 1, "unit_price": "40"},
            {"product_name": "Custom report", "quantity": "1.5", "unit_price": "100"},
        ])

        assert [line.product_name for line in lines] == ["Website Maintenance", "Website Maintenance", "Custom report"]
        assert [line.amount for line in lines] == [Decimal("120.00"), Decimal("40.00"), Decimal("150.00")]
        assert lines[2].product_id is None

    def test_custom_line_needs_name_and_price(self, db_session):
        with pytest.raises(ValidationError):
            ReferenceResolver(db_session).resolve_line_items([{"quantity": 1, "unit_price": "10"}])
        with pytest.raises(ValidationError):
            ReferenceResolver(db_session).resolve_line_items([{"product_name": "X", "quantity": 1}])

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            ReferenceResolver(db_session).resolve_line_items([{"product_id": 404, "quantity": 1}])

    def test_quantity_is_kept_at_stored_scale(self, db_session):
        resolver = ReferenceResolver(db_session)
        line = resolver.resolve_line_items([{"product_name": "Hosting", "quantity": "1.0004", "unit_price": "1000"}])[0]
        assert (line.quantity, line.amount) == (Decimal("1.000"), Decimal("1000.00"))

        with pytest.raises(ValidationError):
            resolver.resolve_line_items([{"product_name": "Hosting", "quantity": "0.0004", "unit_price": "1000"}])

    @pytest.mark.parametrize("status", [ProductStatus.INACTIVE, ProductStatus.DISCONTINUED])
    def test_unavailable_product_is_refused(self, db_session, sample_product, status):
        sample_product.status = status
        db_session.commit()
        with pytest.raises(ValidationError):
            ReferenceResolver(db_session).resolve_line_items([{"product_id": sample_product.id, "quantity": 1}])


# ===== TESTS DE CONCILIACIÓN =====

class TestLedgerReconciler:

    def test_full_payment_settles_invoice(self, db_session, sample_client):
        """500 pagados sobre 500 -> saldo 0 y factura pagada"""
        invoice = make_invoice(db_session, sample_client.id)
        reconciler = LedgerReconciler(db_session, today=fixed_today)

        reconciler.apply_payment(invoice, Decimal("500.00"), 1)
        db_session.commit()

        assert invoice.balance_due == Decimal("0.00")
        assert invoice.status == InvoiceStatus.PAID
        assert sum(p.amount for p in invoice.payments) == invoice.amount_paid

    def test_partial_payment_moves_to_pending(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client.id)
        LedgerReconciler(db_session, today=fixed_today).apply_payment(invoice, "200", 1)
        db_session.commit()

        assert invoice.status == InvoiceStatus.PENDING_PAYMENT
        assert invoice.balance_due == Decimal("300.00")

    def test_client_aggregate_is_updated(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client.id)
        LedgerReconciler(db_session, today=fixed_today).apply_payment(invoice, "120.50", 1)
        db_session.commit()
        db_session.refresh(sample_client)

        assert sample_client.total_spent == Decimal("120.50")
        assert sample_client.last_payment == TODAY

    def test_overpayment_is_rejected(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client.id)
        with pytest.raises(OverpaymentError):
            LedgerReconciler(db_session, today=fixed_today).apply_payment(invoice, "500.01", 1)

    def test_payment_on_draft_is_rejected(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client.id, status="draft")
        with pytest.raises(InvalidTransitionError):
            LedgerReconciler(db_session, today=fixed_today).apply_payment(invoice, "10", 1)

    def test_recompute_is_idempotent(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client.id, unit_price="99.99", tax_rate="7.5")
        reconciler = LedgerReconciler(db_session, today=fixed_today)

        first = (invoice.subtotal, invoice.tax_amount, invoice.total_amount, invoice.balance_due)
        reconciler.recompute(invoice)
        reconciler.recompute(invoice)
        second = (invoice.subtotal, invoice.tax_amount, invoice.total_amount, invoice.balance_due)

        assert first == second
        assert invoice.total_amount == Decimal("107.49")

    def test_recompute_rejects_totals_below_amount_paid(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client.id)
        reconciler = LedgerReconciler(db_session, today=fixed_today)
        reconciler.apply_payment(invoice, "400", 1)
        db_session.commit()

        invoice.line_items[0].unit_price = Decimal("300.00")
        with pytest.raises(OverpaymentError):
            reconciler.recompute(invoice)
        db_session.rollback()

    def test_balance_is_total_minus_paid(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client.id, unit_price="123.45", tax_rate="10")
        LedgerReconciler(db_session, today=fixed_today).apply_payment(invoice, "35.80", 1)
        db_session.commit()
        db_session.refresh(invoice)

        assert invoice.balance_due == to_money(invoice.total_amount - invoice.amount_paid)
        assert invoice.balance_due == Decimal("100.00")


# ===== TESTS DE API =====

class TestLedgerAPI:

    def test_totals_preview(self, api_client):
        response = api_client.post("/ledger/totals", json={
            "line_items": [{"quantity": "2", "unit_price": "100"}],
            "discount": {"discount_type": "percentage", "discount_value": "10"},
            "tax_rate_percent": "5"
        })
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["taxable_amount"]) == Decimal("180.00")
        assert Decimal(data["total_amount"]) == Decimal("189.00")

    def test_totals_preview_rejects_large_fixed_discount(self, api_client):
        response = api_client.post("/ledger/totals", json={
            "line_items": [{"quantity": "1", "unit_price": "10"}],
            "discount": {"discount_type": "fixed", "discount_value": "11"}
        })
        assert response.status_code == 400

    def test_next_number_preview(self, api_client, sample_client):
        assert api_client.get("/ledger/next-number/client").json()["next_number"] == "CLT0002"
        assert api_client.get("/ledger/next-number/outgoing_payment").json()["next_number"] == "OP-000001"
        assert api_client.get("/ledger/next-number/receipt").status_code == 422
