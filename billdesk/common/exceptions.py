"""
Typed errors raised by the billing services.

Every error carries a machine readable ``code`` and the HTTP status the API
layer answers with. Services raise them; ``billdesk.main`` turns them into
JSON responses with a single exception handler.

    BillingError
    +-- ValidationError          400  VALIDATION_ERROR
    |   +-- OverpaymentError     400  OVERPAYMENT
    +-- NotFoundError            404  NOT_FOUND
    +-- InvalidTransitionError   400  INVALID_TRANSITION
    +-- ConflictError            409  CONFLICT
    +-- PersistenceError         500  PERSISTENCE_ERROR
"""
from decimal import Decimal
from typing import Optional


class BillingError(Exception):
    """Base class for every error raised by the billing engine."""

    code = "BILLING_ERROR"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ValidationError(BillingError):
    code = "VALIDATION_ERROR"
    status_code = 400


class OverpaymentError(ValidationError):
    code = "OVERPAYMENT"

    def __init__(self, total_amount: Decimal, amount_paid: Decimal):
        super().__init__(
            f"Amount paid {amount_paid} would exceed the invoice total {total_amount}"
        )
        self.total_amount = total_amount
        self.amount_paid = amount_paid


class NotFoundError(BillingError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[object] = None):
        detail = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(detail)
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransitionError(BillingError):
    code = "INVALID_TRANSITION"
    status_code = 400

    def __init__(self, document: str, current: str, requested: str):
        super().__init__(f"Cannot move {document} from '{current}' to '{requested}'")
        self.document = document
        self.current = current
        self.requested = requested


class ConflictError(BillingError):
    code = "CONFLICT"
    status_code = 409


class PersistenceError(BillingError):
    code = "PERSISTENCE_ERROR"
    status_code = 500

    def __init__(self, operation: str):
        # Store failures stay opaque to the caller
        super().__init__(f"Internal error while {operation}")
        self.operation = operation
