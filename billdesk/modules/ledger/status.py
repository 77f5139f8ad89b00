"""
Status lifecycles of quotations, invoices and outgoing payments.

Each machine is a table of allowed moves. Staying in the same status is
never a transition and is always accepted. ``overdue`` is not written by
anyone: it is derived from the due date when an invoice is read.
"""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from billdesk.common.exceptions import InvalidTransitionError, ValidationError

StatusValue = Union[str, Enum]


class StatusMachine:
    def __init__(self, name: str, transitions: Dict[str, FrozenSet[str]], initial: FrozenSet[str]):
        self.name = name
        self.transitions = transitions
        self.initial = initial

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def is_terminal(self, state: StatusValue) -> bool:
        return not self.transitions[_value(state)]

    def can_transition(self, current: StatusValue, requested: StatusValue) -> bool:
        current, requested = _value(current), _value(requested)
        if current == requested:
            return True
        return requested in self.transitions.get(current, frozenset())

    def ensure_transition(self, current: StatusValue, requested: StatusValue) -> None:
        if not self.can_transition(current, requested):
            raise InvalidTransitionError(self.name, _value(current), _value(requested))

    def ensure_initial(self, requested: StatusValue) -> None:
        if _value(requested) not in self.initial:
            raise ValidationError(
                f"A new {self.name} cannot start as '{_value(requested)}' "
                f"(allowed: {', '.join(sorted(self.initial))})"
            )


def _value(state: StatusValue) -> str:
    return state.value if isinstance(state, Enum) else str(state)


QUOTATION_MACHINE = StatusMachine(
    "quotation",
    {
        "draft": frozenset({"sent"}),
        "sent": frozenset({"accepted", "rejected", "expired"}),
        "accepted": frozenset({"converted"}),
        "rejected": frozenset(),
        "expired": frozenset(),
        "converted": frozenset(),
    },
    initial=frozenset({"draft", "sent"}),
)

INVOICE_MACHINE = StatusMachine(
    "invoice",
    {
        "draft": frozenset({"sent"}),
        "sent": frozenset({"pending_payment"}),
        "pending_payment": frozenset({"paid", "overdue", "cancelled"}),
        "overdue": frozenset({"paid", "cancelled"}),
        "paid": frozenset(),
        "cancelled": frozenset(),
    },
    initial=frozenset({"draft", "sent"}),
)

OUTGOING_PAYMENT_MACHINE = StatusMachine(
    "outgoing payment",
    {
        "scheduled": frozenset({"processing", "cancelled"}),
        "processing": frozenset({"paid", "failed", "cancelled"}),
        "paid": frozenset(),
        "failed": frozenset(),
        "cancelled": frozenset(),
    },
    initial=frozenset({"scheduled", "processing", "paid"}),
)

# Invoices in these states can still become overdue
OVERDUE_ELIGIBLE = frozenset({"sent", "pending_payment", "overdue"})
# Invoices in these states accept payments
PAYABLE = frozenset({"sent", "pending_payment", "overdue"})


def is_invoice_overdue(
    status: StatusValue,
    due_date: Optional[date],
    balance_due: Decimal,
    today: Optional[date] = None
) -> bool:
    """An open invoice with money owed past its due date."""
    if due_date is None or balance_due is None:
        return False
    today = today or date.today()
    return (
        _value(status) in OVERDUE_ELIGIBLE
        and Decimal(balance_due) > 0
        and due_date < today
    )


def effective_status(
    status: StatusValue,
    due_date: Optional[date],
    balance_due: Decimal,
    today: Optional[date] = None
) -> str:
    if is_invoice_overdue(status, due_date, balance_due, today):
        return "overdue"
    return _value(status)
