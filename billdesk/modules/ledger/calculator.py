"""
Totals calculator for quotations and invoices.

Pure arithmetic over Decimal: no session, no lookups. Every derived amount
is rounded to cents with ROUND_HALF_UP before it leaves this module.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Tuple

from billdesk.common.exceptions import ValidationError
from billdesk.modules.ledger.schemas import DiscountPolicy, DiscountType, Totals

MONEY_PLACES = Decimal("0.01")
# Scale of stored line quantities
QUANTITY_PLACES = Decimal("0.001")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")


def to_decimal(value: Any) -> Decimal:
    """Convert caller input to Decimal without going through binary floats."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Invalid numeric value: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"Invalid numeric value: {value!r}")
    return result


def to_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_quantity(value: Any) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def _line_values(item: Any) -> Tuple[Decimal, Decimal]:
    if isinstance(item, dict):
        quantity, unit_price = item.get("quantity"), item.get("unit_price")
    else:
        quantity, unit_price = getattr(item, "quantity", None), getattr(item, "unit_price", None)

    if quantity is None or unit_price is None:
        raise ValidationError("Line items need quantity and unit_price")

    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    if quantity <= 0:
        raise ValidationError(f"Quantity must be greater than 0 (got {quantity})")
    if unit_price < 0:
        raise ValidationError(f"Unit price cannot be negative (got {unit_price})")
    return quantity, unit_price


def line_amount(quantity: Any, unit_price: Any) -> Decimal:
    """Amount of a single line: quantity * unit_price, rounded to cents."""
    quantity, unit_price = _line_values({"quantity": quantity, "unit_price": unit_price})
    return to_money(quantity * unit_price)


def compute_subtotal(line_items: Iterable[Any]) -> Decimal:
    """
    Sum of quantity * unit_price over all lines, rounded once.

    Line amounts are rounded one by one, so the printed lines can differ
    from the subtotal by a cent or two when quantities are fractional.
    """
    raw = Decimal("0")
    for item in line_items:
        quantity, unit_price = _line_values(item)
        raw += quantity * unit_price
    return to_money(raw)


def compute_discount(subtotal: Decimal, discount: Optional[DiscountPolicy]) -> Decimal:
    """
    Discount amount for a subtotal.

    A percentage must be between 0 and 100; a fixed discount cannot exceed
    the subtotal. Both cases are rejected instead of clamped.
    """
    if discount is None:
        return ZERO

    value = to_decimal(discount.discount_value)
    if value < 0:
        raise ValidationError("Discount value cannot be negative")

    if discount.discount_type == DiscountType.PERCENTAGE:
        if value > HUNDRED:
            raise ValidationError(f"Percentage discount cannot exceed 100 (got {value})")
        return to_money(subtotal * value / HUNDRED)

    if value > subtotal:
        raise ValidationError(
            f"Fixed discount {to_money(value)} exceeds the subtotal {subtotal}"
        )
    return to_money(value)


def compute_tax(taxable_amount: Decimal, tax_rate_percent: Any) -> Decimal:
    rate = to_decimal(tax_rate_percent)
    if rate < 0:
        raise ValidationError("Tax rate cannot be negative")
    return to_money(taxable_amount * rate / HUNDRED)


def compute_totals(
    line_items: Iterable[Any],
    discount: Optional[DiscountPolicy] = None,
    tax_rate_percent: Any = 0
) -> Totals:
    """
    Monetary breakdown of a document.

    Args:
        line_items: objects or dicts exposing ``quantity`` and ``unit_price``
        discount: optional discount policy (quotations only)
        tax_rate_percent: tax rate applied to the discounted subtotal, e.g. 10 for 10%

    Returns:
        Totals with subtotal, discount_amount, taxable_amount, tax_amount, total_amount
    """
    subtotal = compute_subtotal(line_items)
    discount_amount = compute_discount(subtotal, discount)
    taxable_amount = subtotal - discount_amount
    tax_amount = compute_tax(taxable_amount, tax_rate_percent)

    return Totals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        total_amount=taxable_amount + tax_amount
    )
