"""Line and invoice total arithmetic.

Malformed numeric input never raises: it normalizes to zero. Negative
quantities and amounts clamp to zero; oversized ones clamp to MAX_QUANTITY
and MAX_AMOUNT. Totals themselves are never clamped.
"""
import re
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.invoicing.models import InvoiceDraft, LineItem, Totals

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# A line total of MAX_QUANTITY * MAX_AMOUNT still fits the default Decimal precision.
MAX_QUANTITY = 999_999_999
MAX_AMOUNT = Decimal("999999999999.99")

_LEADING_INT = re.compile(r"\s*\+?(\d+)")


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO


def _parse_decimal(value) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (Decimal, int)):
        parsed = Decimal(value)
    elif isinstance(value, float):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def coerce_amount(value) -> Decimal:
    """Money input (unit price, discount, delivery fee) as cents in [0, MAX_AMOUNT]."""
    parsed = _parse_decimal(value)
    if parsed is None or parsed < 0:
        return ZERO
    return quantize_money(min(parsed, MAX_AMOUNT))


def coerce_quantity(value) -> int:
    """
    Quantity input as an integer in [0, MAX_QUANTITY].

    Strings follow integer parsing: only the leading digit run counts, so
    "2.7" is 2 and "1e5000" is 1. Numbers truncate toward zero.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if not match:
            return 0
        digits = match.group(1).lstrip("0")
        if len(digits) > len(str(MAX_QUANTITY)):
            return MAX_QUANTITY
        return min(int(digits or "0"), MAX_QUANTITY)
    parsed = _parse_decimal(value)
    if parsed is None or parsed < 0:
        return 0
    if parsed > MAX_QUANTITY:
        return MAX_QUANTITY
    return int(parsed)


def recompute_line_total(item: LineItem, quantity, unit_price) -> LineItem:
    """Return a copy of item with normalized quantity/price and a fresh line total."""
    qty = coerce_quantity(quantity)
    price = coerce_amount(unit_price)
    return replace(item, quantity=qty, unit_price=price, line_total=price * qty)


def compute_totals(draft: InvoiceDraft) -> Totals:
    """subtotal = sum of line totals; total = subtotal - discount + delivery fee."""
    subtotal = sum((item.line_total for item in draft.items), ZERO)
    total = subtotal - draft.discount + draft.delivery_fee
    return Totals(subtotal=subtotal, total=total)
