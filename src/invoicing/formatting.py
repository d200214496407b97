"""Display helpers for the invoice preview."""
from datetime import date
from decimal import Decimal

from src.invoicing.calculations import quantize_money

DEFAULT_CURRENCY_SYMBOL = "₦"


def format_money(amount, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """₦1,234.50 style; negatives as -₦100.00."""
    value = quantize_money(amount if isinstance(amount, Decimal) else Decimal(str(amount)))
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def format_long_date(value: str | date | None) -> str:
    """'2025-06-14' -> 'June 14, 2025'. Unparseable input is returned as-is."""
    if not value:
        return ""
    if isinstance(value, date):
        parsed = value
    else:
        try:
            parsed = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"
