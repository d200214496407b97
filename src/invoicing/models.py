"""Invoice and business profile entities."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class LineItem:
    """One row of an invoice. line_total is derived, never edited directly."""
    id: str
    name: str = ""
    quantity: int = 1
    unit_price: Decimal = Decimal("0.00")
    line_total: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class InvoiceDraft:
    """
    The invoice being edited. Immutable: every edit produces a new draft.

    Item order is meaningful; items render and persist in this order.
    """
    invoice_number: str = ""
    client_name: str = ""
    event_date: str = ""
    event_location: str = ""
    client_phone: str = ""
    items: tuple[LineItem, ...] = ()
    discount: Decimal = Decimal("0.00")
    delivery_fee: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    total: Decimal


@dataclass
class InvoiceRecord:
    """Persisted invoice header. subtotal and total are frozen at save time."""
    id: str
    invoice_number: str
    client_name: str
    event_date: str
    event_location: str
    client_phone: str
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    total: Decimal
    created_at: str
    updated_at: str


@dataclass
class BusinessProfile:
    business_name: str = ""
    email: str = ""
    phone: str = ""
    social_handle: str = ""
    logo_url: str = ""
    thank_you_message: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


DEFAULT_PROFILE = BusinessProfile(
    business_name="RentalsByMilly",
    social_handle="@rentalsbymilly",
    thank_you_message=(
        "Thank you for your business! We look forward to making your event unforgettable."
    ),
)
