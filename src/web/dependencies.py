"""
Dependency injection for FastAPI routes.
"""
import logging
import os
from dataclasses import replace
from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates

from src.invoicing.formatting import format_long_date, format_money
from src.invoicing.models import DEFAULT_PROFILE
from src.shared.app_state import AppState
from src.shared.errors import PersistenceError

log = logging.getLogger(__name__)

_HERE = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=_HERE / "templates")

DATA_ROOT = Path(os.environ.get("INVOICER_DATA_ROOT", "./data"))
CURRENCY_SYMBOL = os.environ.get("INVOICER_CURRENCY_SYMBOL", "₦")


def _money_filter(amount, symbol: str | None = None) -> str:
    return format_money(amount, symbol or CURRENCY_SYMBOL)


templates.env.filters["money"] = _money_filter
templates.env.filters["long_date"] = format_long_date


def get_state(request: Request) -> AppState:
    """Reconstruct AppState from session."""
    return AppState(
        data_root=DATA_ROOT,
        current_invoice_id=request.session.get("current_invoice_id"),
        currency_symbol=CURRENCY_SYMBOL,
    )


def get_record_store():
    """Get RecordStore instance for the invoice database."""
    from src.invoicing.storage.record_store import RecordStore
    DATA_ROOT.mkdir(parents=True, exist_ok=True)
    return RecordStore(DATA_ROOT / "invoices.sqlite")


def get_ledger():
    from src.invoicing.ledger import InvoiceLedger
    return InvoiceLedger(get_record_store())


def get_profile_store():
    from src.invoicing.storage.business_profile_store import BusinessProfileStore
    return BusinessProfileStore(get_record_store())


def get_template_context(request: Request) -> dict:
    """Build common template context with nav state and the business profile."""
    state = get_state(request)
    try:
        business = get_profile_store().get_or_default()
    except PersistenceError as e:
        log.error("Could not read business profile: %s", e)
        business = replace(DEFAULT_PROFILE)
    return {
        "request": request,
        "current_invoice_id": state.current_invoice_id,
        "currency_symbol": state.currency_symbol,
        "business": business,
    }
