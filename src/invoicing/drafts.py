"""
Draft reducer: every edit of the invoice form returns a new InvoiceDraft.

The functions here are pure; the web layer applies JSON actions through
apply_action() and keeps no draft state of its own.
"""
import random
import time
import uuid
from dataclasses import replace

from src.invoicing.calculations import coerce_amount, coerce_quantity, recompute_line_total
from src.invoicing.models import InvoiceDraft, LineItem

TEXT_FIELDS = ("client_name", "event_date", "event_location", "client_phone")
MONEY_FIELDS = ("discount", "delivery_fee")
ITEM_FIELDS = ("name", "quantity", "unit_price")


def generate_invoice_number(now_ms: int | None = None) -> str:
    """INV-<last 6 digits of the ms timestamp><3-digit random>. Not guaranteed unique."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    timestamp = str(now_ms)[-6:]
    suffix = f"{random.randrange(1000):03d}"
    return f"INV-{timestamp}{suffix}"


def new_item_id() -> str:
    return str(uuid.uuid4())


def new_draft() -> InvoiceDraft:
    return InvoiceDraft(invoice_number=generate_invoice_number())


def add_item(draft: InvoiceDraft) -> InvoiceDraft:
    item = LineItem(id=new_item_id())
    return replace(draft, items=draft.items + (item,))


def remove_item(draft: InvoiceDraft, item_id: str) -> InvoiceDraft:
    return replace(draft, items=tuple(i for i in draft.items if i.id != item_id))


def update_item(draft: InvoiceDraft, item_id: str, **changes) -> InvoiceDraft:
    """Edit name/quantity/unit_price of one item; its line total follows."""
    unknown = set(changes) - set(ITEM_FIELDS)
    if unknown:
        raise ValueError(f"Unknown item field(s): {', '.join(sorted(unknown))}")

    items = []
    for item in draft.items:
        if item.id == item_id:
            if "name" in changes:
                item = replace(item, name=str(changes["name"] or ""))
            item = recompute_line_total(
                item,
                changes.get("quantity", item.quantity),
                changes.get("unit_price", item.unit_price),
            )
        items.append(item)
    return replace(draft, items=tuple(items))


def set_field(draft: InvoiceDraft, field: str, value) -> InvoiceDraft:
    if field in TEXT_FIELDS:
        return replace(draft, **{field: "" if value is None else str(value)})
    if field in MONEY_FIELDS:
        return replace(draft, **{field: coerce_amount(value)})
    raise ValueError(f"Unknown draft field: {field}")


def apply_action(draft: InvoiceDraft, action: dict) -> InvoiceDraft:
    """Dispatch a JSON action sent by the form."""
    kind = action.get("type")
    if kind == "add_item":
        return add_item(draft)
    if kind == "remove_item":
        return remove_item(draft, action["item_id"])
    if kind == "update_item":
        return update_item(draft, action["item_id"], **action.get("changes", {}))
    if kind == "set_field":
        return set_field(draft, action["field"], action.get("value"))
    raise ValueError(f"Unknown draft action: {kind}")


# ── Serialization ──

def item_to_dict(item: LineItem) -> dict:
    return {
        "id": item.id,
        "item_name": item.name,
        "quantity": item.quantity,
        "price_per_item": str(item.unit_price),
        "total_price": str(item.line_total),
    }


def draft_to_dict(draft: InvoiceDraft) -> dict:
    return {
        "invoice_number": draft.invoice_number,
        "client_name": draft.client_name,
        "event_date": draft.event_date,
        "event_location": draft.event_location,
        "client_phone": draft.client_phone,
        "items": [item_to_dict(i) for i in draft.items],
        "discount": str(draft.discount),
        "delivery_fee": str(draft.delivery_fee),
    }


def draft_from_dict(data: dict) -> InvoiceDraft:
    """
    Build a draft from form JSON.

    Numbers are coerced like any other form input and line totals are
    recomputed; a client-supplied total_price is ignored.
    """
    items = []
    for raw in data.get("items") or []:
        item = LineItem(id=str(raw.get("id") or new_item_id()), name=str(raw.get("item_name") or ""))
        items.append(recompute_line_total(item, raw.get("quantity"), raw.get("price_per_item")))
    return InvoiceDraft(
        invoice_number=str(data.get("invoice_number") or ""),
        client_name=str(data.get("client_name") or ""),
        event_date=str(data.get("event_date") or ""),
        event_location=str(data.get("event_location") or ""),
        client_phone=str(data.get("client_phone") or ""),
        items=tuple(items),
        discount=coerce_amount(data.get("discount")),
        delivery_fee=coerce_amount(data.get("delivery_fee")),
    )
