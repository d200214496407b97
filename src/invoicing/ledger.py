"""
Invoice ledger - validation, totals and the save/load protocol.

Totals are computed once when a draft is saved and stored with the header.
Reads never re-derive them: load() rebuilds the draft from the stored line
totals and get_record() returns the stored subtotal/total.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from src.invoicing.calculations import compute_totals
from src.invoicing.drafts import generate_invoice_number
from src.invoicing.models import InvoiceDraft, InvoiceRecord, LineItem, Totals
from src.invoicing.storage.record_store import RecordHandle, RecordStore
from src.shared.errors import EmptyItemList, MissingRequiredField, NotFound, ValidationError

log = logging.getLogger(__name__)

REQUIRED_FIELDS = ("client_name", "event_date", "event_location")


@dataclass
class ValidationResult:
    ok: bool
    error: ValidationError | None = None
    missing_fields: list[str] = field(default_factory=list)


def validate_for_save(draft: InvoiceDraft) -> ValidationResult:
    """Required header fields first, then at least one item. Nothing else is checked."""
    missing = [name for name in REQUIRED_FIELDS if not getattr(draft, name).strip()]
    if missing:
        return ValidationResult(ok=False, error=MissingRequiredField(missing), missing_fields=missing)
    if not draft.items:
        return ValidationResult(ok=False, error=EmptyItemList())
    return ValidationResult(ok=True)


def _row_to_record(row: dict) -> InvoiceRecord:
    return InvoiceRecord(
        id=row["id"],
        invoice_number=row["invoice_number"],
        client_name=row["client_name"],
        event_date=row["event_date"],
        event_location=row["event_location"],
        client_phone=row["client_phone"],
        subtotal=Decimal(row["subtotal"]),
        discount=Decimal(row["discount"]),
        delivery_fee=Decimal(row["delivery_fee"]),
        total=Decimal(row["total"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_item(row: dict) -> LineItem:
    return LineItem(
        id=row["id"],
        name=row["item_name"],
        quantity=int(row["quantity"]),
        unit_price=Decimal(row["price_per_item"]),
        line_total=Decimal(row["total_price"]),
    )


class InvoiceLedger:
    """Saves drafts as invoice records and rebuilds drafts from them."""

    def __init__(self, store: RecordStore):
        self.store = store

    def save(self, draft: InvoiceDraft, existing_id: str | None = None) -> InvoiceRecord:
        """
        Persist a draft.

        Without existing_id a new record is inserted. With it, the header and
        totals are updated and the item rows fully replaced. Header and items
        are written in one transaction. The draft itself is never modified.

        Raises:
            MissingRequiredField / EmptyItemList: before any store call.
            NotFound: existing_id has no record.
            PersistenceError: the store failed; nothing is committed.
        """
        result = validate_for_save(draft)
        if not result.ok:
            raise result.error

        totals = compute_totals(draft)
        now = datetime.now(UTC).isoformat()
        if existing_id is None:
            record = self._insert(draft, totals, now)
            log.info("Saved invoice %s (%s) total=%s", record.invoice_number, record.id, record.total)
        else:
            record = self._update(existing_id, draft, totals, now)
            log.info("Updated invoice %s (%s) total=%s", record.invoice_number, record.id, record.total)
        return record

    def _insert(self, draft: InvoiceDraft, totals: Totals, now: str) -> InvoiceRecord:
        row = {
            "id": str(uuid.uuid4()),
            "invoice_number": draft.invoice_number or generate_invoice_number(),
            **self._header_values(draft, totals),
            "created_at": now,
            "updated_at": now,
        }
        with self.store.transaction() as tx:
            tx.insert("invoices", row)
            self._insert_items(tx, row["id"], draft.items, now)
        return _row_to_record(row)

    def _update(self, invoice_id: str, draft: InvoiceDraft, totals: Totals, now: str) -> InvoiceRecord:
        values = {**self._header_values(draft, totals), "updated_at": now}
        with self.store.transaction() as tx:
            existing = tx.select("invoices", where={"id": invoice_id}, limit=1)
            if not existing:
                raise NotFound(invoice_id)
            tx.update("invoices", values, where={"id": invoice_id})
            tx.delete("invoice_items", where={"invoice_id": invoice_id})
            self._insert_items(tx, invoice_id, draft.items, now)
        return _row_to_record({**existing[0], **values})

    @staticmethod
    def _header_values(draft: InvoiceDraft, totals: Totals) -> dict:
        return {
            "client_name": draft.client_name,
            "event_date": draft.event_date,
            "event_location": draft.event_location,
            "client_phone": draft.client_phone,
            "subtotal": str(totals.subtotal),
            "discount": str(draft.discount),
            "delivery_fee": str(draft.delivery_fee),
            "total": str(totals.total),
        }

    @staticmethod
    def _insert_items(tx: RecordHandle, invoice_id: str, items, now: str) -> None:
        tx.insert_many("invoice_items", [
            {
                "id": str(uuid.uuid4()),
                "invoice_id": invoice_id,
                "item_name": item.name,
                "quantity": item.quantity,
                "price_per_item": str(item.unit_price),
                "total_price": str(item.line_total),
                "sort_order": position,
                "created_at": now,
            }
            for position, item in enumerate(items)
        ])

    def load(self, invoice_id: str) -> InvoiceDraft:
        """Rebuild the draft of a saved invoice, items in stored order."""
        with self.store.transaction() as tx:
            rows = tx.select("invoices", where={"id": invoice_id}, limit=1)
            if not rows:
                raise NotFound(invoice_id)
            item_rows = tx.select(
                "invoice_items", where={"invoice_id": invoice_id}, order_by=[("sort_order", False)],
            )
        if not item_rows:
            log.warning("Invoice %s has no stored items", invoice_id)
            raise NotFound(invoice_id)
        header = rows[0]
        return InvoiceDraft(
            invoice_number=header["invoice_number"],
            client_name=header["client_name"],
            event_date=header["event_date"],
            event_location=header["event_location"],
            client_phone=header["client_phone"],
            items=tuple(_row_to_item(r) for r in item_rows),
            discount=Decimal(header["discount"]),
            delivery_fee=Decimal(header["delivery_fee"]),
        )

    def get_record(self, invoice_id: str) -> InvoiceRecord:
        rows = self.store.select("invoices", where={"id": invoice_id}, limit=1)
        if not rows:
            raise NotFound(invoice_id)
        return _row_to_record(rows[0])

    def list_all(self) -> list[InvoiceRecord]:
        """Every saved invoice, newest first."""
        rows = self.store.select("invoices", order_by=[("created_at", True), ("rowid", True)])
        return [_row_to_record(r) for r in rows]
