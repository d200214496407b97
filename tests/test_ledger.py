"""
Tests for the invoice ledger: validation, save/load and listing.
"""
import sqlite3
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from src.invoicing.calculations import MAX_QUANTITY
from src.invoicing.drafts import add_item, draft_to_dict, set_field, update_item
from src.invoicing.ledger import InvoiceLedger, validate_for_save
from src.invoicing.models import InvoiceDraft
from src.invoicing.storage.record_store import RecordStore
from src.shared.errors import EmptyItemList, MissingRequiredField, NotFound, PersistenceError


@pytest.fixture()
def store(tmp_path):
    return RecordStore(tmp_path / "invoices.sqlite")


@pytest.fixture()
def ledger(store):
    return InvoiceLedger(store)


def _with_items(draft, *lines):
    for name, qty, price in lines:
        draft = add_item(draft)
        draft = update_item(draft, draft.items[-1].id, name=name, quantity=qty, unit_price=price)
    return draft


def _draft(**fields):
    base = InvoiceDraft(
        invoice_number="INV-000001001",
        client_name="Ada",
        event_date="2025-06-14",
        event_location="Lagos",
    )
    for name, value in fields.items():
        base = set_field(base, name, value)
    return _with_items(base, ("Chairs", 10, "5"), ("Tables", 2, "40"))


class TestValidation:
    def test_valid_draft(self):
        assert validate_for_save(_draft()).ok

    def test_missing_fields_listed(self):
        result = validate_for_save(_draft(client_name="", event_location="   "))
        assert not result.ok
        assert isinstance(result.error, MissingRequiredField)
        assert result.missing_fields == ["client_name", "event_location"]

    def test_empty_items(self):
        draft = InvoiceDraft(client_name="Ada", event_date="2025-06-14", event_location="Lagos")
        result = validate_for_save(draft)
        assert isinstance(result.error, EmptyItemList)

    def test_missing_fields_reported_before_empty_items(self):
        result = validate_for_save(InvoiceDraft())
        assert isinstance(result.error, MissingRequiredField)

    def test_phone_and_item_names_not_required(self):
        draft = _with_items(
            InvoiceDraft(client_name="Ada", event_date="2025-06-14", event_location="Lagos"),
            ("", 0, "0"),
        )
        assert validate_for_save(draft).ok


class TestSave:
    def test_invalid_draft_never_touches_store(self):
        store = MagicMock()
        ledger = InvoiceLedger(store)
        with pytest.raises(MissingRequiredField):
            ledger.save(_draft(client_name=""))
        with pytest.raises(EmptyItemList):
            ledger.save(InvoiceDraft(client_name="A", event_date="d", event_location="l"))
        assert store.method_calls == []

    def test_save_returns_record_with_totals(self, ledger):
        record = ledger.save(_draft(discount="5"))
        assert record.id
        assert record.invoice_number == "INV-000001001"
        assert record.subtotal == Decimal("130.00")
        assert record.discount == Decimal("5.00")
        assert record.total == Decimal("125.00")
        assert record.created_at == record.updated_at

    def test_negative_total_is_stored(self, ledger):
        draft = _with_items(
            set_field(InvoiceDraft(client_name="A", event_date="d", event_location="l"), "discount", "150"),
            ("Tent", 1, "50"),
        )
        record = ledger.save(draft)
        assert record.total == Decimal("-100.00")
        assert ledger.get_record(record.id).total == Decimal("-100.00")

    def test_number_generated_when_draft_has_none(self, ledger):
        record = ledger.save(_with_items(
            InvoiceDraft(client_name="A", event_date="d", event_location="l"), ("x", 1, "1"),
        ))
        assert record.invoice_number.startswith("INV-")

    def test_save_does_not_modify_draft(self, ledger):
        draft = _draft()
        before = draft_to_dict(draft)
        ledger.save(draft)
        assert draft_to_dict(draft) == before

    def test_each_save_without_id_creates_new_record(self, ledger):
        first = ledger.save(_draft())
        second = ledger.save(_draft())
        assert first.id != second.id
        assert len(ledger.list_all()) == 2


class TestLoad:
    def test_round_trip_preserves_fields_and_order(self, ledger):
        draft = _draft(client_phone="0801", delivery_fee="20")
        record = ledger.save(draft)
        loaded = ledger.load(record.id)

        assert loaded.invoice_number == draft.invoice_number
        assert loaded.client_name == "Ada"
        assert loaded.client_phone == "0801"
        assert loaded.delivery_fee == Decimal("20.00")
        assert [(i.name, i.quantity, i.unit_price, i.line_total) for i in loaded.items] == [
            ("Chairs", 10, Decimal("5.00"), Decimal("50.00")),
            ("Tables", 2, Decimal("40.00"), Decimal("80.00")),
        ]

    def test_load_uses_stored_line_totals(self, ledger, tmp_path):
        record = ledger.save(_draft())
        with sqlite3.connect(tmp_path / "invoices.sqlite") as conn:
            conn.execute("UPDATE invoice_items SET total_price = '999.00' WHERE item_name = 'Chairs'")
        loaded = ledger.load(record.id)
        assert loaded.items[0].line_total == Decimal("999.00")

    def test_unknown_id_raises_not_found(self, ledger):
        with pytest.raises(NotFound):
            ledger.load("missing")
        with pytest.raises(NotFound):
            ledger.get_record("missing")

    def test_record_without_items_is_not_found(self, ledger, tmp_path):
        record = ledger.save(_draft())
        with sqlite3.connect(tmp_path / "invoices.sqlite") as conn:
            conn.execute("DELETE FROM invoice_items")
        with pytest.raises(NotFound):
            ledger.load(record.id)


class TestUpdate:
    def test_update_replaces_items_and_keeps_identity(self, ledger):
        record = ledger.save(_draft())
        edited = _with_items(
            InvoiceDraft(
                invoice_number=record.invoice_number, client_name="Bo",
                event_date="2025-07-01", event_location="Abuja",
            ),
            ("Tent", 1, "300"),
        )
        updated = ledger.save(edited, existing_id=record.id)

        assert updated.id == record.id
        assert updated.created_at == record.created_at
        assert updated.total == Decimal("300.00")
        loaded = ledger.load(record.id)
        assert loaded.client_name == "Bo"
        assert [i.name for i in loaded.items] == ["Tent"]
        assert len(ledger.list_all()) == 1

    def test_update_unknown_id_raises_not_found(self, ledger):
        with pytest.raises(NotFound):
            ledger.save(_draft(), existing_id="missing")
        assert ledger.list_all() == []

    def test_failed_item_insert_keeps_previous_items(self, ledger):
        record = ledger.save(_draft())
        edited = _with_items(_draft(), ("Extra", 1, "1"))

        with patch(
            "src.invoicing.ledger.InvoiceLedger._insert_items",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with pytest.raises(PersistenceError):
                ledger.save(edited, existing_id=record.id)

        loaded = ledger.load(record.id)
        assert [i.name for i in loaded.items] == ["Chairs", "Tables"]
        assert ledger.get_record(record.id).total == record.total


    def test_oversized_quantity_saves_clamped(self, ledger):
        draft = _with_items(
            InvoiceDraft(client_name="A", event_date="d", event_location="l"),
            ("Chairs", "99999999999999999999", "5"),
        )
        record = ledger.save(draft)
        loaded = ledger.load(record.id)
        assert loaded.items[0].quantity == MAX_QUANTITY
        assert record.total == Decimal("5.00") * MAX_QUANTITY


class TestListAll:
    def test_newest_first(self, ledger):
        ids = [ledger.save(_draft(client_name=name)).id for name in ("A", "B", "C")]
        assert [r.id for r in ledger.list_all()] == list(reversed(ids))

    def test_empty(self, ledger):
        assert ledger.list_all() == []


def test_store_failure_raises_persistence_error(tmp_path):
    store = RecordStore(tmp_path / "invoices.sqlite")
    ledger = InvoiceLedger(store)
    with patch.object(store, "_connect", side_effect=sqlite3.OperationalError("unable to open database file")):
        with pytest.raises(PersistenceError) as exc_info:
            ledger.save(_draft())
    assert "permissions" in str(exc_info.value)
