"""
Shared errors and user-facing messages.

User-visible errors must be clear and actionable.
"""


class AppErrors:
    """Centralized actionable error messages."""

    MISSING_REQUIRED_FIELDS = (
        "Please fill in all required fields: client name, event date and event location."
    )

    EMPTY_ITEM_LIST = (
        "Please add at least one item before saving."
    )

    STORAGE_FAILED = (
        "Saving to the invoice database failed. Check the logs and try again."
    )

    INVOICE_NOT_FOUND = (
        "Invoice not found. It may have been removed; pick another from the list."
    )

    INVALID_DRAFT = (
        "The invoice draft could not be read. Reload the page and try again."
    )


class InvoicerError(Exception):
    """Base exception for invoice and settings operations."""


class ValidationError(InvoicerError):
    """A draft cannot be saved. Local and re-enterable, never persisted."""

    kind = "ValidationError"


class MissingRequiredField(ValidationError):
    kind = "MissingRequiredField"

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(AppErrors.MISSING_REQUIRED_FIELDS)


class EmptyItemList(ValidationError):
    kind = "EmptyItemList"

    def __init__(self):
        super().__init__(AppErrors.EMPTY_ITEM_LIST)


class PersistenceError(InvoicerError):
    """Any failure of the underlying store."""


class NotFound(InvoicerError):
    """Requested invoice does not exist or has no stored items."""

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} not found")


def format_storage_error(error: Exception) -> str:
    """Format a storage failure as an actionable message."""
    error_str = str(error).lower()
    if "locked" in error_str or "busy" in error_str:
        return "The invoice database is busy. Wait a moment and try again."
    if "readonly" in error_str or "read-only" in error_str or "unable to open" in error_str:
        return "The invoice database cannot be written. Check INVOICER_DATA_ROOT permissions."
    return AppErrors.STORAGE_FAILED
