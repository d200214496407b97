"""Invoices router - form, preview and list pages plus the draft/invoice API."""
import logging
from datetime import date

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.invoicing.calculations import compute_totals, quantize_money
from src.invoicing.drafts import apply_action, draft_from_dict, draft_to_dict, new_draft
from src.shared.errors import (
    AppErrors,
    InvoicerError,
    NotFound,
    PersistenceError,
    ValidationError,
)
from src.web.dependencies import get_ledger, get_template_context, templates

log = logging.getLogger(__name__)
router = APIRouter()


def _money(value) -> str:
    return str(quantize_money(value))


def _record_to_dict(rec):
    return {
        "id": rec.id,
        "invoice_number": rec.invoice_number,
        "client_name": rec.client_name,
        "event_date": rec.event_date,
        "event_location": rec.event_location,
        "client_phone": rec.client_phone,
        "subtotal": _money(rec.subtotal),
        "discount": _money(rec.discount),
        "delivery_fee": _money(rec.delivery_fee),
        "total": _money(rec.total),
        "created_at": rec.created_at,
        "updated_at": rec.updated_at,
    }


def _totals_to_dict(totals):
    return {"subtotal": _money(totals.subtotal), "total": _money(totals.total)}


def _draft_response(draft):
    return {"draft": draft_to_dict(draft), "totals": _totals_to_dict(compute_totals(draft))}


def _error_response(error: InvoicerError) -> JSONResponse:
    if isinstance(error, ValidationError):
        return JSONResponse(
            {"error": str(error), "kind": error.kind, "fields": getattr(error, "fields", [])},
            status_code=400,
        )
    if isinstance(error, NotFound):
        return JSONResponse({"error": AppErrors.INVOICE_NOT_FOUND}, status_code=404)
    log.error("Invoice operation failed: %s", error)
    return JSONResponse({"error": str(error)}, status_code=500)


def _parse_draft(payload) -> tuple:
    """Returns (draft, None) or (None, error response)."""
    if not isinstance(payload, dict):
        return None, JSONResponse({"error": AppErrors.INVALID_DRAFT}, status_code=400)
    try:
        return draft_from_dict(payload), None
    except (AttributeError, TypeError, ValueError):
        log.warning("Rejected malformed draft payload")
        return None, JSONResponse({"error": AppErrors.INVALID_DRAFT}, status_code=400)


async def _read_json(request: Request):
    """Request body as JSON, or None when it does not parse."""
    try:
        return await request.json()
    except ValueError:
        log.warning("Rejected request body that is not JSON")
        return None


def _error_page(request: Request, error: PersistenceError):
    ctx = get_template_context(request)
    ctx["error"] = str(error)
    return templates.TemplateResponse(request, "error.html", ctx, status_code=500)


def _preview_context(request: Request, draft, totals) -> dict:
    ctx = get_template_context(request)
    ctx["draft"] = draft
    ctx["totals"] = totals
    ctx["today"] = date.today()
    return ctx


# ── Pages ──

@router.get("/invoices")
async def invoices_page(request: Request):
    ctx = get_template_context(request)
    try:
        ctx["invoices"] = get_ledger().list_all()
    except PersistenceError as e:
        log.error("Could not list invoices: %s", e)
        ctx["invoices"] = []
        ctx["error"] = str(e)
    return templates.TemplateResponse(request, "invoices.html", ctx)


@router.get("/invoices/new")
async def invoice_new_page(request: Request):
    request.session.pop("current_invoice_id", None)
    ctx = get_template_context(request)
    ctx["invoice_id"] = None
    ctx["current_invoice_id"] = None
    ctx.update(_draft_response(new_draft()))
    return templates.TemplateResponse(request, "invoice_edit.html", ctx)


@router.get("/invoices/{invoice_id}/edit")
async def invoice_edit_page(invoice_id: str, request: Request):
    try:
        draft = get_ledger().load(invoice_id)
    except NotFound:
        request.session.pop("current_invoice_id", None)
        ctx = get_template_context(request)
        return templates.TemplateResponse(request, "not_found.html", ctx, status_code=404)
    except PersistenceError as e:
        log.error("Could not load invoice %s: %s", invoice_id, e)
        return _error_page(request, e)
    request.session["current_invoice_id"] = invoice_id
    ctx = get_template_context(request)
    ctx["invoice_id"] = invoice_id
    ctx.update(_draft_response(draft))
    return templates.TemplateResponse(request, "invoice_edit.html", ctx)


@router.get("/invoices/{invoice_id}/preview")
async def invoice_preview_page(invoice_id: str, request: Request):
    ledger = get_ledger()
    try:
        draft = ledger.load(invoice_id)
        record = ledger.get_record(invoice_id)
    except NotFound:
        ctx = get_template_context(request)
        return templates.TemplateResponse(request, "not_found.html", ctx, status_code=404)
    except PersistenceError as e:
        log.error("Could not load invoice %s for preview: %s", invoice_id, e)
        return _error_page(request, e)
    # Saved invoices show the stored totals.
    ctx = _preview_context(request, draft, record)
    return templates.TemplateResponse(request, "invoice_preview.html", ctx)


@router.post("/invoices/preview")
async def draft_preview_fragment(request: Request):
    body = await _read_json(request)
    draft, error = _parse_draft(body.get("draft") if isinstance(body, dict) else None)
    if error:
        return error
    ctx = _preview_context(request, draft, compute_totals(draft))
    return templates.TemplateResponse(request, "_invoice_preview.html", ctx)


# ── Drafts API ──

@router.get("/api/drafts/new")
async def create_draft():
    return _draft_response(new_draft())


@router.post("/api/drafts/apply")
async def apply_draft_action(request: Request):
    body = await _read_json(request)
    if not isinstance(body, dict) or not isinstance(body.get("action"), dict):
        return JSONResponse({"error": "action is required."}, status_code=400)
    draft, error = _parse_draft(body.get("draft"))
    if error:
        return error
    try:
        updated = apply_action(draft, body["action"])
    except (KeyError, TypeError, ValueError) as e:
        return JSONResponse({"error": f"Invalid action: {e}"}, status_code=400)
    return _draft_response(updated)


@router.post("/api/session/new-invoice")
async def start_new_invoice(request: Request):
    request.session.pop("current_invoice_id", None)
    return _draft_response(new_draft())


# ── Invoices API ──

@router.get("/api/invoices")
async def list_invoices():
    try:
        records = get_ledger().list_all()
    except InvoicerError as e:
        return _error_response(e)
    return {"invoices": [_record_to_dict(r) for r in records], "count": len(records)}


@router.post("/api/invoices")
async def create_invoice(request: Request):
    body = await _read_json(request)
    draft, error = _parse_draft(body.get("draft") if isinstance(body, dict) else None)
    if error:
        return error
    try:
        record = get_ledger().save(draft)
    except InvoicerError as e:
        return _error_response(e)
    request.session["current_invoice_id"] = record.id
    return _record_to_dict(record)


@router.get("/api/invoices/{invoice_id}")
async def get_invoice(invoice_id: str):
    ledger = get_ledger()
    try:
        draft = ledger.load(invoice_id)
        record = ledger.get_record(invoice_id)
    except InvoicerError as e:
        return _error_response(e)
    result = _record_to_dict(record)
    result["draft"] = draft_to_dict(draft)
    return result


@router.put("/api/invoices/{invoice_id}")
async def update_invoice(invoice_id: str, request: Request):
    body = await _read_json(request)
    draft, error = _parse_draft(body.get("draft") if isinstance(body, dict) else None)
    if error:
        return error
    try:
        record = get_ledger().save(draft, existing_id=invoice_id)
    except InvoicerError as e:
        return _error_response(e)
    request.session["current_invoice_id"] = record.id
    return _record_to_dict(record)
