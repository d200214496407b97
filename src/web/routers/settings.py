"""Settings router - business profile page and API."""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.invoicing.models import DEFAULT_PROFILE
from src.invoicing.storage.business_profile_store import profile_from_dict, profile_to_dict
from src.shared.errors import PersistenceError
from src.web.dependencies import get_profile_store, get_template_context, templates

log = logging.getLogger(__name__)
router = APIRouter()


@router.get("/settings")
async def settings_page(request: Request):
    ctx = get_template_context(request)
    ctx["profile"] = profile_to_dict(ctx["business"])
    return templates.TemplateResponse(request, "settings.html", ctx)


@router.get("/api/settings/business")
async def get_business_profile():
    store = get_profile_store()
    try:
        saved = store.get()
    except PersistenceError as e:
        log.error("Could not read business profile: %s", e)
        return JSONResponse({"error": str(e)}, status_code=500)
    result = profile_to_dict(saved or DEFAULT_PROFILE)
    result["saved"] = saved is not None
    return result


@router.put("/api/settings/business")
async def update_business_profile(request: Request):
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return JSONResponse({"error": "A JSON object is required."}, status_code=400)
    try:
        profile = get_profile_store().upsert(profile_from_dict(body))
    except PersistenceError as e:
        log.error("Could not save business profile: %s", e)
        return JSONResponse({"error": str(e)}, status_code=500)
    result = profile_to_dict(profile)
    result["saved"] = True
    return result
