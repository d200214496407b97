"""
FastAPI application for the event rental invoicer.
"""
import logging
import os
import secrets
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from src.shared.errors import PersistenceError
from src.shared.logging_config import configure_logging

_HERE = Path(__file__).resolve().parent
_DATA_ROOT = Path(os.environ.get("INVOICER_DATA_ROOT", "./data"))

log = logging.getLogger(__name__)


def _get_session_secret() -> str:
    """Get or generate a persistent session secret key."""
    env_key = os.environ.get("SESSION_SECRET")
    if env_key:
        return env_key
    _DATA_ROOT.mkdir(parents=True, exist_ok=True)
    key_file = _DATA_ROOT / ".session_key"
    if key_file.exists():
        return key_file.read_text().strip()
    key = secrets.token_hex(32)
    key_file.write_text(key)
    return key


def _init_storage():
    """Create the invoice database schema on startup."""
    from src.web.dependencies import get_record_store
    try:
        store = get_record_store()
        log.info("Invoice database ready at %s", store.db_path)
    except PersistenceError as e:
        log.error("Invoice database unavailable: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    _init_storage()
    yield


app = FastAPI(title="Event Rental Invoicer", version="0.1.0", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=_get_session_secret())
app.mount("/static", StaticFiles(directory=_HERE / "static"), name="static")

# Import and include routers
from src.web.routers import invoices, settings  # noqa: E402

app.include_router(invoices.router)
app.include_router(settings.router)


@app.get("/")
async def index(request: Request):
    current = request.session.get("current_invoice_id")
    if current:
        return RedirectResponse(url=f"/invoices/{current}/edit")
    return RedirectResponse(url="/invoices/new")


@app.get("/health")
async def health():
    return {"status": "ok"}


def main():
    configure_logging()
    uvicorn.run(
        "src.web.app:app",
        host=os.environ.get("INVOICER_HOST", "0.0.0.0"),
        port=int(os.environ.get("INVOICER_PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
