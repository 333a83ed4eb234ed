# pysignnote/web.py

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from config import BASE_DIR
from . import signer
from .errors import SigningFailed, StorageError
from .keystore import Identity

logger = logging.getLogger(__name__)

# HTML form pages; JSON lives in api.py
router = APIRouter()

# Single-page template in site/index.html
templates = Jinja2Templates(directory=BASE_DIR / "site")


def _identity_or_error(request: Request) -> Tuple[Optional[Identity], Optional[str]]:
    try:
        return request.app.state.keystore.get_or_create_identity(), None
    except StorageError as e:
        return None, f"Identity unavailable: {e}"


async def render_page(request: Request, text: str = "", output: str = "",
                      load_text: str = "", status: str = "", status_code: int = 200,
                      signed_at: Optional[str] = None, signed_text: Optional[str] = None):
    identity, identity_error = _identity_or_error(request)
    try:
        trusted_count = await request.app.state.trust_store.count()
    except StorageError:
        trusted_count = None
    return templates.TemplateResponse(request, "index.html", {
        "text": text,
        "output": output,
        "load_text": load_text,
        "status": status or identity_error or "",
        "fingerprint": identity.fingerprint if identity else None,
        "trusted_count": trusted_count,
        "signed_at": signed_at,
        "signed_text": signed_text,
    }, status_code=status_code)

# --- Form handlers (each re-renders index.html) ---

@router.get("/", response_class=HTMLResponse)
async def homepage(request: Request):
    return await render_page(request)

@router.post("/sign", response_class=HTMLResponse)
async def sign_form(request: Request, text: str = Form(""), load_text: str = Form("")):
    identity, error = _identity_or_error(request)
    if identity is None:
        return await render_page(request, text=text, load_text=load_text, status=error, status_code=503)
    try:
        output = signer.sign_message(identity, text)
    except SigningFailed as e:
        logger.error("Signing failed: %s", e)
        return await render_page(request, text=text, load_text=load_text,
                                 status=f"Signing failed: {e}", status_code=500)
    return await render_page(request, text=text, output=output, load_text=load_text)

@router.post("/export", response_class=HTMLResponse)
async def export_form(request: Request, text: str = Form(""), load_text: str = Form("")):
    identity, error = _identity_or_error(request)
    if identity is None:
        return await render_page(request, text=text, load_text=load_text, status=error, status_code=503)
    return await render_page(request, text=text, output=identity.export_public_key(), load_text=load_text)

@router.post("/load", response_class=HTMLResponse)
async def load_form(request: Request, load_text: str = Form(""), text: str = Form("")):
    result = await request.app.state.worker.submit(load_text)
    return await render_page(request, text=text, load_text=load_text, status=result.status_line(),
                             signed_at=result.signed_at, signed_text=result.text)
