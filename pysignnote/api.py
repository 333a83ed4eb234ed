import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException, Request

from config import API_PREFIX
from . import signer
from .errors import SigningFailed, StorageError
from .keystore import Identity

logger = logging.getLogger(__name__)

# JSON twin of the form handlers, mounted under API_PREFIX
router = APIRouter(prefix=API_PREFIX, tags=["PySignNote"])


def get_identity(request: Request) -> Identity:
    try:
        return request.app.state.keystore.get_or_create_identity()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Identity unavailable: {e}")


@router.get("/public-key")
async def public_key(request: Request):
    """Export the local public key (base64 X.509 SubjectPublicKeyInfo)."""
    identity = get_identity(request)
    return {
        "publicKey": identity.export_public_key(),
        "fingerprint": identity.fingerprint,
        "createdAt": identity.created_at,
    }


@router.post("/sign")
async def sign(request: Request, data: Dict[str, Any] = Body(...)):
    text = data.get("text")
    if not isinstance(text, str):
        raise HTTPException(status_code=400, detail="text is required")

    identity = get_identity(request)
    try:
        signed = signer.sign_message(identity, text)
    except SigningFailed as e:
        logger.error("Signing failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Signing failed: {e}")
    return {"signed": signed}


@router.post("/load")
async def load(request: Request, data: Dict[str, Any] = Body(...)):
    """Verify a signed message or import a public key."""
    raw = data.get("input")
    if not isinstance(raw, str):
        raise HTTPException(status_code=400, detail="input is required")

    result = await request.app.state.worker.submit(raw)
    return {
        "status": result.status.value,
        "message": result.message,
        "detail": result.detail,
        "signedAt": result.signed_at,
        "text": result.text,
        "statusLine": result.status_line(),
    }


@router.get("/trusted-keys")
async def trusted_keys(request: Request):
    try:
        keys = await request.app.state.trust_store.list_trusted_keys()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"keys": keys}
