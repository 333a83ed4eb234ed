# signer.py
from datetime import datetime
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from . import codec
from .errors import SigningFailed
from .keystore import Identity


def sign(private_key: rsa.RSAPrivateKey, payload: bytes) -> bytes:
    """Signs the payload with SHA-256 and RSA PKCS#1 v1.5."""
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise SigningFailed(f"Expected an RSA private key, got {type(private_key).__name__}")
    try:
        return private_key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise SigningFailed(str(e)) from e


def sign_message(identity: Identity, text: str, now: Optional[datetime] = None) -> str:
    """Builds, signs and serializes a message in the wire format."""
    payload = codec.build_payload(text, now)
    return codec.serialize(payload, sign(identity.private_key, payload))
