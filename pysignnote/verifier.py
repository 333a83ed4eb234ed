# verifier.py
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from . import codec
from .errors import InvalidEncoding, InvalidFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    message: Optional[str] = None
    matched_key: Optional[str] = None


NOT_VERIFIED = VerificationResult(verified=False)


def load_public_key(key_bytes: bytes) -> rsa.RSAPublicKey:
    """Decode DER SubjectPublicKeyInfo bytes into an RSA public key.

    Raises InvalidFormat for anything that is not a well-formed RSA key.
    """
    try:
        key = serialization.load_der_public_key(key_bytes)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidFormat(str(e) or "Not a public key") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidFormat(f"Expected an RSA public key, got {type(key).__name__}")
    return key


def public_key_to_b64(key: rsa.RSAPublicKey) -> str:
    """Canonical base64 form under which a key is stored as trusted."""
    return codec.b64encode(key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ))


def check_signature(key: rsa.RSAPublicKey, payload: bytes, signature: bytes) -> bool:
    try:
        key.verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


def verify(payload: bytes, signature: bytes, trusted_keys: Iterable[str]) -> VerificationResult:
    """Scan the trusted keys in order and stop at the first one that validates.

    Keys that cannot be decoded are logged and skipped; they never abort the scan.
    """
    for trusted in trusted_keys:
        try:
            key = load_public_key(codec.b64decode(trusted))
        except (InvalidEncoding, InvalidFormat) as e:
            logger.warning("Skipping malformed trusted key %.16s...: %s", trusted, e)
            continue
        if check_signature(key, payload, signature):
            return VerificationResult(
                verified=True,
                message=payload.decode("utf-8", errors="replace"),
                matched_key=trusted,
            )
    return NOT_VERIFIED
